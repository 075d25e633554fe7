"""
Shared constants for data preprocessing.

Codebooks for the raw Smell-e spreadsheet (unblinded and blinded exports),
factor levels and directory defaults.
"""

from pathlib import Path

# Directory paths
BASE_DIR = Path(__file__).resolve().parents[2]
DATA_DIR = BASE_DIR / "data"
CACHE_DIR = BASE_DIR / "cache"
RESULTS_DIR = BASE_DIR / "results"

# Local file names of the downloaded exports
UNBLINDED_FILENAME = "smelle_data.xlsx"
BLINDED_FILENAME = "smelle_data_blinded.xlsx"

# Remote locations are supplied per installation
DATA_URL_ENV = "SMELLE_DATA_URL"
BLINDED_DATA_URL_ENV = "SMELLE_BLINDED_DATA_URL"

DOWNLOAD_TIMEOUT = 30         # seconds per request
DOWNLOAD_CHUNK_SIZE = 8192    # bytes

# =============================================================================
# FACTOR LEVELS
# =============================================================================

EXPOSURE_LEVELS = ("RL", "MVR", "UVR")
STIMULUS_LEVELS = ("NonFood", "Food")
GENDER_LEVELS = ("female", "male", "other")

EXPOSURE_NAMES = {
    "RL": "Real life",
    "MVR": "Multisensory VR",
    "UVR": "Unisensory VR",
}
STIMULUS_NAMES = {
    "NonFood": "Non-food",
    "Food": "Food",
}

# =============================================================================
# CODEBOOKS
# =============================================================================

# Unblinded export: numeric codes
EXPOSURE_CODES = {1: "RL", 2: "MVR", 3: "UVR"}
STIMULUS_CODES = {0: "NonFood", 1: "Food"}
GENDER_CODES = {1: "female", 2: "male", 3: "other"}

# Blinded export: letter codes assigned by the data manager
BLINDED_EXPOSURE_CODES = {"A": "RL", "B": "MVR", "C": "UVR"}
BLINDED_STIMULUS_CODES = {"X": "NonFood", "Y": "Food"}

# Raw spreadsheet column -> semantic column
RAW_COLUMN_MAP = {
    "ID": "participant",
    "Condition": "exposure",
    "Stimulus": "stimulus",
    "Gender": "gender",
    "Age": "age",
    "BMI": "bmi",
    "VR_familiarity": "vr_familiarity",
    "VVIQ": "trait_imagery",
    "State_imagery": "state_imagery",
    "Saliva": "salivation",
    "Craving": "craving",
    "Liking": "liking",
    "Presence": "presence",
    "Hunger": "hunger",
    "Blinding_check": "blinding_check",
}

# The blinded export only differs in the condition column names
BLINDED_COLUMN_MAP = {
    **{k: v for k, v in RAW_COLUMN_MAP.items() if k not in ("Condition", "Stimulus")},
    "Condition_blind": "exposure",
    "Stimulus_blind": "stimulus",
}

REQUIRED_COLUMNS = [
    "participant",
    "exposure",
    "stimulus",
    "gender",
    "age",
    "bmi",
    "vr_familiarity",
    "trait_imagery",
    "state_imagery",
    "salivation",
    "craving",
    "liking",
    "presence",
    "hunger",
    "blinding_check",
]

NUMERIC_COLUMNS = [
    "age",
    "bmi",
    "vr_familiarity",
    "trait_imagery",
    "state_imagery",
    "salivation",
    "craving",
    "liking",
    "presence",
    "hunger",
]

# Covariates mean-centred (suffix _c) and z-scored (prefix z_) on load
CENTER_COLS = ["bmi", "age", "presence", "hunger", "trait_imagery", "state_imagery", "vr_familiarity"]
STANDARDIZE_COLS = ["trait_imagery", "state_imagery", "bmi", "hunger"]

# Food-cue response outcomes
FCR_OUTCOMES = {
    "craving": "Craving rating",
    "salivation": "Salivary volume (g)",
}

# Blinding check answers treated as a failed blind
BLINDING_FAILURE_TOKENS = {"yes", "y", "ja", "1", "true"}
