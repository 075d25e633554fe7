"""
Smell-e Preprocessing Module
============================

Download, recoding, covariate centring and participant filtering.

    from smelle.preprocessing import load_dataset
    df = load_dataset(config)
"""

# Constants
from .constants import (
    DATA_DIR,
    CACHE_DIR,
    RESULTS_DIR,
    EXPOSURE_LEVELS,
    STIMULUS_LEVELS,
    EXPOSURE_CODES,
    STIMULUS_CODES,
    GENDER_CODES,
    BLINDED_EXPOSURE_CODES,
    BLINDED_STIMULUS_CODES,
    RAW_COLUMN_MAP,
    BLINDED_COLUMN_MAP,
    REQUIRED_COLUMNS,
    FCR_OUTCOMES,
)

# Standardization
from .standardization import (
    center,
    safe_zscore,
    center_covariates,
    standardize_predictors,
)

# Filters
from .filters import (
    filter_rows,
    failed_blinding,
    exclude_blinding_failures,
)

# Loaders
from .loaders import (
    download_dataset,
    read_raw,
    check_columns,
    as_factor,
    decode_factor,
    recode_dataset,
    load_dataset,
)

__all__ = [
    # Constants
    'DATA_DIR',
    'CACHE_DIR',
    'RESULTS_DIR',
    'EXPOSURE_LEVELS',
    'STIMULUS_LEVELS',
    'EXPOSURE_CODES',
    'STIMULUS_CODES',
    'GENDER_CODES',
    'BLINDED_EXPOSURE_CODES',
    'BLINDED_STIMULUS_CODES',
    'RAW_COLUMN_MAP',
    'BLINDED_COLUMN_MAP',
    'REQUIRED_COLUMNS',
    'FCR_OUTCOMES',
    # Standardization
    'center',
    'safe_zscore',
    'center_covariates',
    'standardize_predictors',
    # Filters
    'filter_rows',
    'failed_blinding',
    'exclude_blinding_failures',
    # Loaders
    'download_dataset',
    'read_raw',
    'check_columns',
    'as_factor',
    'decode_factor',
    'recode_dataset',
    'load_dataset',
]
