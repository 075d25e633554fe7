"""
Dataset loading and recoding.

The raw spreadsheet is downloaded once into the data directory and every
later call reads the local copy. Recoding renames the export's columns to
semantic names, maps condition codes to labels and fixes the categorical
level order from the configuration, so the reference category is never
inferred from the order in which rows arrive.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, Mapping, Optional
import warnings

import pandas as pd
import requests

from ..errors import ConfigurationError, NetworkError, SchemaError
from .constants import (
    BLINDED_COLUMN_MAP,
    BLINDED_DATA_URL_ENV,
    BLINDED_EXPOSURE_CODES,
    BLINDED_FILENAME,
    BLINDED_STIMULUS_CODES,
    DATA_URL_ENV,
    DOWNLOAD_CHUNK_SIZE,
    DOWNLOAD_TIMEOUT,
    EXPOSURE_CODES,
    GENDER_CODES,
    GENDER_LEVELS,
    NUMERIC_COLUMNS,
    RAW_COLUMN_MAP,
    REQUIRED_COLUMNS,
    STIMULUS_CODES,
    UNBLINDED_FILENAME,
)
from .filters import exclude_blinding_failures
from .standardization import center_covariates, standardize_predictors

if TYPE_CHECKING:
    from ..config import AnalysisConfig


# =============================================================================
# DOWNLOAD
# =============================================================================

def download_dataset(
    url: str,
    cache_path: Path,
    timeout: float = DOWNLOAD_TIMEOUT,
    verbose: bool = True,
) -> Path:
    """
    Download ``url`` to ``cache_path`` unless the file already exists.

    The file is streamed to a temporary file in the same directory and moved
    into place only after the transfer completed, so an interrupted download
    never leaves a truncated cache entry behind.

    Raises
    ------
    NetworkError
        If the request fails or the server answers with an error status.
    """
    cache_path = Path(cache_path)
    if cache_path.exists():
        if verbose:
            print(f"  [CACHE] Using local copy {cache_path}")
        return cache_path

    cache_path.parent.mkdir(parents=True, exist_ok=True)
    if verbose:
        print(f"  Downloading {url} -> {cache_path}")

    tmp_path = None
    try:
        with requests.get(url, stream=True, timeout=timeout) as resp:
            resp.raise_for_status()
            with tempfile.NamedTemporaryFile(
                delete=False, dir=cache_path.parent, suffix=".part"
            ) as tmp:
                tmp_path = Path(tmp.name)
                for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        tmp.write(chunk)
        shutil.move(str(tmp_path), str(cache_path))
    except requests.RequestException as exc:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise NetworkError(url, exc) from exc

    return cache_path


def resolve_data_url(config: "AnalysisConfig") -> Optional[str]:
    """Data URL from the configuration, falling back to the environment."""
    if config.data_url:
        return config.data_url
    env = BLINDED_DATA_URL_ENV if config.blinded else DATA_URL_ENV
    return os.environ.get(env)


def local_data_path(config: "AnalysisConfig") -> Path:
    filename = BLINDED_FILENAME if config.blinded else UNBLINDED_FILENAME
    return Path(config.data_dir) / filename


# =============================================================================
# READING AND RECODING
# =============================================================================

def read_raw(path: Path) -> pd.DataFrame:
    """Read an Excel or CSV export."""
    path = Path(path)
    if path.suffix.lower() in (".xlsx", ".xls"):
        return pd.read_excel(path)
    return pd.read_csv(path, encoding="utf-8")


def check_columns(df: pd.DataFrame, required: Iterable[str], where: str = "dataset") -> None:
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise SchemaError(missing, where=where)


def _map_codes(series: pd.Series, codes: Mapping, name: str) -> pd.Series:
    """Map raw condition codes to labels; labels already in the codebook pass through."""
    labels = set(codes.values())

    def _one(value):
        if pd.isna(value):
            return None
        if value in codes:
            return codes[value]
        if isinstance(value, str):
            token = value.strip()
            if token in codes:
                return codes[token]
            if token in labels:
                return token
            if token.isdigit() and int(token) in codes:
                return codes[int(token)]
        if isinstance(value, float) and value.is_integer() and int(value) in codes:
            return codes[int(value)]
        return None

    mapped = series.map(_one)
    unknown = series[mapped.isna() & series.notna()].unique()
    if len(unknown):
        raise SchemaError([f"{name}={v!r}" for v in unknown], where=f"'{name}' codebook")
    return mapped


def as_factor(series: pd.Series, levels: Iterable[str]) -> pd.Series:
    """Categorical with an explicit level order (first level = reference)."""
    return pd.Series(
        pd.Categorical(series, categories=list(levels), ordered=False),
        index=series.index,
        name=series.name,
    )


def decode_factor(series: pd.Series, codes: Mapping) -> pd.Series:
    """
    Map recoded labels back to the export's codes.

    ``decode_factor(recoded, EXPOSURE_CODES)`` recovers the original numeric
    condition codes exactly.
    """
    inverse: Dict[str, object] = {label: code for code, label in codes.items()}
    if len(inverse) != len(codes):
        raise ConfigurationError("Codebook is not one-to-one; cannot decode")
    return series.astype(object).map(inverse)


def recode_dataset(
    raw: pd.DataFrame,
    config: "AnalysisConfig",
    blinded: Optional[bool] = None,
) -> pd.DataFrame:
    """
    Rename export columns to semantic names and assign factor levels.

    Parameters
    ----------
    raw : pd.DataFrame
        Spreadsheet as read from disk.
    config : AnalysisConfig
        Supplies the exposure/stimulus level order.
    blinded : bool, optional
        Which codebook to apply. Defaults to ``config.blinded``.

    Returns
    -------
    pd.DataFrame
        New frame; ``raw`` is not modified.

    Raises
    ------
    SchemaError
        If required columns are missing or a condition code is unknown.
    """
    if blinded is None:
        blinded = config.blinded
    column_map = BLINDED_COLUMN_MAP if blinded else RAW_COLUMN_MAP
    exposure_codes = BLINDED_EXPOSURE_CODES if blinded else EXPOSURE_CODES
    stimulus_codes = BLINDED_STIMULUS_CODES if blinded else STIMULUS_CODES

    df = raw.rename(columns={k: v for k, v in column_map.items() if k in raw.columns})
    check_columns(df, REQUIRED_COLUMNS, where="blinded export" if blinded else "export")

    df = df[REQUIRED_COLUMNS + [c for c in df.columns if c not in REQUIRED_COLUMNS]].copy()
    df["participant"] = df["participant"].astype(str).str.strip()
    if df["participant"].isin(["", "nan", "None"]).any():
        warnings.warn("participant column has missing identifiers", UserWarning)

    df["exposure"] = as_factor(_map_codes(df["exposure"], exposure_codes, "exposure"),
                               config.exposure_levels)
    df["stimulus"] = as_factor(_map_codes(df["stimulus"], stimulus_codes, "stimulus"),
                               config.stimulus_levels)
    df["gender"] = as_factor(df["gender"].map(lambda v: GENDER_CODES.get(v, v)), GENDER_LEVELS)

    for col in NUMERIC_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce")

    return df


# =============================================================================
# MASTER LOADER
# =============================================================================

def load_dataset(
    config: Optional["AnalysisConfig"] = None,
    path: Optional[Path] = None,
    verbose: bool = True,
) -> pd.DataFrame:
    """
    Load the analysis dataset for one configuration.

    Downloads the export if no local copy exists, recodes it, adds centred
    (``*_c``) and z-scored (``z_*``) covariates and, for the ``excluded``
    variant, drops participants who failed the blinding check. Raw outcome
    columns are left untouched.
    """
    if config is None:
        from ..config import AnalysisConfig
        config = AnalysisConfig()

    if path is None:
        path = local_data_path(config)
        if not path.exists():
            url = resolve_data_url(config)
            if not url:
                env = BLINDED_DATA_URL_ENV if config.blinded else DATA_URL_ENV
                raise ConfigurationError(
                    f"No local dataset at {path} and no download URL (set data_url or {env})"
                )
            download_dataset(url, path, verbose=verbose)

    raw = read_raw(path)
    df = recode_dataset(raw, config)

    if config.exclude_blinding_failures:
        df = exclude_blinding_failures(df, verbose=verbose)

    # Centre after exclusion so the analysed sample has mean zero
    df = center_covariates(df)
    df = standardize_predictors(df)

    if verbose:
        n_participants = df["participant"].nunique()
        print(
            f"  Dataset loaded ({config.variant}, {'blinded' if config.blinded else 'unblinded'}): "
            f"{len(df)} rows, N={n_participants} participants"
        )

    return df
