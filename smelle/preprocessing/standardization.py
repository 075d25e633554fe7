"""
Standardization Utilities
=========================

Mean-centring and z-scoring for covariates.

Key features:
- NaN-safe: pandas mean/std skip missing values
- Consistent ddof: sample standard deviation (ddof=1) throughout
- Never in place unless asked; raw columns are kept so outcome-specific
  ROPE widths can be computed on the unstandardized scale

Usage:
    from smelle.preprocessing import center, safe_zscore, center_covariates

    df['bmi_c'] = center(df['bmi'])
    df = center_covariates(df, ['bmi', 'age'])
    df = standardize_predictors(df, ['trait_imagery'])
"""

from __future__ import annotations

from typing import Dict, List, Optional
import warnings

import numpy as np
import pandas as pd

from .constants import CENTER_COLS, STANDARDIZE_COLS


# =============================================================================
# CORE FUNCTIONS
# =============================================================================

def center(series: pd.Series) -> pd.Series:
    """
    Subtract the sample mean, keeping the original scale.

    NaN values stay NaN; an all-missing column is returned unchanged.
    """
    values = pd.to_numeric(series, errors="coerce")
    mean_val = values.mean()
    if pd.isna(mean_val):
        return values
    return values - mean_val


def safe_zscore(series: pd.Series, ddof: int = 1, fill_constant: float = 0.0) -> pd.Series:
    """
    Z-score a covariate, leaving missing values missing.

    Parameters
    ----------
    series : pd.Series
        Covariate values; non-numeric entries are coerced to NaN.
    ddof : int, default 1
        1 for the sample SD used throughout the report.
    fill_constant : float, default 0.0
        Score given to every observed value when the SD is zero or undefined
        (a warning names the column).

    Examples
    --------
    >>> safe_zscore(pd.Series([20.0, 22.0, np.nan, 24.0], name="bmi"))
    0   -1.0
    1    0.0
    2    NaN
    3    1.0
    Name: bmi, dtype: float64
    """
    values = pd.to_numeric(series, errors="coerce")
    mean_val = values.mean()
    std_val = values.std(ddof=ddof)

    if pd.isna(std_val) or std_val == 0:
        warnings.warn(
            f"Constant or undefined std ({std_val}) for '{series.name}'. Filling with {fill_constant}."
        )
        result = pd.Series(fill_constant, index=series.index, dtype=float)
        result[values.isna()] = np.nan
        return result

    return (values - mean_val) / std_val


def center_covariates(
    df: pd.DataFrame,
    columns: Optional[List[str]] = None,
    suffix: str = "_c",
    inplace: bool = False,
) -> pd.DataFrame:
    """
    Add mean-centred copies of numeric covariates (``bmi`` -> ``bmi_c``).

    Missing columns are skipped.
    """
    if columns is None:
        columns = CENTER_COLS

    result = df if inplace else df.copy()
    for col in columns:
        if col in result.columns:
            result[f"{col}{suffix}"] = center(result[col])
    return result


def standardize_predictors(
    df: pd.DataFrame,
    columns: Optional[List[str]] = None,
    column_mapping: Optional[Dict[str, str]] = None,
    ddof: int = 1,
    inplace: bool = False,
) -> pd.DataFrame:
    """
    Add z-scored copies of covariates (``bmi`` -> ``z_bmi``) for moderation models.

    ``column_mapping`` overrides the output name of individual columns;
    columns absent from ``df`` are skipped. Defaults to ``STANDARDIZE_COLS``.
    """
    if columns is None:
        columns = STANDARDIZE_COLS
    column_mapping = column_mapping or {}

    result = df if inplace else df.copy()
    for col in columns:
        if col in result.columns:
            z_col = column_mapping.get(col, f"z_{col}")
            result[z_col] = safe_zscore(result[col], ddof=ddof)
    return result
