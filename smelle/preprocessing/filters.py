"""
Participant and row filters.

Filters always return a new frame; the input dataset is never modified.
"""

from __future__ import annotations

from typing import Callable

import pandas as pd

from .constants import BLINDING_FAILURE_TOKENS


def filter_rows(
    df: pd.DataFrame,
    predicate: Callable[[pd.DataFrame], pd.Series],
) -> pd.DataFrame:
    """Keep rows where ``predicate(df)`` is True (missing counts as False)."""
    mask = predicate(df)
    if not isinstance(mask, pd.Series) or not mask.index.equals(df.index):
        raise ValueError("predicate must return a boolean Series aligned with the dataset")
    return df.loc[mask.fillna(False).astype(bool)].copy()


def failed_blinding(values: pd.Series) -> pd.Series:
    """True where the blinding-check answer was 'Yes' (case-insensitive) or coded 1."""
    tokens = values.astype(str).str.strip().str.lower()
    coded_yes = pd.to_numeric(values, errors="coerce") == 1
    return (tokens.isin(BLINDING_FAILURE_TOKENS) | coded_yes) & values.notna()


def exclude_blinding_failures(
    df: pd.DataFrame,
    column: str = "blinding_check",
    participant_col: str = "participant",
    verbose: bool = True,
) -> pd.DataFrame:
    """
    Drop every row of participants who answered 'Yes' to the blinding check.

    A participant is excluded if any of their rows carries a failed answer.
    """
    if column not in df.columns:
        raise KeyError(f"Blinding check column '{column}' not found")

    flagged = df.loc[failed_blinding(df[column]), participant_col].unique()
    result = df[~df[participant_col].isin(flagged)].copy()

    if verbose:
        print(
            f"  Blinding check: excluded {len(flagged)} participant(s), "
            f"{len(df)} -> {len(result)} rows"
        )
    return result
