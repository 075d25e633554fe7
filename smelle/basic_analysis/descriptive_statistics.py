"""
Descriptive Statistics Analysis
===============================

Condition means (N, Mean, SD, SE) per exposure mode x stimulus type and a
Table-1 style participant description (N, Mean, SD, Min, Max, Median).

Output:
    results/<variant>/descriptives/condition_means.csv
    results/<variant>/descriptives/sample_descriptives.csv
    results/<variant>/descriptives/condition_means_<outcome>.png

Usage:
    python -m smelle -s descriptives
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns

from ..preprocessing.constants import EXPOSURE_NAMES


def condition_means(
    df: pd.DataFrame,
    outcome: str,
    by: Sequence[str] = ("exposure", "stimulus"),
) -> pd.DataFrame:
    """
    Group means and standard errors of ``outcome`` per condition cell.

    Cells follow the categorical level order of the ``by`` columns, so
    tables read in the configured order rather than alphabetically.
    """
    if outcome not in df.columns:
        raise KeyError(f"Outcome '{outcome}' not found in dataset")

    grouped = df.groupby(list(by), observed=True, sort=True)[outcome]
    summary = grouped.agg(N="count", Mean="mean", SD="std").reset_index()
    summary["SE"] = summary["SD"] / np.sqrt(summary["N"])
    summary.insert(0, "Outcome", outcome)
    return summary


def compute_descriptive_stats(
    df: pd.DataFrame,
    variables: list[tuple[str, str]],
    participant_col: str = "participant",
    group_label: str = "Total",
) -> pd.DataFrame:
    """
    Descriptive statistics for participant-level variables.

    Trial-level rows are collapsed to one value per participant first
    (participant mean), so every participant counts once.

    Parameters
    ----------
    df : pd.DataFrame
        Input dataframe
    variables : list of (column_name, display_label) tuples
        Variables to analyze
    group_label : str
        Label for this group (e.g., "Total", "female", "male")

    Returns
    -------
    pd.DataFrame
        Descriptive statistics table
    """
    results = []
    per_participant = df.groupby(participant_col, observed=True)

    for col, label in variables:
        if col not in df.columns:
            print(f"  [WARNING] Variable '{col}' not found in dataset")
            continue

        series = per_participant[col].mean().dropna()

        results.append({
            'Group': group_label,
            'Variable': label,
            'Column': col,
            'N': len(series),
            'Mean': series.mean(),
            'SD': series.std(),
            'Min': series.min(),
            'Max': series.max(),
            'Median': series.median(),
        })

    return pd.DataFrame(results)


def compute_gender_counts(df: pd.DataFrame, participant_col: str = "participant") -> pd.DataFrame:
    """Participant counts per gender level."""
    genders = df.groupby(participant_col, observed=True)["gender"].first()
    counts = genders.value_counts(dropna=False, sort=False)
    total = int(counts.sum())
    out = counts.rename_axis("Gender").reset_index(name="N")
    out["Percent"] = (100 * out["N"] / total).round(1) if total else np.nan
    return out


def plot_condition_means(
    summary: pd.DataFrame,
    outcome_label: str,
    ax: Optional[plt.Axes] = None,
) -> plt.Figure:
    """
    Point-range plot: mean ± SE per exposure mode, one series per stimulus.
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(6.5, 4.2))
    else:
        fig = ax.figure

    exposures = list(pd.unique(summary["exposure"]))
    stimuli = list(pd.unique(summary["stimulus"]))
    palette = sns.color_palette("colorblind", n_colors=max(len(stimuli), 2))
    offsets = np.linspace(-0.12, 0.12, num=len(stimuli)) if len(stimuli) > 1 else [0.0]

    for offset, color, stim in zip(offsets, palette, stimuli):
        sub = summary[summary["stimulus"] == stim].set_index("exposure").reindex(exposures)
        x = np.arange(len(exposures), dtype=float) + offset
        ax.errorbar(
            x,
            sub["Mean"].to_numpy(dtype=float),
            yerr=sub["SE"].to_numpy(dtype=float),
            fmt="o",
            color=color,
            ecolor=color,
            capsize=4,
            markersize=7,
            linewidth=1.5,
            label=str(stim),
        )

    ax.set_xticks(np.arange(len(exposures)))
    ax.set_xticklabels([EXPOSURE_NAMES.get(str(e), str(e)) for e in exposures])
    ax.set_xlabel("Exposure mode")
    ax.set_ylabel(outcome_label)
    ax.legend(title="Stimulus", frameon=False)
    ax.grid(True, axis="y", alpha=0.2)
    fig.tight_layout()
    return fig
