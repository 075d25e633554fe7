"""
Report figures: point-range (forest) plots of posterior summaries.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import seaborn as sns

from .labels import display_label


def plot_point_range(
    summary: pd.DataFrame,
    title: str,
    xlabel: str = "Posterior estimate",
    rope: Optional[Tuple[float, float]] = None,
    ax: Optional[plt.Axes] = None,
) -> plt.Figure:
    """
    Horizontal point-range plot: posterior mean with credible interval per row.

    Parameters
    ----------
    summary : pd.DataFrame
        ``PosteriorSummary`` frame (``parameter``, ``mean``, ``ci_low``, ``ci_high``).
    rope : (float, float), optional
        Shaded region of practical equivalence.
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 0.55 * max(len(summary), 3) + 1.2))
    else:
        fig = ax.figure

    data = summary.reset_index(drop=True)
    y = np.arange(len(data))[::-1]
    color = sns.color_palette("colorblind")[0]

    if rope is not None:
        ax.axvspan(rope[0], rope[1], color="grey", alpha=0.15, linewidth=0, label="ROPE")

    # A ratio's mean can fall outside its equal-tailed interval
    lower = np.clip((data["mean"] - data["ci_low"]).to_numpy(dtype=float), 0, None)
    upper = np.clip((data["ci_high"] - data["mean"]).to_numpy(dtype=float), 0, None)

    ax.errorbar(
        data["mean"],
        y,
        xerr=[lower, upper],
        fmt="o",
        color=color,
        ecolor=color,
        capsize=4,
        linewidth=1.5,
    )
    ax.axvline(0, color="black", linewidth=1, linestyle="--", alpha=0.6)
    ax.set_yticks(y)
    ax.set_yticklabels([display_label(p) for p in data["parameter"]])
    ax.set_xlabel(xlabel)
    ax.set_title(title)
    ax.grid(True, axis="x", alpha=0.2)
    if rope is not None:
        ax.legend(frameon=False, loc="best")
    fig.tight_layout()
    return fig


def save_figure(fig: plt.Figure, stem: str, output_dir: Path, dpi: int = 160) -> Path:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{stem}.png"
    fig.savefig(path, dpi=dpi)
    plt.close(fig)
    return path
