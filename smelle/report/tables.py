"""
Report tables.

Posterior summaries are rendered with display labels and fixed decimals,
then written as CSV (``utf-8-sig`` so spreadsheet software reads the Δ
symbol) and Markdown.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from .labels import display_label


def _fmt(value, digits: int) -> str:
    if value is None or (isinstance(value, float) and not np.isfinite(value)):
        return "—"
    return f"{value:.{digits}f}"


def format_posterior_table(
    summary: pd.DataFrame,
    digits: int = 2,
    ci_prob: float = 0.95,
    label: bool = True,
) -> pd.DataFrame:
    """
    Publication-style table from a ``PosteriorSummary`` frame.

    Columns: Parameter, Mean, SD, <ci>% CI, pd, % in ROPE, Direction,
    Equivalent (and Unstable when present).
    """
    ci_col = f"{int(round(ci_prob * 100))}% CI"
    rows = []
    for _, row in summary.iterrows():
        out = {}
        if "outcome" in summary.columns:
            out["Outcome"] = row["outcome"]
        out["Parameter"] = display_label(row["parameter"]) if label else row["parameter"]
        out["Mean"] = _fmt(row["mean"], digits)
        out["SD"] = _fmt(row["sd"], digits)
        out[ci_col] = f"[{_fmt(row['ci_low'], digits)}, {_fmt(row['ci_high'], digits)}]"
        out["pd"] = _fmt(row["pd"], 3)
        out["% in ROPE"] = "—" if pd.isna(row["rope_pct"]) else f"{100 * row['rope_pct']:.1f}"
        out["Direction"] = "yes" if row["direction_supported"] else "no"
        out["Equivalent"] = "yes" if row["practically_equivalent"] else "no"
        if "unstable" in summary.columns:
            out["Unstable"] = "yes" if row["unstable"] else ""
        rows.append(out)
    return pd.DataFrame(rows)


def save_table(
    table: pd.DataFrame,
    stem: str,
    output_dir: Path,
    markdown: bool = True,
) -> Tuple[Path, Optional[Path]]:
    """Write ``<stem>.csv`` and ``<stem>.md``; returns both paths."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    csv_path = output_dir / f"{stem}.csv"
    table.to_csv(csv_path, index=False, encoding="utf-8-sig")

    md_path = None
    if markdown:
        md_path = output_dir / f"{stem}.md"
        md_path.write_text(table.to_markdown(index=False), encoding="utf-8")
    return csv_path, md_path
