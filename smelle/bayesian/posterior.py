"""
Posterior description.

For a vector of posterior draws of any quantity (a coefficient, a contrast,
a mediated effect) compute mean, SD, an equal-tailed credible interval,
probability of direction and the share of draws inside a region of
practical equivalence (ROPE) around zero.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

POSTERIOR_COLUMNS = [
    "parameter",
    "mean",
    "sd",
    "ci_low",
    "ci_high",
    "pd",
    "rope_low",
    "rope_high",
    "rope_pct",
    "n_draws",
    "direction_supported",
    "practically_equivalent",
]


def _finite(draws) -> np.ndarray:
    values = np.asarray(draws, dtype=float).ravel()
    return values[np.isfinite(values)]


def probability_of_direction(draws) -> float:
    """
    Fraction of draws sharing the sign of the posterior mean.

    With a mean of exactly zero the larger of the two one-sided shares is
    returned. Draws equal to zero never count towards either direction.
    """
    values = _finite(draws)
    if values.size == 0:
        return np.nan
    mean = values.mean()
    positive = float((values > 0).mean())
    negative = float((values < 0).mean())
    if mean > 0:
        return positive
    if mean < 0:
        return negative
    return max(positive, negative)


def rope_range(outcome_sd: float, scale: float = 0.1) -> Tuple[float, float]:
    """Symmetric ROPE ``[-w, w]`` with ``w = scale * SD`` of the raw outcome."""
    if not np.isfinite(outcome_sd) or outcome_sd <= 0:
        raise ValueError(f"ROPE needs a positive outcome SD, got {outcome_sd!r}")
    width = scale * float(outcome_sd)
    return (-width, width)


def rope_percentage(draws, rope: Tuple[float, float]) -> float:
    """Fraction of draws inside the closed interval ``rope``."""
    values = _finite(draws)
    if values.size == 0:
        return np.nan
    low, high = rope
    return float(((values >= low) & (values <= high)).mean())


def credible_interval(draws, ci_prob: float = 0.95) -> Tuple[float, float]:
    """Equal-tailed interval."""
    values = _finite(draws)
    if values.size == 0:
        return (np.nan, np.nan)
    tail = (1.0 - ci_prob) / 2.0
    low, high = np.quantile(values, [tail, 1.0 - tail])
    return (float(low), float(high))


def describe_posterior(
    draws,
    label: str = "parameter",
    ci_prob: float = 0.95,
    rope: Optional[Tuple[float, float]] = None,
    pd_threshold: float = 0.95,
    rope_threshold: float = 0.95,
) -> Dict[str, object]:
    """
    One summary row for a vector of draws.

    ``direction_supported`` is ``pd >= pd_threshold``;
    ``practically_equivalent`` is ``rope_pct >= rope_threshold`` (only when a
    ROPE is given).
    """
    values = _finite(draws)
    ci_low, ci_high = credible_interval(values, ci_prob)
    pd_value = probability_of_direction(values)
    rope_pct = rope_percentage(values, rope) if rope is not None else np.nan

    return {
        "parameter": label,
        "mean": float(values.mean()) if values.size else np.nan,
        "sd": float(values.std(ddof=1)) if values.size > 1 else np.nan,
        "ci_low": ci_low,
        "ci_high": ci_high,
        "pd": pd_value,
        "rope_low": rope[0] if rope is not None else np.nan,
        "rope_high": rope[1] if rope is not None else np.nan,
        "rope_pct": rope_pct,
        "n_draws": int(values.size),
        "direction_supported": bool(pd_value >= pd_threshold) if np.isfinite(pd_value) else False,
        "practically_equivalent": bool(rope_pct >= rope_threshold) if np.isfinite(rope_pct) else False,
    }


def summarize_draws(
    draws_by_name: Mapping[str, np.ndarray],
    ci_prob: float = 0.95,
    rope: Optional[Tuple[float, float]] = None,
    pd_threshold: float = 0.95,
    rope_threshold: float = 0.95,
    order: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    Posterior summary table, one row per named quantity.

    Rows follow ``order`` when given, otherwise the mapping's order.
    """
    names = list(order) if order is not None else list(draws_by_name)
    rows = [
        describe_posterior(
            draws_by_name[name],
            label=name,
            ci_prob=ci_prob,
            rope=rope,
            pd_threshold=pd_threshold,
            rope_threshold=rope_threshold,
        )
        for name in names
    ]
    return pd.DataFrame(rows, columns=POSTERIOR_COLUMNS)
