"""
Manipulation Checks
===================

One-sample tests of participant-level means against fixed reference values:

- hunger vs the scale midpoint (z-test, population SD supplied)
- presence per exposure mode vs the scale midpoint (t-test)
- VR familiarity vs the scale midpoint (t-test)

Repeated measures are first averaged to one value per participant. A check
with fewer than two participants raises ``InsufficientDataError``; the
runner records that failure and continues with the remaining checks.

Usage:
    python -m smelle -s manipulation_checks
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.weightstats import DescrStatsW

from ..errors import InsufficientDataError
from .utils import format_interval

if TYPE_CHECKING:
    from ..config import AnalysisConfig


# =============================================================================
# CHECK DEFINITIONS
# =============================================================================

@dataclass(frozen=True)
class ManipulationCheck:
    """One one-sample test."""
    name: str
    column: str
    test: str                      # 'z' or 't'
    mu: float
    sigma: Optional[float] = None  # population SD, z-test only
    by: Optional[str] = None       # run separately per level of this factor
    alternative: str = "two-sided"

    def __post_init__(self):
        if self.test not in ("z", "t"):
            raise ValueError(f"Unknown test '{self.test}' (use 'z' or 't')")
        if self.test == "z" and (self.sigma is None or self.sigma <= 0):
            raise ValueError(f"{self.name}: z-test requires a positive population SD")


def default_checks(config: "AnalysisConfig") -> List[ManipulationCheck]:
    return [
        ManipulationCheck(
            name="hunger",
            column="hunger",
            test="z",
            mu=config.hunger_reference,
            sigma=config.hunger_population_sd,
        ),
        ManipulationCheck(
            name="presence",
            column="presence",
            test="t",
            mu=config.presence_reference,
            by="exposure",
        ),
        ManipulationCheck(
            name="vr_familiarity",
            column="vr_familiarity",
            test="t",
            mu=config.vr_familiarity_reference,
        ),
    ]


# =============================================================================
# AGGREGATION AND TESTS
# =============================================================================

def aggregate_participants(
    df: pd.DataFrame,
    column: str,
    by: Optional[str] = None,
    participant_col: str = "participant",
) -> pd.DataFrame:
    """One row per participant (and per ``by`` level): mean of repeated measures."""
    keys = [participant_col] + ([by] if by else [])
    return (
        df.groupby(keys, observed=True)[column]
        .mean()
        .dropna()
        .reset_index()
    )


def _p_value(stat: float, dist, alternative: str) -> float:
    if alternative == "two-sided":
        return float(2 * dist.sf(abs(stat)))
    if alternative == "greater":
        return float(dist.sf(stat))
    if alternative == "less":
        return float(dist.cdf(stat))
    raise ValueError(f"Unknown alternative: {alternative}")


def one_sample_ztest(
    values: Sequence[float],
    mu: float,
    sigma: float,
    alpha: float = 0.05,
    alternative: str = "two-sided",
    name: str = "z-test",
) -> Dict[str, float]:
    """
    One-sample z-test with a known population SD.

    z = (mean - mu) / (sigma / sqrt(n)); two-sided CI mean ± z_(1-alpha/2) * SE.
    """
    x = np.asarray(values, dtype=float)
    x = x[np.isfinite(x)]
    n = len(x)
    if n < 2:
        raise InsufficientDataError(name, n)

    mean = float(x.mean())
    se = sigma / np.sqrt(n)
    z = (mean - mu) / se
    crit = stats.norm.ppf(1 - alpha / 2)
    return {
        'test': 'z',
        'n': n,
        'mean': mean,
        'mu': mu,
        'statistic': float(z),
        'df': np.nan,
        'p': _p_value(z, stats.norm, alternative),
        'ci_low': float(mean - crit * se),
        'ci_high': float(mean + crit * se),
    }


def one_sample_ttest(
    values: Sequence[float],
    mu: float,
    alpha: float = 0.05,
    alternative: str = "two-sided",
    name: str = "t-test",
) -> Dict[str, float]:
    """One-sample t-test; CI from the t distribution."""
    x = np.asarray(values, dtype=float)
    x = x[np.isfinite(x)]
    n = len(x)
    if n < 2:
        raise InsufficientDataError(name, n)

    descr = DescrStatsW(x)
    alt = {"two-sided": "two-sided", "greater": "larger", "less": "smaller"}[alternative]
    t_stat, p_value, dof = descr.ttest_mean(value=mu, alternative=alt)
    ci_low, ci_high = descr.tconfint_mean(alpha=alpha)
    return {
        'test': 't',
        'n': n,
        'mean': float(descr.mean),
        'mu': mu,
        'statistic': float(t_stat),
        'df': float(dof),
        'p': float(p_value),
        'ci_low': float(ci_low),
        'ci_high': float(ci_high),
    }


def _levels(column: pd.Series, observed: pd.Series) -> list:
    """Configured category order when available, so empty levels are reported too."""
    if isinstance(column.dtype, pd.CategoricalDtype):
        return list(column.cat.categories)
    return list(pd.unique(observed))


def run_check(df: pd.DataFrame, check: ManipulationCheck, alpha: float = 0.05) -> List[Dict]:
    """
    Run one check; returns one row per ``by`` level (or a single row).

    A ``by`` level with too few participants becomes an ``error`` row and the
    remaining levels are still tested. A check with no usable values at all
    raises ``InsufficientDataError``.
    """
    agg = aggregate_participants(df, check.column, by=check.by)
    if agg.empty:
        raise InsufficientDataError(check.name, 0)
    groups = [(None, agg)] if check.by is None else [
        (level, agg[agg[check.by] == level]) for level in _levels(df[check.by], agg[check.by])
    ]

    rows = []
    for level, sub in groups:
        name = check.name if level is None else f"{check.name}|{check.by}={level}"
        try:
            if check.test == "z":
                result = one_sample_ztest(sub[check.column], check.mu, check.sigma,
                                          alpha=alpha, alternative=check.alternative, name=name)
            else:
                result = one_sample_ttest(sub[check.column], check.mu,
                                          alpha=alpha, alternative=check.alternative, name=name)
        except InsufficientDataError as exc:
            if level is None:
                raise
            rows.append({'check': name, 'column': check.column, 'error': str(exc)})
            continue
        rows.append({'check': name, 'column': check.column, **result, 'error': None})
    return rows


def run_manipulation_checks(
    df: pd.DataFrame,
    checks: Sequence[ManipulationCheck],
    alpha: float = 0.05,
    verbose: bool = True,
) -> pd.DataFrame:
    """
    Run every check; a failing check yields an ``error`` row, the rest proceed.
    """
    rows: List[Dict] = []
    for check in checks:
        if check.column not in df.columns:
            rows.append({'check': check.name, 'column': check.column,
                         'error': f"column '{check.column}' not found"})
            if verbose:
                print(f"  [SKIP] {check.name}: column '{check.column}' not found")
            continue
        try:
            results = run_check(df, check, alpha=alpha)
        except InsufficientDataError as exc:
            rows.append({'check': check.name, 'column': check.column, 'error': str(exc)})
            if verbose:
                print(f"  [SKIP] {exc}")
            continue

        ci_label = f"{100 * (1 - alpha):g}% CI"
        for row in results:
            rows.append(row)
            if not verbose:
                continue
            if row['error'] is not None:
                print(f"  [SKIP] {row['error']}")
                continue
            print(
                f"  {row['check']}: M={row['mean']:.2f} vs {row['mu']:.0f}, "
                f"{row['test']}={row['statistic']:.2f}, p={row['p']:.4f}, "
                f"{ci_label} {format_interval(row['ci_low'], row['ci_high'])} (N={row['n']})"
            )

    return pd.DataFrame(rows)
