"""
Estimated Marginal Means and Contrasts
======================================

Marginal means are computed per posterior draw from a prediction grid:

    grid   = every combination of the requested factor levels
             x every level of the remaining categorical predictors
    X_grid = patsy.build_design_matrices([design_info], grid)
    EMM    = mean over nuisance levels of X_grid @ b

Numeric predictors are held at their sample mean (zero for centred
covariates) unless ``at`` fixes them. Because the grid is built from the
configured level order and passed through the fitted model's own
``DesignInfo``, the results do not depend on the contrast coding or on the
order of rows in the data.

Contrast direction is fixed:

- ``pairwise_contrasts``: earlier level minus later level (``RL-MVR``)
- ``reverse_pairwise_contrasts``: later level minus earlier level; for the
  stimulus factor this is always ``Food-NonFood``
- ``difference_of_differences``: a within-level contrast compared across
  the levels of its ``by`` factor (``...|exposure[MVR-RL]``)

Canonical identifiers look like ``stimulus[Food-NonFood]|exposure=RL``.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from patsy import build_design_matrices

from ..errors import ConfigurationError
from .posterior import POSTERIOR_COLUMNS, credible_interval, describe_posterior

if TYPE_CHECKING:
    from .fitting import FittedModel


# =============================================================================
# MARGINAL MEANS
# =============================================================================

@dataclass(frozen=True)
class MarginalMeans:
    """Per-draw model-implied means (or slopes) for each cell of a factor grid."""
    outcome: str
    factors: Tuple[str, ...]
    levels: Mapping[str, Tuple[str, ...]]
    grid: pd.DataFrame
    draws: np.ndarray           # (n_draws, n_cells), columns follow grid rows
    quantity: str = "mean"      # or "slope:<variable>"

    def cell(self, **levels) -> np.ndarray:
        mask = np.ones(len(self.grid), dtype=bool)
        for factor, level in levels.items():
            mask &= (self.grid[factor] == level).to_numpy()
        if mask.sum() != 1:
            raise KeyError(f"No unique cell for {levels} in {self.factors}")
        return self.draws[:, int(np.flatnonzero(mask)[0])]

    def collapse(self, keep: Sequence[str]) -> Dict[Tuple[str, ...], np.ndarray]:
        """Average cells over every factor not in ``keep``; keys follow level order."""
        keep = list(keep)
        out: Dict[Tuple[str, ...], np.ndarray] = {}
        for combo in itertools.product(*(self.levels[f] for f in keep)):
            mask = np.ones(len(self.grid), dtype=bool)
            for factor, level in zip(keep, combo):
                mask &= (self.grid[factor] == level).to_numpy()
            out[combo] = self.draws[:, mask].mean(axis=1)
        return out

    def to_frame(self, ci_prob: float = 0.95) -> pd.DataFrame:
        rows = []
        for i, row in self.grid.reset_index(drop=True).iterrows():
            values = self.draws[:, i]
            low, high = credible_interval(values, ci_prob)
            rows.append({**row.to_dict(), "outcome": self.outcome, "mean": float(values.mean()),
                         "sd": float(values.std(ddof=1)), "ci_low": low, "ci_high": high})
        return pd.DataFrame(rows)


def _prediction_grid(
    design,
    factors: Sequence[str],
    at: Optional[Mapping[str, float]] = None,
) -> pd.DataFrame:
    at = dict(at or {})
    nuisance = [f for f in design.factor_levels if f not in factors]
    names = list(factors) + nuisance
    combos = list(itertools.product(*(design.factor_levels[f] for f in names)))
    grid = pd.DataFrame(combos, columns=names)
    for var, mean in design.numeric_means.items():
        grid[var] = float(at.get(var, mean))
    unknown = set(at) - set(design.numeric_means)
    if unknown:
        raise ConfigurationError(f"'at' refers to non-numeric or unused predictors: {sorted(unknown)}")
    return grid


def estimated_marginal_means(
    fitted: "FittedModel",
    factors: Sequence[str],
    outcome: Optional[str] = None,
    at: Optional[Mapping[str, float]] = None,
) -> MarginalMeans:
    """
    Per-draw estimated marginal means over the levels of ``factors``.

    Parameters
    ----------
    fitted : FittedModel
    factors : sequence of str
        Categorical predictors spanning the grid (e.g. ``["exposure", "stimulus"]``).
    outcome : str, optional
        Sub-model of a joint fit. Defaults to the first outcome.
    at : mapping, optional
        Values for numeric predictors (default: their sample mean).
    """
    design = fitted.design(outcome)
    factors = list(factors)
    missing = [f for f in factors if f not in design.factor_levels]
    if missing:
        raise ConfigurationError(
            f"{missing} are not categorical predictors of the '{design.outcome}' model"
        )

    grid = _prediction_grid(design, factors, at)
    X_grid = build_design_matrices([design.design_info], grid, return_type="dataframe")[0]
    X_grid = X_grid[design.columns].to_numpy(dtype=float)
    beta = fitted.fixed_effects(design.outcome).to_numpy(dtype=float)
    predictions = beta @ X_grid.T                               # (n_draws, n_grid)

    levels = {f: tuple(design.factor_levels[f]) for f in factors}
    cells = list(itertools.product(*(levels[f] for f in factors)))
    key_of_row = [tuple(row) for row in grid[factors].itertuples(index=False, name=None)]
    weights = np.zeros((len(grid), len(cells)))
    for j, cell in enumerate(cells):
        rows = [i for i, key in enumerate(key_of_row) if key == cell]
        weights[rows, j] = 1.0 / len(rows)

    return MarginalMeans(
        outcome=design.outcome,
        factors=tuple(factors),
        levels=levels,
        grid=pd.DataFrame(cells, columns=factors),
        draws=predictions @ weights,
    )


def marginal_slopes(
    fitted: "FittedModel",
    variable: str,
    factors: Sequence[str],
    outcome: Optional[str] = None,
    at: Optional[Mapping[str, float]] = None,
) -> MarginalMeans:
    """
    Per-draw slope of a numeric predictor within each cell of ``factors``:
    the marginal mean at ``variable = m + 1`` minus at ``variable = m``.
    """
    design = fitted.design(outcome)
    if variable not in design.numeric_means:
        raise ConfigurationError(f"'{variable}' is not a numeric predictor of '{design.outcome}'")
    at = dict(at or {})
    base = at.get(variable, design.numeric_means[variable])
    low = estimated_marginal_means(fitted, factors, outcome, {**at, variable: base})
    high = estimated_marginal_means(fitted, factors, outcome, {**at, variable: base + 1.0})
    return MarginalMeans(
        outcome=low.outcome,
        factors=low.factors,
        levels=low.levels,
        grid=low.grid,
        draws=high.draws - low.draws,
        quantity=f"slope:{variable}",
    )


# =============================================================================
# CONTRASTS
# =============================================================================

@dataclass(frozen=True)
class Contrast:
    """Draws of one contrast plus the structure that names it."""
    factor: str
    pair: Tuple[str, str]                   # (minuend, subtrahend)
    draws: np.ndarray
    outcome: str = ""
    by: Optional[str] = None
    by_level: Optional[str] = None
    across: Optional[Tuple[str, str]] = None  # second-order: by-levels compared
    quantity: str = "mean"

    @property
    def id(self) -> str:
        text = f"{self.factor}[{self.pair[0]}-{self.pair[1]}]"
        if self.quantity.startswith("slope:"):
            text = f"{self.quantity.split(':', 1)[1]}:{text}"
        if self.across is not None:
            return f"{text}|{self.by}[{self.across[0]}-{self.across[1]}]"
        if self.by is not None:
            return f"{text}|{self.by}={self.by_level}"
        return text


def _level_pairs(levels: Sequence[str], reverse: bool) -> List[Tuple[str, str]]:
    levels = list(levels)
    if reverse:
        return [(levels[j], levels[i]) for j in range(1, len(levels)) for i in range(j)]
    return [(levels[i], levels[j]) for i in range(len(levels)) for j in range(i + 1, len(levels))]


def _contrasts(emm: MarginalMeans, factor: str, by: Optional[str], reverse: bool) -> List[Contrast]:
    if factor not in emm.factors:
        raise ConfigurationError(f"'{factor}' is not a factor of these marginal means {emm.factors}")
    if by is not None and by not in emm.factors:
        raise ConfigurationError(f"'{by}' is not a factor of these marginal means {emm.factors}")
    if by == factor:
        raise ConfigurationError("Contrast factor and 'by' factor must differ")

    by_levels = emm.levels[by] if by is not None else (None,)
    keep = [factor] + ([by] if by is not None else [])
    collapsed = emm.collapse(keep)

    out = []
    for by_level in by_levels:
        suffix = (by_level,) if by is not None else ()
        for high, low in _level_pairs(emm.levels[factor], reverse):
            out.append(Contrast(
                factor=factor,
                pair=(high, low),
                draws=collapsed[(high,) + suffix] - collapsed[(low,) + suffix],
                outcome=emm.outcome,
                by=by,
                by_level=by_level,
                quantity=emm.quantity,
            ))
    return out


def pairwise_contrasts(emm: MarginalMeans, factor: str, by: Optional[str] = None) -> List[Contrast]:
    """All pairs in configured level order, earlier minus later."""
    return _contrasts(emm, factor, by, reverse=False)


def reverse_pairwise_contrasts(emm: MarginalMeans, factor: str, by: Optional[str] = None) -> List[Contrast]:
    """All pairs in configured level order, later minus earlier (``Food-NonFood``)."""
    return _contrasts(emm, factor, by, reverse=True)


def difference_of_differences(contrasts: Sequence[Contrast], reverse: bool = True) -> List[Contrast]:
    """
    Compare each within-level contrast across the levels of its ``by`` factor.

    With ``reverse=True`` (default) the later level is the minuend, e.g.
    ``stimulus[Food-NonFood]|exposure[MVR-RL]`` = ΔFCR(MVR) − ΔFCR(RL).
    """
    groups: Dict[Tuple, List[Contrast]] = {}
    for c in contrasts:
        if c.by is None or c.across is not None:
            raise ConfigurationError(f"{c.id} is not a within-level contrast")
        groups.setdefault((c.outcome, c.factor, c.pair, c.by, c.quantity), []).append(c)

    out = []
    for (outcome, factor, pair, by, quantity), members in groups.items():
        by_order = [m.by_level for m in members]
        draws = {m.by_level: m.draws for m in members}
        for high, low in _level_pairs(by_order, reverse):
            out.append(Contrast(
                factor=factor,
                pair=pair,
                draws=draws[high] - draws[low],
                outcome=outcome,
                by=by,
                across=(high, low),
                quantity=quantity,
            ))
    return out


def contrast_draws(contrasts: Sequence[Contrast]) -> Dict[str, np.ndarray]:
    return {c.id: c.draws for c in contrasts}


def summarize_contrasts(
    contrasts: Sequence[Contrast],
    ci_prob: float = 0.95,
    rope: Optional[Tuple[float, float]] = None,
    pd_threshold: float = 0.95,
    rope_threshold: float = 0.95,
) -> pd.DataFrame:
    """``PosteriorSummary`` frame keyed by canonical contrast identifiers."""
    rows = [
        describe_posterior(
            c.draws,
            label=c.id,
            ci_prob=ci_prob,
            rope=rope,
            pd_threshold=pd_threshold,
            rope_threshold=rope_threshold,
        )
        for c in contrasts
    ]
    summary = pd.DataFrame(rows, columns=POSTERIOR_COLUMNS)
    summary.insert(1, "outcome", [c.outcome for c in contrasts])
    return summary
