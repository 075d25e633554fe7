"""
Design matrices for the fixed part of a model.

Categorical predictors are rewritten into explicit patsy contrast terms,
``C(exposure, Treatment(reference='RL'), levels=[...])`` or
``C(exposure, Sum, levels=[...])``, so the level order and the coding
scheme come from the configuration and never from the order of the rows.
The patsy ``DesignInfo`` is kept for building prediction grids later.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd
from patsy import DesignInfo, EvalFactor, ModelDesc, Term, dmatrices

from ..errors import InsufficientDataError, SchemaError
from .specification import ParsedFormula

if TYPE_CHECKING:
    from ..config import AnalysisConfig


@dataclass
class BuiltDesign:
    """Outcome vector, fixed-effect design and grouping indices for one formula."""
    parsed: ParsedFormula
    y: np.ndarray
    X: pd.DataFrame
    design_info: DesignInfo
    data: pd.DataFrame
    group_levels: Dict[str, List[str]] = field(default_factory=dict)
    group_codes: Dict[str, np.ndarray] = field(default_factory=dict)
    factor_levels: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    numeric_means: Dict[str, float] = field(default_factory=dict)

    @property
    def outcome(self) -> str:
        return self.parsed.outcome

    @property
    def columns(self) -> List[str]:
        return list(self.X.columns)

    @property
    def outcome_sd(self) -> float:
        sd = float(np.std(self.y, ddof=1)) if len(self.y) > 1 else np.nan
        return sd if np.isfinite(sd) and sd > 0 else 1.0

    @property
    def outcome_mean(self) -> float:
        return float(np.mean(self.y))


def formula_variables(rhs: str, columns: Sequence[str]) -> List[str]:
    """Dataset columns referenced by a formula right-hand side, in order of appearance."""
    found: List[str] = []
    for token in re.findall(r"[A-Za-z_][A-Za-z0-9_.]*", rhs):
        if token in columns and token not in found:
            found.append(token)
    return found


def _is_categorical(series: pd.Series) -> bool:
    return isinstance(series.dtype, pd.CategoricalDtype) or not pd.api.types.is_numeric_dtype(series)


def _observed_levels(series: pd.Series) -> Tuple[str, ...]:
    if isinstance(series.dtype, pd.CategoricalDtype):
        present = set(series.dropna().astype(str))
        return tuple(str(c) for c in series.cat.categories if str(c) in present)
    return tuple(sorted(series.dropna().astype(str).unique()))


def coded_factor(name: str, levels: Sequence[str], coding: str) -> EvalFactor:
    """patsy factor for one categorical predictor under the chosen contrast coding."""
    levels = list(levels)
    if coding == "sum":
        code = f"C({name}, Sum, levels={levels!r})"
    else:
        code = f"C({name}, Treatment(reference={levels[0]!r}), levels={levels!r})"
    return EvalFactor(code)


def _rewrite_terms(terms: Sequence[Term], coded: Mapping[str, EvalFactor]) -> List[Term]:
    rewritten = []
    for term in terms:
        factors = [coded.get(f.code, f) for f in term.factors]
        rewritten.append(Term(factors))
    return rewritten


def build_design(
    df: pd.DataFrame,
    parsed: ParsedFormula,
    config: "AnalysisConfig",
    dedupe_on: Sequence[str] = (),
) -> BuiltDesign:
    """
    Build the fixed-effect design matrix and group indices for one formula.

    Rows with a missing outcome, predictor or grouping value are dropped
    (complete cases). Exposure and stimulus take their level order from the
    configuration; other categorical predictors keep their observed levels.

    Raises
    ------
    SchemaError
        If the outcome or a grouping column is missing from ``df``.
    InsufficientDataError
        If fewer than two complete rows remain.
    """
    required = [parsed.outcome] + parsed.groups + list(dedupe_on)
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise SchemaError(missing, where=f"data for '{parsed.outcome}' model")

    variables = formula_variables(parsed.fixed_rhs, df.columns)
    used = list(dict.fromkeys([parsed.outcome] + variables + parsed.groups + list(dedupe_on)))
    data = df[used].dropna().copy()
    if dedupe_on:
        data = data.drop_duplicates(subset=list(dedupe_on)).copy()
    data = data.reset_index(drop=True)
    if len(data) < 2:
        raise InsufficientDataError(parsed.fixed_formula, len(data))

    configured = config.factor_levels
    factor_levels: Dict[str, Tuple[str, ...]] = {}
    numeric_means: Dict[str, float] = {}
    coded: Dict[str, EvalFactor] = {}
    for var in variables:
        if var in configured:
            levels = tuple(configured[var])
        elif _is_categorical(data[var]):
            levels = _observed_levels(data[var])
        else:
            numeric_means[var] = float(pd.to_numeric(data[var]).mean())
            continue
        data[var] = data[var].astype(str)
        factor_levels[var] = levels
        coded[var] = coded_factor(var, levels, config.contrast_coding)

    desc = ModelDesc.from_formula(parsed.fixed_formula)
    desc = ModelDesc(desc.lhs_termlist, _rewrite_terms(desc.rhs_termlist, coded))
    y, X = dmatrices(desc, data, return_type="dataframe", NA_action="raise")

    group_levels: Dict[str, List[str]] = {}
    group_codes: Dict[str, np.ndarray] = {}
    for group in parsed.groups:
        labels = data[group].astype(str)
        levels = sorted(labels.unique())
        group_levels[group] = levels
        group_codes[group] = pd.Categorical(labels, categories=levels).codes.astype(int)

    return BuiltDesign(
        parsed=parsed,
        y=y.iloc[:, 0].to_numpy(dtype=float),
        X=X,
        design_info=X.design_info,
        data=data,
        group_levels=group_levels,
        group_codes=group_codes,
        factor_levels=factor_levels,
        numeric_means=numeric_means,
    )
