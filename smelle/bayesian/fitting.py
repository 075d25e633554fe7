"""
Hypothesis Model Fitter
=======================

Builds a PyMC multilevel regression from a ``ModelSpec`` (or a joint model
from a ``MediationSpec``), samples it, checks convergence and caches the
result.

Model (per outcome ``y`` with design ``X`` and participant index ``j``):

    y ~ Normal(X @ b + u[j], sigma)
    b[Intercept] ~ Normal(mean(y), s_Intercept * sd(y))
    b[k]         ~ Normal(0, s_b * sd(y) / sd(X[:, k]))
    sigma        ~ HalfNormal(s_sigma * sd(y))
    u            = z * sd_u,  z ~ Normal(0, 1),  sd_u ~ HalfNormal(s_sd * sd(y))

Random intercepts that share a correlation tag across sub-models are drawn
jointly with an LKJ Cholesky prior on their covariance.

Usage:
    from smelle.bayesian import ModelFitter, ModelSpec

    fitter = ModelFitter(config)
    fitted = fitter.fit(ModelSpec("h1a", "craving ~ exposure * stimulus + (1 | participant)"), df)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import pymc as pm
import arviz as az

from ..errors import ConvergenceError
from .cache import ModelCache
from .design import BuiltDesign, build_design
from .specification import AnySpec, spec_hash

if TYPE_CHECKING:
    from ..config import AnalysisConfig


# Latent standard-normal offsets and Cholesky factors are not reported
_UNREPORTED_PREFIXES = ("z_", "chol_", "cor_")


# =============================================================================
# FITTED MODEL
# =============================================================================

@dataclass(frozen=True)
class FittedModel:
    """A sampled (or cache-loaded) model and the designs it was fitted on."""
    spec: AnySpec
    key: str
    idata: az.InferenceData
    designs: Tuple[BuiltDesign, ...]
    from_cache: bool = False

    def design(self, outcome: Optional[str] = None) -> BuiltDesign:
        if outcome is None:
            return self.designs[0]
        for d in self.designs:
            if d.outcome == outcome:
                return d
        raise KeyError(f"Model '{self.spec.name}' has no outcome '{outcome}'")

    def draws(self, var: str) -> np.ndarray:
        """Posterior draws of ``var`` with chains and draws flattened into axis 0."""
        values = self.idata.posterior[var].values
        return values.reshape((-1,) + values.shape[2:])

    def fixed_effects(self, outcome: Optional[str] = None) -> pd.DataFrame:
        """Draws x design columns for the fixed effects of one outcome."""
        design = self.design(outcome)
        var = f"b_{design.outcome}"
        coef = self.idata.posterior[var].coords[f"{design.outcome}_coef"].values
        frame = pd.DataFrame(self.draws(var), columns=[str(c) for c in coef])
        return frame[design.columns]


# =============================================================================
# PYMC MODEL
# =============================================================================

def _fixed_effect_priors(design: BuiltDesign, scales: Dict[str, float]) -> Tuple[np.ndarray, np.ndarray]:
    sd_y = design.outcome_sd
    mu = np.zeros(len(design.columns))
    sigma = np.empty(len(design.columns))
    for i, col in enumerate(design.columns):
        if col == "Intercept":
            mu[i] = design.outcome_mean
            sigma[i] = scales["Intercept"] * sd_y
            continue
        sd_x = float(design.X[col].std(ddof=1))
        sigma[i] = scales["b"] * sd_y / sd_x if sd_x > 0 else scales["b"] * sd_y
    return mu, sigma


def build_model(spec: AnySpec, designs: Sequence[BuiltDesign]) -> pm.Model:
    """
    PyMC model for one specification and its built designs.

    Variables are prefixed by outcome (``b_craving``, ``sigma_craving``,
    ``sd_participant_craving``) so sub-models of a joint fit never collide.
    """
    submodels = {m.outcome: m for m in spec.submodels}

    coords: Dict[str, List[str]] = {}
    group_levels: Dict[str, List[str]] = {}
    for design in designs:
        coords[f"{design.outcome}_coef"] = design.columns
        for group, levels in design.group_levels.items():
            group_levels[group] = sorted(set(group_levels.get(group, [])) | set(levels))
    coords.update(group_levels)

    shared = spec.shared_terms() if spec.is_mediation else {}
    shared_outcomes = {(tag, group): outcomes for (tag, group), outcomes in shared.items()
                       if len(outcomes) > 1}

    with pm.Model(coords=coords) as model:
        # Correlated intercepts: one LKJ block per (tag, group)
        correlated: Dict[Tuple[str, str], object] = {}
        for (tag, group), outcomes in shared_outcomes.items():
            eta = min(submodels[o].prior_scales["cor"] for o in outcomes)
            chol, corr, stds = pm.LKJCholeskyCov(
                f"chol_{tag}_{group}",
                n=len(outcomes),
                eta=eta,
                sd_dist=pm.HalfNormal.dist(sigma=1.0, shape=len(outcomes)),
                compute_corr=True,
            )
            pm.Deterministic(f"cor_{tag}_{group}", corr)
            z = pm.Normal(f"z_{tag}_{group}", 0.0, 1.0, shape=(len(group_levels[group]), len(outcomes)))
            correlated[(tag, group)] = (outcomes, pm.math.dot(z, chol.T), stds)

        for design in designs:
            outcome = design.outcome
            scales = submodels[outcome].prior_scales
            sd_y = design.outcome_sd

            b_mu, b_sigma = _fixed_effect_priors(design, scales)
            b = pm.Normal(f"b_{outcome}", mu=b_mu, sigma=b_sigma, dims=f"{outcome}_coef")
            mu = pm.math.dot(design.X.to_numpy(dtype=float), b)

            for term in design.parsed.random:
                # Map this design's group codes onto the union of levels
                levels = group_levels[term.group]
                index = pd.Categorical(
                    np.asarray(design.group_levels[term.group])[design.group_codes[term.group]],
                    categories=levels,
                ).codes
                block = correlated.get((term.tag, term.group))
                if block is not None:
                    outcomes, offsets, stds = block
                    k = outcomes.index(outcome)
                    pm.Deterministic(f"sd_{term.group}_{outcome}", stds[k] * sd_y)
                    u = offsets[:, k] * sd_y
                else:
                    sd_u = pm.HalfNormal(f"sd_{term.group}_{outcome}", sigma=scales["sd"] * sd_y)
                    z = pm.Normal(f"z_{term.group}_{outcome}", 0.0, 1.0, dims=term.group)
                    u = z * sd_u
                mu = mu + u[index]

            sigma = pm.HalfNormal(f"sigma_{outcome}", sigma=scales["sigma"] * sd_y)
            pm.Normal(outcome, mu=mu, sigma=sigma, observed=design.y)

    return model


def pymc_sampler(
    model: pm.Model,
    *,
    designs: Sequence[BuiltDesign],
    config: "AnalysisConfig",
    target_accept: float,
    verbose: bool = True,
) -> az.InferenceData:
    """Default sampler: NUTS through ``pm.sample``."""
    with model:
        return pm.sample(
            draws=config.draws,
            tune=config.tune,
            chains=config.chains,
            cores=config.cores,
            target_accept=target_accept,
            random_seed=config.random_seed,
            progressbar=verbose,
            return_inferencedata=True,
        )


# =============================================================================
# CONVERGENCE
# =============================================================================

def _flatten(dataset, value_name: str) -> pd.DataFrame:
    rows = []
    for name, da in dataset.data_vars.items():
        values = np.asarray(da.values)
        if values.ndim == 0:
            rows.append({"parameter": name, value_name: float(values)})
            continue
        for idx in np.ndindex(values.shape):
            labels = [str(da.coords[d].values[i]) if d in da.coords else str(i)
                      for d, i in zip(da.dims, idx)]
            rows.append({"parameter": f"{name}[{','.join(labels)}]", value_name: float(values[idx])})
    return pd.DataFrame(rows, columns=["parameter", value_name])


def convergence_diagnostics(idata: az.InferenceData) -> pd.DataFrame:
    """R-hat and bulk/tail ESS per reported parameter."""
    var_names = [v for v in idata.posterior.data_vars if not v.startswith(_UNREPORTED_PREFIXES)]
    rhat = _flatten(az.rhat(idata, var_names=var_names), "r_hat")
    ess_bulk = _flatten(az.ess(idata, var_names=var_names, method="bulk"), "ess_bulk")
    ess_tail = _flatten(az.ess(idata, var_names=var_names, method="tail"), "ess_tail")
    return rhat.merge(ess_bulk, on="parameter").merge(ess_tail, on="parameter")


def check_convergence(
    idata: az.InferenceData,
    rhat_threshold: float = 1.01,
    ess_threshold: float = 400.0,
    model_name: str = "model",
) -> pd.DataFrame:
    """
    Raise ``ConvergenceError`` unless every parameter has R-hat below the
    threshold and bulk ESS above it. Returns the diagnostics table otherwise.
    """
    diagnostics = convergence_diagnostics(idata)
    ok = (diagnostics["r_hat"] <= rhat_threshold) & (diagnostics["ess_bulk"] >= ess_threshold)
    if not ok.all():
        failing = diagnostics.loc[~ok, "parameter"].tolist()
        raise ConvergenceError(model_name, diagnostics, failing)
    return diagnostics


# =============================================================================
# FITTER
# =============================================================================

Sampler = Callable[..., az.InferenceData]


class ModelFitter:
    """
    Fit specifications against a dataset with caching.

    Parameters
    ----------
    config : AnalysisConfig
        Sampler settings, thresholds, level order, coding and cache location.
    cache : ModelCache, optional
        Defaults to a cache under ``config.cache_dir``.
    sampler : callable, optional
        ``sampler(model, designs=..., config=..., target_accept=..., verbose=...)``
        returning ``InferenceData``. Defaults to ``pymc_sampler``.
    """

    def __init__(
        self,
        config: "AnalysisConfig",
        cache: Optional[ModelCache] = None,
        sampler: Optional[Sampler] = None,
        verbose: bool = True,
    ):
        self.config = config
        self.cache = cache if cache is not None else ModelCache(
            config.cache_dir, refit_on_change=config.refit_on_change, verbose=verbose
        )
        self.sampler = sampler or pymc_sampler
        self.verbose = verbose
        self.n_sampled = 0

    def build_designs(self, spec: AnySpec, df: pd.DataFrame) -> Tuple[BuiltDesign, ...]:
        return tuple(
            build_design(df, m.parsed, self.config, dedupe_on=m.dedupe_on)
            for m in spec.submodels
        )

    def target_accept(self, spec: AnySpec) -> float:
        return self.config.mediation_adapt_delta if spec.is_mediation else self.config.adapt_delta

    def fit(self, spec: AnySpec, df: pd.DataFrame) -> FittedModel:
        """
        Return the fitted model for ``spec``, sampling only on a cache miss.

        Raises
        ------
        ConvergenceError
            When the fresh fit fails the R-hat/ESS checks. Nothing is cached.
        CacheMismatchError
            In refit-on-change mode, when the cache holds a different spec
            under the same name.
        """
        variant = self.config.cache_variant
        key = spec_hash(spec, self.config, variant)
        designs = self.build_designs(spec, df)

        idata = self.cache.lookup(spec, variant, key)
        if idata is not None:
            return FittedModel(spec=spec, key=key, idata=idata, designs=designs, from_cache=True)

        if self.verbose:
            n_rows = ", ".join(f"{d.outcome}: {len(d.y)}" for d in designs)
            print(
                f"  Sampling {spec.name} ({self.config.chains} chains x {self.config.draws} draws, "
                f"target_accept={self.target_accept(spec)}; rows {n_rows})"
            )

        model = build_model(spec, designs)
        idata = self.sampler(
            model,
            designs=designs,
            config=self.config,
            target_accept=self.target_accept(spec),
            verbose=self.verbose,
        )
        self.n_sampled += 1

        check_convergence(
            idata,
            rhat_threshold=self.config.rhat_threshold,
            ess_threshold=self.config.ess_threshold,
            model_name=spec.name,
        )
        self.cache.store(spec, variant, key, idata)
        return FittedModel(spec=spec, key=key, idata=idata, designs=designs, from_cache=False)
