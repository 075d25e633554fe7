"""
Report Sections
===============

Each section of the report is a registered analysis:

- descriptives: condition means, sample description, point-range plots
- manipulation_checks: hunger, presence and VR familiarity one-sample tests
- h1a / h1b: ΔFCR (Food − NonFood) within each exposure mode, craving / salivation
- h1c / h1d: ΔFCR compared across exposure modes (difference of differences,
  ROPE equivalence), craving / salivation
- h2: presence as mediator of the exposure-mode effect on craving ΔFCR
- exploratory: moderation of ΔFCR by trait imagery, BMI and hunger

Sections are isolated: when all sections run, an error in one is printed and
recorded in the status table and the remaining sections still run.

Usage:
    python -m smelle                       # all sections
    python -m smelle --list
    python -m smelle -s h1a --variant excluded

    from smelle.report import run
    results = run("h1a", config)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd

from ..basic_analysis import (
    CONDITION_OUTCOMES,
    DESCRIPTIVE_VARS,
    compute_descriptive_stats,
    compute_gender_counts,
    condition_means,
    default_checks,
    plot_condition_means,
    print_section_header,
    run_manipulation_checks,
)
from ..bayesian import (
    FittedModel,
    MediationSpec,
    ModelFitter,
    ModelSpec,
    difference_of_differences,
    estimated_marginal_means,
    marginal_slopes,
    mediation_effects,
    reverse_pairwise_contrasts,
    rope_range,
    summarize_contrasts,
)
from ..config import AnalysisConfig, check_consistent_levels
from ..errors import ConfigurationError, ConvergenceError
from ..preprocessing import FCR_OUTCOMES, load_dataset
from .figures import plot_point_range, save_figure
from .tables import format_posterior_table, save_table


# =============================================================================
# MODEL SPECIFICATIONS
# =============================================================================

FCR_FORMULA = "{outcome} ~ exposure * stimulus + (1 | participant)"

FCR_MODELS: Dict[str, ModelSpec] = {
    outcome: ModelSpec(name=f"fcr_{outcome}", formula=FCR_FORMULA.format(outcome=outcome))
    for outcome in FCR_OUTCOMES
}

MEDIATION_MODEL = MediationSpec(
    name="mediation_presence_craving",
    models=(
        ModelSpec(
            name="presence_by_mode",
            formula="presence ~ exposure + (1 | p | participant)",
            dedupe_on=("participant", "exposure"),
        ),
        ModelSpec(
            name="craving_by_presence",
            formula="craving ~ exposure * stimulus + presence_c * stimulus + (1 | p | participant)",
        ),
    ),
    residual_correlation=False,
)

MODERATORS: Dict[str, str] = {
    "z_trait_imagery": "Trait imagery",
    "z_bmi": "BMI",
    "z_hunger": "Hunger",
}


def moderation_model(outcome: str, moderator: str) -> ModelSpec:
    return ModelSpec(
        name=f"moderation_{outcome}_{moderator}",
        formula=f"{outcome} ~ exposure * stimulus * {moderator} + (1 | participant)",
    )


# =============================================================================
# CONTEXT
# =============================================================================

class ReportContext:
    """
    Shared state of one report run: configuration, dataset, fitter, outputs.

    The dataset is loaded on first use; fitted models are memoised by name so
    sections that share a model (h1a and h1c) sample it once.
    """

    def __init__(
        self,
        config: AnalysisConfig,
        data: Optional[pd.DataFrame] = None,
        fitter: Optional[ModelFitter] = None,
        verbose: bool = True,
    ):
        self.config = config
        self.fitter = fitter or ModelFitter(config, verbose=verbose)
        check_consistent_levels([config, self.fitter.config])
        self.verbose = verbose
        self._data = data
        self._fits: Dict[str, FittedModel] = {}

    @property
    def data(self) -> pd.DataFrame:
        if self._data is None:
            self._data = load_dataset(self.config, verbose=self.verbose)
        self._check_levels(self._data)
        return self._data

    def _check_levels(self, df: pd.DataFrame) -> None:
        for factor, levels in self.config.factor_levels.items():
            if factor in df.columns and isinstance(df[factor].dtype, pd.CategoricalDtype):
                found = tuple(str(c) for c in df[factor].cat.categories)
                if found != tuple(levels):
                    raise ConfigurationError(
                        f"Dataset {factor} levels {found} differ from the configured order {tuple(levels)}"
                    )

    def output_dir(self, section: str) -> Path:
        path = self.config.variant_output_dir / section
        path.mkdir(parents=True, exist_ok=True)
        return path

    def fit(self, spec) -> FittedModel:
        if spec.name not in self._fits:
            self._fits[spec.name] = self.fitter.fit(spec, self.data)
        return self._fits[spec.name]

    def rope(self, outcome: str) -> Tuple[float, float]:
        """ROPE from the raw (unstandardized) SD of the outcome in the analysed sample."""
        sd = float(pd.to_numeric(self.data[outcome], errors="coerce").std(ddof=1))
        return rope_range(sd, self.config.rope_scale)

    def summarize(self, contrasts, outcome: str) -> pd.DataFrame:
        return summarize_contrasts(
            contrasts,
            ci_prob=self.config.ci_prob,
            rope=self.rope(outcome),
            pd_threshold=self.config.pd_threshold,
            rope_threshold=self.config.rope_threshold,
        )

    def export(
        self,
        summary: pd.DataFrame,
        section: str,
        stem: str,
        title: str,
        xlabel: str = "Posterior estimate",
        rope: Optional[Tuple[float, float]] = None,
    ) -> None:
        out = self.output_dir(section)
        summary.to_csv(out / f"{stem}_posterior.csv", index=False, encoding="utf-8-sig")
        table = format_posterior_table(summary, ci_prob=self.config.ci_prob)
        csv_path, _ = save_table(table, stem, out)
        fig = plot_point_range(summary, title, xlabel=xlabel, rope=rope)
        fig_path = save_figure(fig, stem, out)
        if self.verbose:
            print(table.to_string(index=False))
            print(f"\n  Output: {csv_path}")
            print(f"  Figure: {fig_path}")


# =============================================================================
# ANALYSIS REGISTRY
# =============================================================================

@dataclass
class AnalysisSpec:
    """Specification for a report section."""
    name: str
    description: str
    function: Callable


ANALYSES: Dict[str, AnalysisSpec] = {}


def register_analysis(name: str, description: str):
    """Decorator to register a report section."""
    def decorator(func: Callable):
        ANALYSES[name] = AnalysisSpec(
            name=name,
            description=description,
            function=func
        )
        return func
    return decorator


# =============================================================================
# DESCRIPTIVES AND MANIPULATION CHECKS
# =============================================================================

@register_analysis(
    name="descriptives",
    description="Condition means (N, M, SD, SE) and sample description"
)
def analyze_descriptives(ctx: ReportContext) -> Dict[str, pd.DataFrame]:
    if ctx.verbose:
        print_section_header("DESCRIPTIVE STATISTICS")

    df = ctx.data
    out = ctx.output_dir("descriptives")

    means = []
    for outcome, label in CONDITION_OUTCOMES:
        if outcome not in df.columns:
            if ctx.verbose:
                print(f"  [SKIP] {label}: column '{outcome}' not found")
            continue
        summary = condition_means(df, outcome)
        means.append(summary)
        fig = plot_condition_means(summary, label)
        save_figure(fig, f"condition_means_{outcome}", out)

    condition_table = pd.concat(means, ignore_index=True) if means else pd.DataFrame()
    sample_table = compute_descriptive_stats(df, DESCRIPTIVE_VARS)
    gender_table = compute_gender_counts(df)

    condition_table.to_csv(out / "condition_means.csv", index=False, encoding="utf-8-sig")
    sample_table.to_csv(out / "sample_descriptives.csv", index=False, encoding="utf-8-sig")
    gender_table.to_csv(out / "gender_counts.csv", index=False, encoding="utf-8-sig")

    if ctx.verbose:
        print(f"\n  N participants: {df['participant'].nunique()}, rows: {len(df)}")
        print(condition_table.round(2).to_string(index=False))
        print(f"\n  Output: {out}")

    return {
        "condition_means": condition_table,
        "sample": sample_table,
        "gender": gender_table,
    }


@register_analysis(
    name="manipulation_checks",
    description="One-sample tests: hunger (z), presence per mode (t), VR familiarity (t)"
)
def analyze_manipulation_checks(ctx: ReportContext) -> pd.DataFrame:
    if ctx.verbose:
        print_section_header("MANIPULATION CHECKS")

    results = run_manipulation_checks(
        ctx.data,
        default_checks(ctx.config),
        alpha=1 - ctx.config.ci_prob,
        verbose=ctx.verbose,
    )
    out = ctx.output_dir("manipulation_checks")
    results.to_csv(out / "manipulation_checks.csv", index=False, encoding="utf-8-sig")
    results.to_markdown(out / "manipulation_checks.md", index=False)

    if ctx.verbose:
        print(f"\n  Output: {out / 'manipulation_checks.csv'}")
    return results


# =============================================================================
# H1: FOOD-CUE RESPONSES
# =============================================================================

def _fcr_within_modes(ctx: ReportContext, outcome: str, section: str) -> pd.DataFrame:
    """ΔFCR within each exposure mode; supported when positive with pd >= threshold."""
    fitted = ctx.fit(FCR_MODELS[outcome])
    emm = estimated_marginal_means(fitted, ["exposure", "stimulus"])
    emm.to_frame(ctx.config.ci_prob).to_csv(
        ctx.output_dir(section) / f"emm_{outcome}.csv", index=False, encoding="utf-8-sig"
    )

    contrasts = reverse_pairwise_contrasts(emm, "stimulus", by="exposure")
    summary = ctx.summarize(contrasts, outcome)
    summary["hypothesis_supported"] = (summary["mean"] > 0) & summary["direction_supported"]

    ctx.export(
        summary, section, f"dfcr_{outcome}",
        title=f"ΔFCR within exposure modes: {FCR_OUTCOMES[outcome]}",
        xlabel=f"Food − NonFood ({FCR_OUTCOMES[outcome]})",
        rope=ctx.rope(outcome),
    )
    return summary


def _fcr_across_modes(ctx: ReportContext, outcome: str, section: str) -> pd.DataFrame:
    """Difference of ΔFCR between exposure modes, with ROPE equivalence."""
    fitted = ctx.fit(FCR_MODELS[outcome])
    emm = estimated_marginal_means(fitted, ["exposure", "stimulus"])
    within = reverse_pairwise_contrasts(emm, "stimulus", by="exposure")
    contrasts = difference_of_differences(within, reverse=True)
    summary = ctx.summarize(contrasts, outcome)

    ctx.export(
        summary, section, f"dfcr_modes_{outcome}",
        title=f"ΔFCR compared across exposure modes: {FCR_OUTCOMES[outcome]}",
        xlabel=f"Difference in ΔFCR ({FCR_OUTCOMES[outcome]})",
        rope=ctx.rope(outcome),
    )
    return summary


@register_analysis(
    name="h1a",
    description="H1A: craving ΔFCR (Food − NonFood) within each exposure mode"
)
def analyze_h1a(ctx: ReportContext) -> pd.DataFrame:
    if ctx.verbose:
        print_section_header("H1A: CRAVING FOOD-CUE RESPONSE PER EXPOSURE MODE")
    return _fcr_within_modes(ctx, "craving", "h1a")


@register_analysis(
    name="h1b",
    description="H1B: salivation ΔFCR (Food − NonFood) within each exposure mode"
)
def analyze_h1b(ctx: ReportContext) -> pd.DataFrame:
    if ctx.verbose:
        print_section_header("H1B: SALIVATION FOOD-CUE RESPONSE PER EXPOSURE MODE")
    return _fcr_within_modes(ctx, "salivation", "h1b")


@register_analysis(
    name="h1c",
    description="H1C: craving ΔFCR compared across exposure modes (ROPE equivalence)"
)
def analyze_h1c(ctx: ReportContext) -> pd.DataFrame:
    if ctx.verbose:
        print_section_header("H1C: CRAVING ΔFCR ACROSS EXPOSURE MODES")
    return _fcr_across_modes(ctx, "craving", "h1c")


@register_analysis(
    name="h1d",
    description="H1D: salivation ΔFCR compared across exposure modes (ROPE equivalence)"
)
def analyze_h1d(ctx: ReportContext) -> pd.DataFrame:
    if ctx.verbose:
        print_section_header("H1D: SALIVATION ΔFCR ACROSS EXPOSURE MODES")
    return _fcr_across_modes(ctx, "salivation", "h1d")


# =============================================================================
# H2: PRESENCE MEDIATION
# =============================================================================

@register_analysis(
    name="h2",
    description="H2: presence mediates the VR mode effect on craving ΔFCR"
)
def analyze_h2(ctx: ReportContext) -> pd.DataFrame:
    if ctx.verbose:
        print_section_header("H2: PRESENCE MEDIATION (JOINT MODEL)")

    fitted = ctx.fit(MEDIATION_MODEL)
    rope = ctx.rope("craving")
    reference = "RL"

    summaries = []
    for mode in ctx.config.exposure_levels:
        if mode == reference:
            continue
        paths = mediation_effects(
            fitted,
            mediator="presence",
            outcome="craving",
            contrast=(mode, reference),
            ci_prob=ctx.config.ci_prob,
            tolerance=ctx.config.instability_tolerance,
        )
        summary = paths.summary(
            ci_prob=ctx.config.ci_prob,
            rope=rope,
            pd_threshold=ctx.config.pd_threshold,
            rope_threshold=ctx.config.rope_threshold,
        )
        summary.insert(1, "contrast", f"{mode}-{reference}")
        summaries.append(summary)

        if ctx.verbose and paths.unstable:
            print(
                f"  [WARNING] Proportion mediated ({mode} vs {reference}) is unstable: "
                f"{100 * paths.opposite_sign_share:.1f}% of total-effect draws have the opposite sign"
                + (f", {paths.n_zero_total} zero denominators" if paths.n_zero_total else "")
            )

    summary = pd.concat(summaries, ignore_index=True)
    effects = summary[~summary["parameter"].str.startswith("proportion_mediated")]
    ctx.export(
        summary, "h2", "mediation_presence",
        title="Presence mediation of craving ΔFCR",
        xlabel="Effect on craving ΔFCR",
        rope=rope,
    )
    fig = plot_point_range(effects, "Mediation paths (effects only)", rope=rope)
    save_figure(fig, "mediation_paths_effects", ctx.output_dir("h2"))
    return summary


# =============================================================================
# EXPLORATORY: MODERATION
# =============================================================================

@register_analysis(
    name="exploratory",
    description="Moderation of ΔFCR by trait imagery, BMI and hunger"
)
def analyze_exploratory(ctx: ReportContext) -> pd.DataFrame:
    if ctx.verbose:
        print_section_header("EXPLORATORY: MODERATION OF ΔFCR")

    all_summaries = []
    for outcome in FCR_OUTCOMES:
        for moderator, label in MODERATORS.items():
            if moderator not in ctx.data.columns:
                if ctx.verbose:
                    print(f"  [SKIP] {label}: column '{moderator}' not found")
                continue
            if ctx.verbose:
                print(f"\n  {FCR_OUTCOMES[outcome]} x {label}")
                print("  " + "-" * 50)

            fitted = ctx.fit(moderation_model(outcome, moderator))
            slopes = marginal_slopes(fitted, moderator, ["exposure", "stimulus"])
            contrasts = reverse_pairwise_contrasts(slopes, "stimulus", by="exposure")
            summary = ctx.summarize(contrasts, outcome)
            summary.insert(2, "moderator", moderator)
            all_summaries.append(summary)

            ctx.export(
                summary, "exploratory", f"moderation_{outcome}_{moderator}",
                title=f"{label} moderation of ΔFCR: {FCR_OUTCOMES[outcome]}",
                xlabel=f"Change in ΔFCR per SD of {label.lower()}",
                rope=ctx.rope(outcome),
            )

    return pd.concat(all_summaries, ignore_index=True) if all_summaries else pd.DataFrame()


# =============================================================================
# RUNNER
# =============================================================================

SECTION_ORDER = [
    "descriptives",
    "manipulation_checks",
    "h1a",
    "h1b",
    "h1c",
    "h1d",
    "h2",
    "exploratory",
]


def _report_error(name: str, exc: Exception) -> None:
    print(f"  ERROR in {name}: {exc}")
    if isinstance(exc, ConvergenceError):
        failing = exc.diagnostics[exc.diagnostics["parameter"].isin(exc.failing)]
        print(failing.to_string(index=False))


def run(
    section: Optional[str] = None,
    config: Optional[AnalysisConfig] = None,
    verbose: bool = True,
    context: Optional[ReportContext] = None,
) -> Dict[str, Any]:
    """
    Run one report section or all of them.

    Parameters
    ----------
    section : str, optional
        Section to run. If None, runs all in report order; failures are
        printed and recorded and do not stop the remaining sections.
    config : AnalysisConfig, optional
        Defaults to ``AnalysisConfig()``.
    context : ReportContext, optional
        Pre-built context (dataset, fitter); takes precedence over ``config``.

    Returns
    -------
    dict
        Section results plus ``"status"``: a DataFrame with one row per
        section (``ok`` or ``error`` and the message).
    """
    if context is None:
        context = ReportContext(config or AnalysisConfig(), verbose=verbose)
    ctx = context

    if verbose:
        print("=" * 70)
        print("SMELL-E FOOD-CUE REACTIVITY REPORT")
        print(f"Variant: {ctx.config.cache_variant}, coding: {ctx.config.contrast_coding}, "
              f"exposure order: {', '.join(ctx.config.exposure_levels)}")
        print("=" * 70)

    results: Dict[str, Any] = {}
    status: List[Dict[str, Any]] = []

    if section:
        if section not in ANALYSES:
            raise ValueError(f"Unknown section: {section}. Available: {list(ANALYSES.keys())}")
        results[section] = ANALYSES[section].function(ctx)
        status.append({"section": section, "status": "ok", "error": None})
    else:
        order = [n for n in SECTION_ORDER if n in ANALYSES]
        order += [n for n in ANALYSES if n not in SECTION_ORDER]
        for name in order:
            try:
                results[name] = ANALYSES[name].function(ctx)
                status.append({"section": name, "status": "ok", "error": None})
            except Exception as e:
                _report_error(name, e)
                status.append({"section": name, "status": "error",
                               "error": f"{type(e).__name__}: {e}"})

    status_df = pd.DataFrame(status, columns=["section", "status", "error"])
    results["status"] = status_df

    if verbose:
        n_failed = int((status_df["status"] == "error").sum())
        print("\n" + "=" * 70)
        print(f"REPORT COMPLETE ({len(status_df) - n_failed} ok, {n_failed} failed)")
        print(f"Output: {ctx.config.variant_output_dir}")
        print("=" * 70)

    return results


def list_analyses() -> None:
    """Print available sections."""
    print("\nAvailable Report Sections:")
    print("-" * 60)
    order = [n for n in SECTION_ORDER if n in ANALYSES]
    order += [n for n in ANALYSES if n not in SECTION_ORDER]
    for name in order:
        print(f"  {name}: {ANALYSES[name].description}")
