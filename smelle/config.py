"""
Analysis Configuration
======================

A single immutable ``AnalysisConfig`` carries every option that changes the
meaning or the cost of an analysis run: factor level order, contrast coding,
sampler settings, decision thresholds and paths. It is built once (defaults,
CLI flags, environment) and passed explicitly to the loader, the fitter and
the summarizer.

Usage:
    from smelle.config import AnalysisConfig

    config = AnalysisConfig(variant="excluded", contrast_coding="sum")
    config = config.with_overrides(draws=500, chains=2)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace, asdict
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from .errors import ConfigurationError
from .preprocessing.constants import (
    CACHE_DIR,
    DATA_DIR,
    EXPOSURE_LEVELS,
    RESULTS_DIR,
    STIMULUS_LEVELS,
)

VALID_VARIANTS = ("all", "excluded")
VALID_CODINGS = ("treatment", "sum")

CORES_ENV = "SMELLE_CORES"


def _default_cores() -> int:
    value = os.environ.get(CORES_ENV)
    if value is None:
        return 4
    try:
        cores = int(value)
    except ValueError:
        raise ConfigurationError(f"{CORES_ENV} must be an integer, got {value!r}")
    return cores


@dataclass(frozen=True)
class AnalysisConfig:
    """Options for one analysis run."""

    # Data variant
    variant: str = "all"
    blinded: bool = False
    data_url: Optional[str] = None

    # Factor coding
    exposure_levels: Tuple[str, ...] = EXPOSURE_LEVELS
    stimulus_levels: Tuple[str, ...] = STIMULUS_LEVELS
    contrast_coding: str = "treatment"

    # Sampler
    draws: int = 2000
    tune: int = 1000
    chains: int = 4
    cores: int = field(default_factory=_default_cores)
    adapt_delta: float = 0.9
    mediation_adapt_delta: float = 0.99
    random_seed: int = 42

    # Convergence
    rhat_threshold: float = 1.01
    ess_threshold: float = 400.0

    # Posterior decisions
    ci_prob: float = 0.95
    pd_threshold: float = 0.95
    rope_threshold: float = 0.95
    rope_scale: float = 0.1
    instability_tolerance: float = 0.05

    # Manipulation checks
    hunger_reference: float = 50.0
    hunger_population_sd: float = 20.0
    presence_reference: float = 50.0
    vr_familiarity_reference: float = 50.0

    # Cache
    refit_on_change: bool = False

    # Paths
    data_dir: Path = DATA_DIR
    cache_dir: Path = CACHE_DIR
    output_dir: Path = RESULTS_DIR

    def __post_init__(self):
        self.validate()

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self) -> None:
        if self.variant not in VALID_VARIANTS:
            raise ConfigurationError(
                f"Unknown variant: {self.variant}. Valid variants: {VALID_VARIANTS}"
            )
        if self.contrast_coding not in VALID_CODINGS:
            raise ConfigurationError(
                f"Unknown contrast coding: {self.contrast_coding}. Valid codings: {VALID_CODINGS}"
            )
        _check_level_order("exposure", self.exposure_levels, EXPOSURE_LEVELS)
        _check_level_order("stimulus", self.stimulus_levels, STIMULUS_LEVELS)
        if tuple(self.stimulus_levels)[0] != "NonFood":
            raise ConfigurationError(
                f"stimulus reference level must be 'NonFood' so ΔFCR reads Food - NonFood, "
                f"got {tuple(self.stimulus_levels)}"
            )

        for name in ("draws", "tune", "chains", "cores"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < (0 if name == "tune" else 1):
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        for name in ("adapt_delta", "mediation_adapt_delta", "ci_prob",
                     "pd_threshold", "rope_threshold", "instability_tolerance"):
            value = getattr(self, name)
            if not 0 < value < 1:
                raise ConfigurationError(f"{name} must lie in (0, 1), got {value!r}")
        if self.rope_scale <= 0:
            raise ConfigurationError(f"rope_scale must be positive, got {self.rope_scale!r}")
        if self.hunger_population_sd <= 0:
            raise ConfigurationError(
                f"hunger_population_sd must be positive, got {self.hunger_population_sd!r}"
            )

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------

    @property
    def exclude_blinding_failures(self) -> bool:
        return self.variant == "excluded"

    @property
    def factor_levels(self) -> Dict[str, Tuple[str, ...]]:
        return {
            "exposure": tuple(self.exposure_levels),
            "stimulus": tuple(self.stimulus_levels),
        }

    @property
    def cache_variant(self) -> str:
        """Dataset-variant identifier; blinded and unblinded exports never share fits."""
        return f"{self.variant}-blinded" if self.blinded else self.variant

    @property
    def variant_cache_dir(self) -> Path:
        return Path(self.cache_dir) / self.cache_variant

    @property
    def variant_output_dir(self) -> Path:
        return Path(self.output_dir) / self.cache_variant

    def model_settings(self) -> Dict[str, object]:
        """Options that change a fitted model and therefore its cache key."""
        return {
            "exposure_levels": list(self.exposure_levels),
            "stimulus_levels": list(self.stimulus_levels),
            "contrast_coding": self.contrast_coding,
            "draws": self.draws,
            "tune": self.tune,
            "chains": self.chains,
            "adapt_delta": self.adapt_delta,
            "mediation_adapt_delta": self.mediation_adapt_delta,
            "random_seed": self.random_seed,
        }

    def with_overrides(self, **overrides) -> "AnalysisConfig":
        """Return a validated copy with some fields replaced."""
        if "exposure_levels" in overrides:
            overrides["exposure_levels"] = tuple(overrides["exposure_levels"])
        if "stimulus_levels" in overrides:
            overrides["stimulus_levels"] = tuple(overrides["stimulus_levels"])
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, object]:
        out = asdict(self)
        for key in ("data_dir", "cache_dir", "output_dir"):
            out[key] = str(out[key])
        return out


def _check_level_order(factor: str, levels: Iterable[str], known: Iterable[str]) -> None:
    levels = tuple(levels)
    known = tuple(known)
    if len(set(levels)) != len(levels):
        raise ConfigurationError(f"Duplicate {factor} levels: {levels}")
    if set(levels) != set(known):
        raise ConfigurationError(
            f"{factor} levels must be an ordering of {known}, got {levels}"
        )


def check_consistent_levels(configs: Iterable[AnalysisConfig]) -> None:
    """
    Reject a set of configurations that order the same factor differently.

    Sections of one report must agree on the reference category; a mismatch
    would silently change which contrasts are estimated directly.
    """
    seen: Dict[str, Tuple[str, ...]] = {}
    for config in configs:
        for factor, levels in config.factor_levels.items():
            if factor in seen and seen[factor] != levels:
                raise ConfigurationError(
                    f"Inconsistent {factor} level order within one run: "
                    f"{seen[factor]} vs {levels}"
                )
            seen.setdefault(factor, levels)


def parse_level_order(text: str) -> Tuple[str, ...]:
    """Parse a comma-separated level list from the command line."""
    return tuple(part.strip() for part in text.split(",") if part.strip())
