"""
Model Specifications
====================

Declarative model formulas in the familiar mixed-model notation:

    craving ~ exposure * stimulus + bmi_c + (1 | participant)

Random terms are limited to intercepts. A term written ``(1 | p | participant)``
carries the correlation tag ``p``: every sub-model of a ``MediationSpec`` that
uses the same tag and grouping factor gets correlated random intercepts.

A specification is hashed together with the model-relevant configuration so
the fit cache is content-addressed rather than name-addressed.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Tuple, Union

from ..errors import ConfigurationError

if TYPE_CHECKING:
    from ..config import AnalysisConfig


# Prior scales, expressed in units of the outcome's SD (``cor`` is the LKJ eta)
DEFAULT_PRIORS: Dict[str, float] = {
    "b": 2.5,
    "Intercept": 2.5,
    "sigma": 1.0,
    "sd": 1.0,
    "cor": 2.0,
}

SUPPORTED_FAMILIES = ("gaussian",)

_IDENTIFIER = r"[A-Za-z_][A-Za-z0-9_.]*"
_RANDOM_TERM = re.compile(
    r"\(\s*(?P<lhs>[^()|]+?)\s*\|\s*(?:(?P<tag>" + _IDENTIFIER + r")\s*\|\s*)?"
    r"(?P<group>" + _IDENTIFIER + r")\s*\)"
)


# =============================================================================
# PARSED FORMULA
# =============================================================================

@dataclass(frozen=True)
class RandomIntercept:
    """Random intercept by ``group``; ``tag`` links correlated terms across sub-models."""
    group: str
    tag: Optional[str] = None


@dataclass(frozen=True)
class ParsedFormula:
    outcome: str
    fixed_rhs: str
    random: Tuple[RandomIntercept, ...] = ()

    @property
    def fixed_formula(self) -> str:
        return f"{self.outcome} ~ {self.fixed_rhs}"

    @property
    def groups(self) -> List[str]:
        return [r.group for r in self.random]


def _tidy_rhs(rhs: str) -> str:
    """Remove the '+' operators left dangling after random terms were cut out."""
    text = rhs.strip()
    previous = None
    while previous != text:
        previous = text
        text = re.sub(r"\+\s*\+", "+", text)
        text = re.sub(r"^\s*\+\s*", "", text)
        text = re.sub(r"\s*\+\s*$", "", text)
    return text.strip() or "1"


def parse_formula(formula: str) -> ParsedFormula:
    """
    Split a mixed-model formula into outcome, fixed part and random intercepts.

    Raises
    ------
    ConfigurationError
        On a missing or malformed outcome, or any random term other than an
        intercept (random slopes are not supported).
    """
    if formula.count("~") != 1:
        raise ConfigurationError(f"Formula must contain exactly one '~': {formula!r}")
    lhs, rhs = (part.strip() for part in formula.split("~"))
    if not re.fullmatch(_IDENTIFIER, lhs):
        raise ConfigurationError(f"Formula outcome must be a single column name, got {lhs!r}")

    random: List[RandomIntercept] = []
    for match in _RANDOM_TERM.finditer(rhs):
        if match.group("lhs").strip() != "1":
            raise ConfigurationError(
                f"Only random intercepts are supported, got {match.group(0)!r}"
            )
        term = RandomIntercept(group=match.group("group"), tag=match.group("tag"))
        if term in random:
            raise ConfigurationError(f"Duplicate random term {match.group(0)!r} in {formula!r}")
        random.append(term)

    fixed = _tidy_rhs(_RANDOM_TERM.sub("", rhs))
    if "|" in fixed:
        raise ConfigurationError(f"Unsupported random-effect syntax in {formula!r}")

    return ParsedFormula(outcome=lhs, fixed_rhs=fixed, random=tuple(random))


# =============================================================================
# SPECIFICATIONS
# =============================================================================

@dataclass(frozen=True)
class ModelSpec:
    """
    One univariate multilevel regression.

    Parameters
    ----------
    name : str
        Identifier; also the cache file stem.
    formula : str
        Mixed-model formula, e.g. ``"craving ~ exposure * stimulus + (1 | participant)"``.
    family : str
        Likelihood family. Only ``"gaussian"`` is implemented.
    priors : mapping
        Overrides for ``DEFAULT_PRIORS`` (keys ``b``, ``Intercept``, ``sigma``,
        ``sd``, ``cor``).
    dedupe_on : tuple of str
        Keep one row per combination of these columns before fitting, for
        measures recorded once per participant and exposure mode.
    """
    name: str
    formula: str
    family: str = "gaussian"
    priors: Mapping[str, float] = field(default_factory=dict)
    dedupe_on: Tuple[str, ...] = ()

    def __post_init__(self):
        if not re.fullmatch(r"[A-Za-z0-9_.-]+", self.name):
            raise ConfigurationError(f"Model name must be file-system safe, got {self.name!r}")
        if self.family not in SUPPORTED_FAMILIES:
            raise ConfigurationError(
                f"Unsupported family '{self.family}'. Supported: {SUPPORTED_FAMILIES}"
            )
        unknown = set(self.priors) - set(DEFAULT_PRIORS)
        if unknown:
            raise ConfigurationError(f"Unknown prior keys for {self.name}: {sorted(unknown)}")
        for key, value in self.priors.items():
            if not value > 0:
                raise ConfigurationError(f"Prior '{key}' for {self.name} must be positive")
        object.__setattr__(self, "dedupe_on", tuple(self.dedupe_on))
        # Fails early on malformed formulas
        parse_formula(self.formula)

    @property
    def parsed(self) -> ParsedFormula:
        return parse_formula(self.formula)

    @property
    def outcome(self) -> str:
        return self.parsed.outcome

    @property
    def prior_scales(self) -> Dict[str, float]:
        return {**DEFAULT_PRIORS, **dict(self.priors)}

    @property
    def submodels(self) -> Tuple["ModelSpec", ...]:
        return (self,)

    @property
    def is_mediation(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": "model",
            "name": self.name,
            "formula": " ".join(self.formula.split()),
            "family": self.family,
            "priors": dict(sorted(self.prior_scales.items())),
            "dedupe_on": list(self.dedupe_on),
        }


@dataclass(frozen=True)
class MediationSpec:
    """
    Several sub-models fitted jointly.

    Random intercepts sharing a tag are correlated across sub-models
    (LKJ prior). Residuals are independent: residual correlation must be
    switched off explicitly and is rejected otherwise.
    """
    name: str
    models: Tuple[ModelSpec, ...]
    residual_correlation: bool = False

    def __post_init__(self):
        object.__setattr__(self, "models", tuple(self.models))
        if not re.fullmatch(r"[A-Za-z0-9_.-]+", self.name):
            raise ConfigurationError(f"Model name must be file-system safe, got {self.name!r}")
        if len(self.models) < 2:
            raise ConfigurationError(f"{self.name}: a mediation model needs at least two sub-models")
        if self.residual_correlation:
            raise ConfigurationError(
                f"{self.name}: residual correlation between sub-models is not supported"
            )
        outcomes = [m.outcome for m in self.models]
        if len(set(outcomes)) != len(outcomes):
            raise ConfigurationError(f"{self.name}: duplicate outcomes {outcomes}")
        self.shared_terms()

    @property
    def submodels(self) -> Tuple[ModelSpec, ...]:
        return self.models

    @property
    def is_mediation(self) -> bool:
        return True

    @property
    def outcomes(self) -> List[str]:
        return [m.outcome for m in self.models]

    def shared_terms(self) -> Dict[Tuple[str, str], List[str]]:
        """(tag, group) -> outcomes whose random intercepts are correlated."""
        shared: Dict[Tuple[str, str], List[str]] = {}
        groups_by_tag: Dict[str, str] = {}
        for model in self.models:
            for term in model.parsed.random:
                if term.tag is None:
                    continue
                if groups_by_tag.setdefault(term.tag, term.group) != term.group:
                    raise ConfigurationError(
                        f"{self.name}: tag '{term.tag}' used with different grouping factors"
                    )
                shared.setdefault((term.tag, term.group), []).append(model.outcome)
        return shared

    def submodel(self, outcome: str) -> ModelSpec:
        for model in self.models:
            if model.outcome == outcome:
                return model
        raise KeyError(f"{self.name} has no sub-model for '{outcome}'")

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": "mediation",
            "name": self.name,
            "models": [m.to_dict() for m in self.models],
            "residual_correlation": self.residual_correlation,
        }


AnySpec = Union[ModelSpec, MediationSpec]


def spec_hash(spec: AnySpec, config: "AnalysisConfig", variant: Optional[str] = None) -> str:
    """
    SHA-256 of the canonical JSON serialization of a specification, the
    model-relevant configuration and the dataset variant.
    """
    payload = {
        "spec": spec.to_dict(),
        "settings": config.model_settings(),
        "variant": variant if variant is not None else config.cache_variant,
    }
    text = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
