"""
Bayesian Mediation
==================

Pathway tested: exposure mode -> presence -> food-cue response (ΔFCR).

From one joint fit of a ``MediationSpec`` (mediator and outcome sub-models
with correlated participant intercepts) every posterior draw yields

    a         = presence(treated) - presence(reference)
    b         = slope of ΔFCR on presence
    direct    = ΔFCR(treated) - ΔFCR(reference), presence held constant
    indirect  = a * b
    total     = indirect + direct
    proportion mediated = indirect / total

All paths are computed from marginal means, so they do not depend on the
contrast coding. The proportion is a ratio whose denominator may straddle
zero; it is then flagged as unstable and reported with its full interval.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from .contrasts import estimated_marginal_means, marginal_slopes, reverse_pairwise_contrasts
from .posterior import POSTERIOR_COLUMNS, credible_interval, describe_posterior

if TYPE_CHECKING:
    from .fitting import FittedModel

PATH_NAMES = ("a", "b", "indirect", "direct", "total", "proportion_mediated")


@dataclass(frozen=True)
class MediationPaths:
    """Per-draw path estimates and the stability diagnosis of the ratio."""
    a: np.ndarray
    b: np.ndarray
    indirect: np.ndarray
    direct: np.ndarray
    total: np.ndarray
    proportion_mediated: np.ndarray
    unstable: bool
    n_zero_total: int
    opposite_sign_share: float
    label: str = ""

    def draws_by_name(self) -> Dict[str, np.ndarray]:
        return {name: getattr(self, name) for name in PATH_NAMES}

    def parameter_id(self, name: str) -> str:
        return f"{name}|{self.label}" if self.label else name

    def summary(
        self,
        ci_prob: float = 0.95,
        rope: Optional[Tuple[float, float]] = None,
        pd_threshold: float = 0.95,
        rope_threshold: float = 0.95,
    ) -> pd.DataFrame:
        """One row per path; the ROPE applies to effects, never to the ratio."""
        rows = []
        for name, draws in self.draws_by_name().items():
            row = describe_posterior(
                draws,
                label=self.parameter_id(name),
                ci_prob=ci_prob,
                rope=None if name in ("a", "b", "proportion_mediated") else rope,
                pd_threshold=pd_threshold,
                rope_threshold=rope_threshold,
            )
            row["unstable"] = self.unstable if name == "proportion_mediated" else False
            rows.append(row)
        return pd.DataFrame(rows, columns=POSTERIOR_COLUMNS + ["unstable"])


def mediation_paths(
    a,
    b,
    direct,
    ci_prob: float = 0.95,
    tolerance: float = 0.05,
    label: str = "",
) -> MediationPaths:
    """
    Combine per-draw path estimates into indirect, total and proportion mediated.

    The proportion is flagged unstable when the credible interval of the
    total effect contains zero, or when more than ``tolerance`` of the total
    effect's draws carry the sign opposite to its mean. Draws with a total of
    exactly zero give NaN proportions and are counted in ``n_zero_total``.
    """
    a = np.asarray(a, dtype=float).ravel()
    b = np.asarray(b, dtype=float).ravel()
    direct = np.asarray(direct, dtype=float).ravel()
    if not (len(a) == len(b) == len(direct)):
        raise ValueError(
            f"Path draws must have equal length, got a={len(a)}, b={len(b)}, direct={len(direct)}"
        )

    indirect = a * b
    total = indirect + direct

    zero = total == 0
    with np.errstate(divide="ignore", invalid="ignore"):
        proportion = np.where(zero, np.nan, indirect / np.where(zero, 1.0, total))

    ci_low, ci_high = credible_interval(total, ci_prob)
    mean_sign = np.sign(np.mean(total))
    opposite = float((np.sign(total) == -mean_sign).mean()) if mean_sign != 0 else 0.5
    unstable = bool(ci_low <= 0.0 <= ci_high or opposite > tolerance)

    return MediationPaths(
        a=a,
        b=b,
        indirect=indirect,
        direct=direct,
        total=total,
        proportion_mediated=proportion,
        unstable=unstable,
        n_zero_total=int(zero.sum()),
        opposite_sign_share=opposite,
        label=label,
    )


def mediation_effects(
    fitted: "FittedModel",
    mediator: str,
    outcome: str,
    mediator_variable: Optional[str] = None,
    treatment: str = "exposure",
    contrast: Tuple[str, str] = ("MVR", "RL"),
    response: str = "stimulus",
    ci_prob: float = 0.95,
    tolerance: float = 0.05,
) -> MediationPaths:
    """
    Mediation of a treatment contrast on ΔFCR through a mediator, from a joint fit.

    Parameters
    ----------
    fitted : FittedModel
        Joint fit containing the ``mediator`` and ``outcome`` sub-models.
    mediator : str
        Outcome name of the mediator sub-model (``"presence"``).
    outcome : str
        Outcome name of the response sub-model (``"craving"``).
    mediator_variable : str, optional
        Column through which the mediator enters the outcome model
        (default ``f"{mediator}_c"``).
    treatment, contrast
        Treatment factor and the (treated, reference) levels compared.
    response : str
        Two-level factor whose reverse pairwise contrast is the ΔFCR.
    """
    treated, reference = contrast
    mediator_variable = mediator_variable or f"{mediator}_c"

    # a: treatment effect on the mediator
    emm_m = estimated_marginal_means(fitted, [treatment], outcome=mediator)
    a = emm_m.cell(**{treatment: treated}) - emm_m.cell(**{treatment: reference})

    # b: mediator slope of ΔFCR, averaged over treatment levels
    slopes = marginal_slopes(fitted, mediator_variable, [response], outcome=outcome)
    (b_contrast,) = reverse_pairwise_contrasts(slopes, response)
    b = b_contrast.draws

    # direct: ΔFCR difference between treatment levels at the mediator mean
    emm_y = estimated_marginal_means(fitted, [treatment, response], outcome=outcome)
    deltas = {c.by_level: c.draws for c in reverse_pairwise_contrasts(emm_y, response, by=treatment)}
    direct = deltas[treated] - deltas[reference]

    return mediation_paths(
        a, b, direct,
        ci_prob=ci_prob,
        tolerance=tolerance,
        label=f"{treatment}[{treated}-{reference}]",
    )
