"""
Error Taxonomy
==============

Exceptions raised by the loading, checking and modelling stages.

Every error is terminal for the section that raised it. The section runner
in ``smelle.report.sections`` catches any exception per section when the
full report runs, so unrelated sections still run.
"""

from __future__ import annotations

from typing import Iterable, Optional

import pandas as pd


class SmelleError(Exception):
    """Base class for all analysis pipeline errors."""


class ConfigurationError(SmelleError, ValueError):
    """Invalid or inconsistent analysis configuration."""


class NetworkError(SmelleError):
    """The remote dataset could not be downloaded."""

    def __init__(self, url: str, reason: object):
        self.url = url
        self.reason = reason
        super().__init__(f"Could not download dataset from {url}: {reason}")


class SchemaError(SmelleError, KeyError):
    """Expected columns are missing from a dataset."""

    def __init__(self, missing: Iterable[str], where: str = "dataset"):
        self.missing = sorted(set(missing))
        self.where = where
        super().__init__(f"Missing columns in {where}: {self.missing}")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return self.args[0]


class InsufficientDataError(SmelleError):
    """Too few observations remain for a test."""

    def __init__(self, name: str, n: int, required: int = 2):
        self.name = name
        self.n = n
        self.required = required
        super().__init__(f"{name}: N={n} after aggregation (need at least {required})")


class ConvergenceError(SmelleError):
    """MCMC diagnostics failed; estimates must not be reported."""

    def __init__(
        self,
        model_name: str,
        diagnostics: pd.DataFrame,
        failing: Optional[Iterable[str]] = None,
    ):
        self.model_name = model_name
        self.diagnostics = diagnostics
        self.failing = list(failing or [])
        worst = ""
        if not diagnostics.empty:
            worst = (
                f" (max R-hat={diagnostics['r_hat'].max():.3f}, "
                f"min ESS={diagnostics['ess_bulk'].min():.0f})"
            )
        super().__init__(
            f"Model '{model_name}' did not converge for {len(self.failing)} parameter(s){worst}"
        )


class CacheMismatchError(SmelleError):
    """A cached fit exists for this model name but was produced by another specification."""

    def __init__(self, name: str, cached_hash: str, requested_hash: str):
        self.name = name
        self.cached_hash = cached_hash
        self.requested_hash = requested_hash
        super().__init__(
            f"Cached fit for '{name}' has spec hash {cached_hash[:12]}, "
            f"requested {requested_hash[:12]}. Delete the entry or disable refit-on-change."
        )


__all__ = [
    'SmelleError',
    'ConfigurationError',
    'NetworkError',
    'SchemaError',
    'InsufficientDataError',
    'ConvergenceError',
    'CacheMismatchError',
]
