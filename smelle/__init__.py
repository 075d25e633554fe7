"""
Smell-e: food-cue reactivity across real-life and virtual-reality exposure
==========================================================================

Analysis pipeline for a within-subject study in which participants rate
craving and produce saliva for Food and NonFood stimuli presented in real
life (RL), multisensory VR (MVR) and unisensory VR (UVR).

Sub-packages:
    preprocessing   download, recoding, centring, blinding exclusion
    basic_analysis  descriptive statistics and manipulation checks
    bayesian        multilevel models, marginal means, contrasts, mediation
    report          section registry, tables and figures

Usage:
    python -m smelle --list
    python -m smelle -s h1a --variant excluded
"""

from .config import AnalysisConfig, check_consistent_levels
from .errors import (
    SmelleError,
    ConfigurationError,
    NetworkError,
    SchemaError,
    InsufficientDataError,
    ConvergenceError,
    CacheMismatchError,
)

__version__ = "1.0.0"

__all__ = [
    'AnalysisConfig',
    'check_consistent_levels',
    'SmelleError',
    'ConfigurationError',
    'NetworkError',
    'SchemaError',
    'InsufficientDataError',
    'ConvergenceError',
    'CacheMismatchError',
    '__version__',
]
