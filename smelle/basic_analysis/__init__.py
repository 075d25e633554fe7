"""
Smell-e Basic Analysis Module
=============================

Descriptive statistics and frequentist manipulation checks.

    from smelle.basic_analysis import condition_means, run_manipulation_checks
"""

from .utils import (
    DESCRIPTIVE_VARS,
    CONDITION_OUTCOMES,
    print_section_header,
    format_interval,
)

from .descriptive_statistics import (
    condition_means,
    compute_descriptive_stats,
    compute_gender_counts,
    plot_condition_means,
)

from .manipulation_checks import (
    ManipulationCheck,
    default_checks,
    aggregate_participants,
    one_sample_ztest,
    one_sample_ttest,
    run_check,
    run_manipulation_checks,
)

__all__ = [
    # Utils
    'DESCRIPTIVE_VARS',
    'CONDITION_OUTCOMES',
    'print_section_header',
    'format_interval',
    # Descriptives
    'condition_means',
    'compute_descriptive_stats',
    'compute_gender_counts',
    'plot_condition_means',
    # Manipulation checks
    'ManipulationCheck',
    'default_checks',
    'aggregate_participants',
    'one_sample_ztest',
    'one_sample_ttest',
    'run_check',
    'run_manipulation_checks',
]
