"""
Smell-e Bayesian Module
=======================

Multilevel model specification, fitting with a content-addressed cache,
marginal means, contrasts, posterior description and mediation.

    from smelle.bayesian import ModelFitter, ModelSpec, estimated_marginal_means
"""

from .specification import (
    DEFAULT_PRIORS,
    RandomIntercept,
    ParsedFormula,
    ModelSpec,
    MediationSpec,
    parse_formula,
    spec_hash,
)

from .design import (
    BuiltDesign,
    build_design,
    formula_variables,
)

from .cache import ModelCache

from .fitting import (
    FittedModel,
    ModelFitter,
    build_model,
    pymc_sampler,
    convergence_diagnostics,
    check_convergence,
)

from .posterior import (
    POSTERIOR_COLUMNS,
    probability_of_direction,
    rope_range,
    rope_percentage,
    credible_interval,
    describe_posterior,
    summarize_draws,
)

from .contrasts import (
    MarginalMeans,
    Contrast,
    estimated_marginal_means,
    marginal_slopes,
    pairwise_contrasts,
    reverse_pairwise_contrasts,
    difference_of_differences,
    contrast_draws,
    summarize_contrasts,
)

from .mediation import (
    MediationPaths,
    mediation_paths,
    mediation_effects,
)

__all__ = [
    # Specification
    'DEFAULT_PRIORS',
    'RandomIntercept',
    'ParsedFormula',
    'ModelSpec',
    'MediationSpec',
    'parse_formula',
    'spec_hash',
    # Design
    'BuiltDesign',
    'build_design',
    'formula_variables',
    # Cache and fitting
    'ModelCache',
    'FittedModel',
    'ModelFitter',
    'build_model',
    'pymc_sampler',
    'convergence_diagnostics',
    'check_convergence',
    # Posterior
    'POSTERIOR_COLUMNS',
    'probability_of_direction',
    'rope_range',
    'rope_percentage',
    'credible_interval',
    'describe_posterior',
    'summarize_draws',
    # Contrasts
    'MarginalMeans',
    'Contrast',
    'estimated_marginal_means',
    'marginal_slopes',
    'pairwise_contrasts',
    'reverse_pairwise_contrasts',
    'difference_of_differences',
    'contrast_draws',
    'summarize_contrasts',
    # Mediation
    'MediationPaths',
    'mediation_paths',
    'mediation_effects',
]
