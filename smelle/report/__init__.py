"""
Smell-e Report Module
=====================

Section registry, tables, figures and display labels.

    from smelle.report import run, list_analyses
    results = run()                 # all sections, isolated
    results = run("h1c", config)    # one section
"""

from .labels import (
    CONTRAST_LABELS,
    LEVEL_LABELS,
    VARIABLE_LABELS,
    PATH_LABELS,
    ParameterId,
    parse_parameter_id,
    display_label,
)

from .tables import (
    format_posterior_table,
    save_table,
)

from .figures import (
    plot_point_range,
    save_figure,
)

from .sections import (
    ANALYSES,
    SECTION_ORDER,
    FCR_MODELS,
    MEDIATION_MODEL,
    MODERATORS,
    AnalysisSpec,
    ReportContext,
    moderation_model,
    register_analysis,
    run,
    list_analyses,
)

__all__ = [
    # Labels
    'CONTRAST_LABELS',
    'LEVEL_LABELS',
    'VARIABLE_LABELS',
    'PATH_LABELS',
    'ParameterId',
    'parse_parameter_id',
    'display_label',
    # Tables and figures
    'format_posterior_table',
    'save_table',
    'plot_point_range',
    'save_figure',
    # Sections
    'ANALYSES',
    'SECTION_ORDER',
    'FCR_MODELS',
    'MEDIATION_MODEL',
    'MODERATORS',
    'AnalysisSpec',
    'ReportContext',
    'moderation_model',
    'register_analysis',
    'run',
    'list_analyses',
]
