"""
Common Utilities for Basic Analysis Scripts
============================================

Shared variable lists and console helpers.
"""

from __future__ import annotations

# =============================================================================
# VARIABLE DEFINITIONS
# =============================================================================

# Participant-level variables for the sample description table
DESCRIPTIVE_VARS = [
    ('age', 'Age (years)'),
    ('bmi', 'BMI (kg/m²)'),
    ('vr_familiarity', 'VR familiarity'),
    ('trait_imagery', 'Trait imagery (VVIQ)'),
    ('state_imagery', 'State imagery'),
    ('hunger', 'Hunger (0-100)'),
]

# Trial-level outcomes summarised per condition
CONDITION_OUTCOMES = [
    ('craving', 'Craving rating'),
    ('salivation', 'Salivary volume (g)'),
    ('liking', 'Liking rating'),
]


def print_section_header(title: str, width: int = 70) -> None:
    print("\n" + "=" * width)
    print(title)
    print("=" * width)


def format_interval(low: float, high: float, digits: int = 2) -> str:
    return f"[{low:.{digits}f}, {high:.{digits}f}]"
