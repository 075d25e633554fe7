"""
Display labels for canonical parameter identifiers.

Identifiers are produced by the contrast and mediation code in a fixed
grammar::

    [<slope variable>:]<factor>[<hi>-<lo>][|<by>=<level> | |<by>[<hi>-<lo>]]
    <path>|<factor>[<hi>-<lo>]

``parse_parameter_id`` splits an identifier into its parts and
``display_label`` composes the label from the structured mappings below.
Labels are resolved from the parts, never by rewriting rendered strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ..preprocessing.constants import EXPOSURE_NAMES, STIMULUS_NAMES

# (factor, (minuend, subtrahend)) -> label
CONTRAST_LABELS: Dict[Tuple[str, Tuple[str, str]], str] = {
    ("stimulus", ("Food", "NonFood")): "ΔFCR",
    ("stimulus", ("NonFood", "Food")): "−ΔFCR",
}

LEVEL_LABELS: Dict[str, Dict[str, str]] = {
    "exposure": dict(EXPOSURE_NAMES),
    "stimulus": dict(STIMULUS_NAMES),
}

VARIABLE_LABELS: Dict[str, str] = {
    "z_trait_imagery": "Trait imagery",
    "z_state_imagery": "State imagery",
    "z_bmi": "BMI",
    "z_hunger": "Hunger",
    "presence_c": "Presence",
    "bmi_c": "BMI",
    "age_c": "Age",
    "hunger_c": "Hunger",
}

PATH_LABELS: Dict[str, str] = {
    "a": "Path a (mode → presence)",
    "b": "Path b (presence → ΔFCR)",
    "indirect": "Indirect effect (a × b)",
    "direct": "Direct effect",
    "total": "Total effect",
    "proportion_mediated": "Proportion mediated",
}


@dataclass(frozen=True)
class ParameterId:
    factor: str
    pair: Optional[Tuple[str, str]] = None
    slope: Optional[str] = None
    by: Optional[str] = None
    by_level: Optional[str] = None
    across: Optional[Tuple[str, str]] = None


def _split_bracket(text: str) -> Tuple[str, Optional[Tuple[str, str]]]:
    """``"stimulus[Food-NonFood]"`` -> ``("stimulus", ("Food", "NonFood"))``."""
    if not text.endswith("]") or "[" not in text:
        return text, None
    name, _, inner = text[:-1].partition("[")
    hi, sep, lo = inner.partition("-")
    if not sep:
        return text, None
    return name, (hi, lo)


def parse_parameter_id(param_id: str) -> ParameterId:
    head, _, tail = param_id.partition("|")
    slope = None
    if ":" in head:
        slope, _, head = head.partition(":")
    factor, pair = _split_bracket(head)

    by = by_level = across = None
    if tail:
        if "=" in tail:
            by, _, by_level = tail.partition("=")
        else:
            by, across = _split_bracket(tail)
    return ParameterId(factor=factor, pair=pair, slope=slope, by=by, by_level=by_level, across=across)


def level_label(factor: str, level: str) -> str:
    return LEVEL_LABELS.get(factor, {}).get(level, level)


def contrast_label(factor: str, pair: Tuple[str, str]) -> str:
    label = CONTRAST_LABELS.get((factor, tuple(pair)))
    if label is not None:
        return label
    return f"{pair[0]} vs {pair[1]}"


def display_label(param_id: str) -> str:
    """Human-readable label for a canonical identifier (unknown ids pass through)."""
    parts = parse_parameter_id(param_id)

    if parts.factor in PATH_LABELS and parts.pair is None:
        label = PATH_LABELS[parts.factor]
        if parts.across is not None:
            label += f" ({contrast_label(parts.by, parts.across)})"
        return label

    if parts.pair is None:
        return param_id

    label = contrast_label(parts.factor, parts.pair)
    if parts.slope is not None:
        label = f"{VARIABLE_LABELS.get(parts.slope, parts.slope)} × {label}"
    if parts.across is not None:
        label += f": {contrast_label(parts.by, parts.across)}"
    elif parts.by is not None:
        label += f" | {level_label(parts.by, parts.by_level)}"
    return label
