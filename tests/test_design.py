import numpy as np
import pytest

from smelle.bayesian import build_design, formula_variables, parse_formula
from smelle.errors import InsufficientDataError, SchemaError


FCR = parse_formula("craving ~ exposure * stimulus + (1 | participant)")


def test_treatment_design_uses_configured_reference(dataset, config):
    design = build_design(dataset, FCR, config)
    assert design.X.shape == (36, 6)
    assert design.columns[0] == "Intercept"
    assert any("[T.MVR]" in c for c in design.columns)
    assert any("[T.Food]" in c for c in design.columns)
    assert not any("[T.RL]" in c for c in design.columns)
    assert design.factor_levels == {
        "exposure": ("RL", "MVR", "UVR"),
        "stimulus": ("NonFood", "Food"),
    }


def test_reference_follows_config_not_row_order(dataset, config):
    shuffled = dataset.sample(frac=1.0, random_state=11)
    reordered = config.with_overrides(exposure_levels=("UVR", "RL", "MVR"))
    design = build_design(shuffled, FCR, reordered)
    assert any("[T.RL]" in c for c in design.columns)
    assert not any("[T.UVR]" in c for c in design.columns)


def test_sum_coding(dataset, config):
    design = build_design(dataset, FCR, config.with_overrides(contrast_coding="sum"))
    assert any("[S.RL]" in c for c in design.columns)
    assert design.X.shape[1] == 6


def test_group_codes_index_sorted_levels(dataset, config):
    design = build_design(dataset, FCR, config)
    levels = design.group_levels["participant"]
    assert levels == sorted(levels)
    assert np.array_equal(
        np.asarray(levels)[design.group_codes["participant"]],
        design.data["participant"].to_numpy(),
    )


def test_complete_cases_and_dedupe(dataset, config):
    dataset.loc[0, "craving"] = np.nan
    assert len(build_design(dataset, FCR, config).y) == 35

    presence = parse_formula("presence ~ exposure + (1 | p | participant)")
    design = build_design(dataset, presence, config, dedupe_on=("participant", "exposure"))
    assert len(design.y) == 18


def test_numeric_predictor_means(dataset, config):
    parsed = parse_formula("craving ~ stimulus * presence_c + (1 | participant)")
    design = build_design(dataset, parsed, config)
    assert design.numeric_means["presence_c"] == pytest.approx(0.0, abs=1e-10)
    assert list(design.factor_levels) == ["stimulus"]
    assert list(design.numeric_means) == ["presence_c"]


def test_missing_columns(dataset, config):
    with pytest.raises(SchemaError):
        build_design(dataset, parse_formula("thirst ~ exposure"), config)
    with pytest.raises(SchemaError):
        build_design(dataset, parse_formula("craving ~ exposure + (1 | household)"), config)


def test_too_few_rows(dataset, config):
    with pytest.raises(InsufficientDataError):
        build_design(dataset.iloc[:1], FCR, config)


def test_formula_variables():
    assert formula_variables("exposure * stimulus + np.log(bmi)", ["exposure", "stimulus", "bmi"]) == [
        "exposure", "stimulus", "bmi"
    ]


def test_outcome_sd_fallback(dataset, config):
    dataset["craving"] = 5.0
    assert build_design(dataset, FCR, config).outcome_sd == 1.0
