import pytest

from smelle.config import AnalysisConfig, check_consistent_levels, parse_level_order
from smelle.errors import ConfigurationError


def test_defaults_are_valid():
    config = AnalysisConfig()
    assert config.exposure_levels == ("RL", "MVR", "UVR")
    assert config.stimulus_levels == ("NonFood", "Food")
    assert config.contrast_coding == "treatment"
    assert not config.exclude_blinding_failures


def test_unknown_variant_rejected():
    with pytest.raises(ConfigurationError, match="variant"):
        AnalysisConfig(variant="everyone")


def test_unknown_coding_rejected():
    with pytest.raises(ConfigurationError, match="coding"):
        AnalysisConfig(contrast_coding="helmert")


@pytest.mark.parametrize("levels", [
    ("RL", "MVR"),
    ("RL", "MVR", "XR"),
    ("RL", "RL", "UVR"),
])
def test_exposure_levels_must_be_a_permutation(levels):
    with pytest.raises(ConfigurationError):
        AnalysisConfig(exposure_levels=levels)


def test_stimulus_reference_must_be_nonfood():
    with pytest.raises(ConfigurationError, match="NonFood"):
        AnalysisConfig(stimulus_levels=("Food", "NonFood"))


@pytest.mark.parametrize("field, value", [
    ("draws", 0),
    ("chains", -1),
    ("ci_prob", 1.0),
    ("adapt_delta", 0.0),
    ("rope_scale", 0.0),
])
def test_out_of_range_numbers_rejected(field, value):
    with pytest.raises(ConfigurationError):
        AnalysisConfig(**{field: value})


def test_cores_from_environment(monkeypatch):
    monkeypatch.setenv("SMELLE_CORES", "2")
    assert AnalysisConfig().cores == 2

    monkeypatch.setenv("SMELLE_CORES", "many")
    with pytest.raises(ConfigurationError, match="SMELLE_CORES"):
        AnalysisConfig()


def test_with_overrides_revalidates_and_copies():
    base = AnalysisConfig()
    changed = base.with_overrides(exposure_levels=["MVR", "RL", "UVR"], draws=100)
    assert changed.exposure_levels == ("MVR", "RL", "UVR")
    assert changed.draws == 100
    assert base.exposure_levels == ("RL", "MVR", "UVR")

    with pytest.raises(ConfigurationError):
        base.with_overrides(variant="nobody")


def test_blinded_runs_get_their_own_directories(tmp_path):
    plain = AnalysisConfig(cache_dir=tmp_path, output_dir=tmp_path / "out")
    blinded = plain.with_overrides(blinded=True)
    assert plain.variant_cache_dir == tmp_path / "all"
    assert blinded.variant_cache_dir == tmp_path / "all-blinded"
    assert blinded.variant_output_dir == tmp_path / "out" / "all-blinded"


def test_model_settings_track_level_order():
    a = AnalysisConfig().model_settings()
    b = AnalysisConfig(exposure_levels=("MVR", "RL", "UVR")).model_settings()
    assert a != b
    assert "ci_prob" not in a


def test_check_consistent_levels():
    check_consistent_levels([AnalysisConfig(), AnalysisConfig(draws=10)])
    with pytest.raises(ConfigurationError, match="exposure"):
        check_consistent_levels([
            AnalysisConfig(),
            AnalysisConfig(exposure_levels=("UVR", "MVR", "RL")),
        ])


def test_parse_level_order():
    assert parse_level_order(" RL, MVR ,UVR,") == ("RL", "MVR", "UVR")


def test_to_dict_paths_are_strings(tmp_path):
    out = AnalysisConfig(data_dir=tmp_path).to_dict()
    assert out["data_dir"] == str(tmp_path)
