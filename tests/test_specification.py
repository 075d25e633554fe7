import pytest

from smelle.bayesian import MediationSpec, ModelSpec, parse_formula, spec_hash
from smelle.errors import ConfigurationError


def test_parse_formula_splits_random_intercepts():
    parsed = parse_formula("craving ~ exposure * stimulus + bmi_c + (1 | participant)")
    assert parsed.outcome == "craving"
    assert parsed.fixed_rhs == "exposure * stimulus + bmi_c"
    assert parsed.groups == ["participant"]
    assert parsed.random[0].tag is None
    assert parsed.fixed_formula == "craving ~ exposure * stimulus + bmi_c"


def test_parse_formula_with_correlation_tag():
    parsed = parse_formula("presence ~ (1 | p | participant) + exposure")
    assert parsed.fixed_rhs == "exposure"
    assert parsed.random[0].tag == "p"
    assert parsed.random[0].group == "participant"


def test_intercept_only_fixed_part():
    assert parse_formula("craving ~ (1 | participant)").fixed_rhs == "1"


@pytest.mark.parametrize("formula", [
    "craving exposure",
    "craving ~ exposure ~ stimulus",
    "log(craving) ~ exposure",
    "craving ~ exposure + (exposure | participant)",
    "craving ~ exposure + (1 | participant) + (1 | participant)",
    "craving ~ exposure + (1 | a | b | participant)",
])
def test_malformed_formulas(formula):
    with pytest.raises(ConfigurationError):
        parse_formula(formula)


def test_model_spec_validation():
    with pytest.raises(ConfigurationError, match="file-system safe"):
        ModelSpec("bad name/x", "craving ~ stimulus")
    with pytest.raises(ConfigurationError, match="family"):
        ModelSpec("m", "craving ~ stimulus", family="poisson")
    with pytest.raises(ConfigurationError, match="prior"):
        ModelSpec("m", "craving ~ stimulus", priors={"nu": 1.0})
    with pytest.raises(ConfigurationError, match="positive"):
        ModelSpec("m", "craving ~ stimulus", priors={"b": 0.0})


def test_prior_overrides_merge_with_defaults():
    spec = ModelSpec("m", "craving ~ stimulus", priors={"b": 1.0})
    assert spec.prior_scales["b"] == 1.0
    assert spec.prior_scales["sigma"] == 1.0


def _mediation(**kwargs):
    return MediationSpec(
        "med",
        (
            ModelSpec("m1", "presence ~ exposure + (1 | p | participant)"),
            ModelSpec("m2", "craving ~ exposure + presence_c + (1 | p | participant)"),
        ),
        **kwargs,
    )


def test_mediation_spec_shared_terms():
    spec = _mediation()
    assert spec.outcomes == ["presence", "craving"]
    assert spec.shared_terms() == {("p", "participant"): ["presence", "craving"]}
    assert spec.submodel("craving").name == "m2"
    with pytest.raises(KeyError):
        spec.submodel("liking")


def test_mediation_spec_rejects_residual_correlation():
    with pytest.raises(ConfigurationError, match="residual"):
        _mediation(residual_correlation=True)


def test_mediation_spec_rejects_inconsistent_tag():
    with pytest.raises(ConfigurationError, match="tag"):
        MediationSpec("med", (
            ModelSpec("m1", "presence ~ exposure + (1 | p | participant)"),
            ModelSpec("m2", "craving ~ exposure + (1 | p | exposure)"),
        ))


def test_mediation_spec_needs_distinct_outcomes():
    with pytest.raises(ConfigurationError):
        MediationSpec("med", (ModelSpec("m1", "craving ~ 1"), ModelSpec("m2", "craving ~ exposure")))
    with pytest.raises(ConfigurationError):
        MediationSpec("med", (ModelSpec("m1", "craving ~ 1"),))


def test_spec_hash_is_content_addressed(config):
    a = ModelSpec("m", "craving ~ exposure * stimulus + (1 | participant)")
    same = ModelSpec("m", "craving ~ exposure  *  stimulus + (1 | participant)")
    other = ModelSpec("m", "craving ~ exposure + stimulus + (1 | participant)")

    assert spec_hash(a, config) == spec_hash(same, config)
    assert spec_hash(a, config) != spec_hash(other, config)
    assert spec_hash(a, config) != spec_hash(a, config, variant="excluded")
    assert spec_hash(a, config) != spec_hash(a, config.with_overrides(contrast_coding="sum"))
    assert spec_hash(a, config) != spec_hash(a, config.with_overrides(blinded=True))
    # thresholds do not change the fit
    assert spec_hash(a, config) == spec_hash(a, config.with_overrides(pd_threshold=0.9))
