import numpy as np
import pytest

from smelle.bayesian import ModelFitter, mediation_effects, mediation_paths
from smelle.report import MEDIATION_MODEL

from conftest import make_fake_sampler


def test_paths_from_draws():
    rng = np.random.default_rng(0)
    a = rng.normal(2.0, 0.1, 4000)
    b = rng.normal(1.5, 0.1, 4000)
    direct = rng.normal(1.0, 0.1, 4000)

    paths = mediation_paths(a, b, direct, label="exposure[MVR-RL]")
    assert np.allclose(paths.indirect, a * b)
    assert np.allclose(paths.total, a * b + direct)
    assert paths.proportion_mediated.mean() == pytest.approx(0.75, abs=0.02)
    assert not paths.unstable
    assert paths.n_zero_total == 0
    assert paths.parameter_id("indirect") == "indirect|exposure[MVR-RL]"


def test_total_spanning_zero_is_unstable():
    rng = np.random.default_rng(1)
    a = rng.normal(0.5, 1.0, 4000)
    b = rng.normal(0.5, 1.0, 4000)
    direct = rng.normal(-0.25, 1.0, 4000)
    paths = mediation_paths(a, b, direct)
    assert paths.unstable
    assert paths.opposite_sign_share > 0.05


def test_zero_total_gives_nan_proportion():
    paths = mediation_paths([1.0, 1.0, 2.0], [1.0, 1.0, 1.0], [-1.0, 1.0, 1.0])
    assert paths.n_zero_total == 1
    assert np.isnan(paths.proportion_mediated[0])
    assert paths.proportion_mediated[1] == 0.5


def test_unequal_lengths():
    with pytest.raises(ValueError):
        mediation_paths([1.0, 2.0], [1.0], [1.0, 2.0])


def test_summary_applies_rope_to_effects_only():
    rng = np.random.default_rng(2)
    paths = mediation_paths(rng.normal(2, 0.1, 1000), rng.normal(1, 0.1, 1000), rng.normal(1, 0.1, 1000))
    summary = paths.summary(rope=(-0.5, 0.5)).set_index("parameter")
    assert np.isnan(summary.loc["a", "rope_pct"])
    assert np.isnan(summary.loc["proportion_mediated", "rope_pct"])
    assert summary.loc["indirect", "rope_pct"] == 0.0
    assert "unstable" in summary.columns


def test_joint_model_paths(config, dataset):
    fitter = ModelFitter(config, sampler=make_fake_sampler(), verbose=False)
    fitted = fitter.fit(MEDIATION_MODEL, dataset)
    assert fitter.sampler.target_accepts == [config.mediation_adapt_delta]
    assert [d.outcome for d in fitted.designs] == ["presence", "craving"]

    paths = mediation_effects(fitted, mediator="presence", outcome="craving", contrast=("MVR", "RL"))
    # presence rises 5 points from RL to MVR; the Food-NonFood gap is the same everywhere
    assert paths.a.mean() == pytest.approx(5.0, abs=0.05)
    assert paths.b.mean() == pytest.approx(0.0, abs=0.05)
    assert paths.direct.mean() == pytest.approx(0.0, abs=0.05)
    assert paths.label == "exposure[MVR-RL]"
    assert paths.unstable
