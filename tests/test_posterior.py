import numpy as np
import pytest

from smelle.bayesian import (
    POSTERIOR_COLUMNS,
    credible_interval,
    describe_posterior,
    probability_of_direction,
    rope_percentage,
    rope_range,
    summarize_draws,
)


def test_probability_of_direction():
    assert probability_of_direction([1.0, 2.0, 3.0, -1.0]) == 0.75
    assert probability_of_direction([-1.0, -2.0, 0.5]) == pytest.approx(2 / 3)
    # zeros count towards neither side
    assert probability_of_direction([0.0, 1.0, 2.0, 3.0]) == 0.75
    # symmetric draws: larger one-sided share
    assert probability_of_direction([-1.0, 1.0, 0.0]) == pytest.approx(1 / 3)
    assert np.isnan(probability_of_direction([np.nan]))


def test_rope_range():
    assert rope_range(20.0) == (-2.0, 2.0)
    assert rope_range(20.0, scale=0.05) == (-1.0, 1.0)
    for bad in (0.0, -1.0, np.nan):
        with pytest.raises(ValueError):
            rope_range(bad)


def test_rope_percentage_is_inclusive():
    assert rope_percentage([-1.0, 0.0, 1.0, 2.0], (-1.0, 1.0)) == 0.75


def test_credible_interval_equal_tailed():
    draws = np.arange(1001, dtype=float)
    low, high = credible_interval(draws, 0.95)
    assert low == pytest.approx(25.0)
    assert high == pytest.approx(975.0)


def test_describe_posterior_decisions():
    rng = np.random.default_rng(1)
    row = describe_posterior(rng.normal(5.0, 0.5, 4000), label="effect", rope=(-1.0, 1.0))
    assert row["parameter"] == "effect"
    assert row["pd"] == 1.0
    assert row["direction_supported"]
    assert row["rope_pct"] == 0.0
    assert not row["practically_equivalent"]

    null = describe_posterior(rng.normal(0.0, 0.1, 4000), rope=(-1.0, 1.0))
    assert null["practically_equivalent"]
    assert not null["direction_supported"]


def test_describe_posterior_without_rope():
    row = describe_posterior([1.0, 2.0, 3.0])
    assert np.isnan(row["rope_pct"])
    assert row["practically_equivalent"] is False
    assert row["n_draws"] == 3


def test_summarize_draws_order_and_columns():
    draws = {"x": np.ones(10), "y": -np.ones(10)}
    summary = summarize_draws(draws, order=["y", "x"])
    assert list(summary.columns) == POSTERIOR_COLUMNS
    assert summary["parameter"].tolist() == ["y", "x"]
    assert summary["mean"].tolist() == [-1.0, 1.0]
