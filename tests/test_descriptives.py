import matplotlib
matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pytest

from smelle.basic_analysis import (
    DESCRIPTIVE_VARS,
    compute_descriptive_stats,
    compute_gender_counts,
    condition_means,
    plot_condition_means,
)
from conftest import FOOD_EFFECT


def test_condition_means_follow_level_order(dataset):
    summary = condition_means(dataset, "craving")
    assert len(summary) == 6
    assert summary["exposure"].astype(str).tolist()[:2] == ["RL", "RL"]
    assert summary["stimulus"].astype(str).tolist()[:2] == ["NonFood", "Food"]
    assert (summary["N"] == 6).all()

    rl = summary[summary["exposure"] == "RL"].set_index("stimulus")["Mean"]
    assert rl["Food"] - rl["NonFood"] == pytest.approx(FOOD_EFFECT)


def test_condition_means_unknown_outcome(dataset):
    with pytest.raises(KeyError):
        condition_means(dataset, "thirst")


def test_participant_level_descriptives(dataset, capsys):
    table = compute_descriptive_stats(dataset, DESCRIPTIVE_VARS + [("missing", "Missing")])
    assert "[WARNING]" in capsys.readouterr().out
    age = table.set_index("Column").loc["age"]
    assert age["N"] == 6
    assert age["Mean"] == pytest.approx(22.5)
    assert age["Min"] == 20


def test_gender_counts(dataset):
    counts = compute_gender_counts(dataset).set_index("Gender")
    assert counts.loc["female", "N"] == 3
    assert counts.loc["male", "N"] == 3
    assert counts["Percent"].sum() == pytest.approx(100.0)


def test_plot_condition_means(dataset):
    fig = plot_condition_means(condition_means(dataset, "craving"), "Craving")
    ax = fig.axes[0]
    assert [t.get_text() for t in ax.get_xticklabels()] == [
        "Real life", "Multisensory VR", "Unisensory VR"
    ]
    plt.close(fig)
