import pandas as pd
import pytest

from smelle.preprocessing import exclude_blinding_failures, failed_blinding, filter_rows


def test_failed_blinding_tokens():
    values = pd.Series(["Yes", " yes ", "No", None, "no"])
    assert failed_blinding(values).tolist() == [True, True, False, False, False]


def test_exclusion_drops_every_row_of_flagged_participants():
    df = pd.DataFrame({
        "participant": ["A", "A", "B", "B", "C", "C"],
        "blinding_check": ["No", "Yes", "No", "No", "No", "No"],
        "craving": [1, 2, 3, 4, 5, 6],
    })
    out = exclude_blinding_failures(df, verbose=False)
    assert set(out["participant"]) == {"B", "C"}
    assert len(out) == 4
    # input untouched
    assert len(df) == 6


def test_exclusion_requires_column():
    with pytest.raises(KeyError):
        exclude_blinding_failures(pd.DataFrame({"participant": ["A"]}), verbose=False)


def test_filter_rows_treats_missing_as_false():
    df = pd.DataFrame({"x": [1.0, None, 3.0]})
    out = filter_rows(df, lambda d: d["x"] > 1)
    assert out["x"].tolist() == [3.0]


def test_filter_rows_rejects_misaligned_predicate():
    df = pd.DataFrame({"x": [1, 2]})
    with pytest.raises(ValueError):
        filter_rows(df, lambda d: pd.Series([True]))


def test_excluding_failed_blinds_leaves_other_participants_unchanged(config, raw_export):
    from smelle.preprocessing import recode_dataset

    recoded = recode_dataset(raw_export, config)
    out = exclude_blinding_failures(recoded, verbose=False)

    assert len(out) < len(recoded)
    kept = recoded[recoded["participant"] != "P02"]
    pd.testing.assert_frame_equal(out, kept)


def test_numeric_blinding_answers_with_missing_values():
    df = pd.DataFrame({
        "participant": ["A", "B", "C"],
        "blinding_check": [1.0, 0.0, float("nan")],
    })
    assert failed_blinding(df["blinding_check"]).tolist() == [True, False, False]

    out = exclude_blinding_failures(df, verbose=False)
    assert out["participant"].tolist() == ["B", "C"]
