import numpy as np
import pandas as pd
import pytest

from smelle.preprocessing import center, center_covariates, safe_zscore, standardize_predictors


def test_center_keeps_nan_and_scale():
    s = pd.Series([1.0, 2.0, np.nan, 5.0], name="bmi")
    out = center(s)
    assert np.isnan(out.iloc[2])
    assert out.mean() == pytest.approx(0.0)
    assert out.iloc[3] - out.iloc[0] == pytest.approx(4.0)


def test_center_all_missing_is_returned_unchanged():
    s = pd.Series([np.nan, np.nan])
    assert center(s).isna().all()


def test_safe_zscore_uses_sample_sd():
    s = pd.Series([1.0, 2.0, 3.0, np.nan, 5.0])
    out = safe_zscore(s)
    assert out.iloc[0] == pytest.approx(-1.024695, abs=1e-6)
    assert np.isnan(out.iloc[3])
    assert out.std(ddof=1) == pytest.approx(1.0)


def test_safe_zscore_constant_column_warns():
    s = pd.Series([4.0, 4.0, np.nan], name="hunger")
    with pytest.warns(UserWarning, match="hunger"):
        out = safe_zscore(s)
    assert out.iloc[0] == 0.0
    assert np.isnan(out.iloc[2])


def test_center_covariates_adds_suffix_and_skips_missing():
    df = pd.DataFrame({"bmi": [20.0, 22.0, 24.0]})
    out = center_covariates(df, ["bmi", "age"])
    assert list(out["bmi_c"]) == [-2.0, 0.0, 2.0]
    assert "age_c" not in out
    assert "bmi_c" not in df


def test_standardize_predictors_mapping():
    df = pd.DataFrame({"trait_imagery": [1.0, 2.0, 3.0], "bmi": [20.0, 25.0, 30.0]})
    out = standardize_predictors(df, ["trait_imagery", "bmi"], column_mapping={"bmi": "bmi_z"})
    assert "z_trait_imagery" in out
    assert "bmi_z" in out
    assert out["bmi_z"].tolist() == pytest.approx([-1.0, 0.0, 1.0])
