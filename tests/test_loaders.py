import pandas as pd
import pytest
import requests

from smelle.config import AnalysisConfig
from smelle.errors import ConfigurationError, NetworkError, SchemaError
from smelle.preprocessing import (
    EXPOSURE_CODES,
    decode_factor,
    download_dataset,
    load_dataset,
    recode_dataset,
)
from smelle.preprocessing import loaders

from conftest import make_raw_export


class FakeResponse:
    def __init__(self, chunks=(b"abc", b"", b"def"), status_error=None):
        self.chunks = chunks
        self.status_error = status_error

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_error is not None:
            raise self.status_error

    def iter_content(self, chunk_size=None):
        yield from self.chunks


# =============================================================================
# RECODING
# =============================================================================

def test_recode_assigns_configured_level_order(config, raw_export):
    df = recode_dataset(raw_export, config)
    assert list(df["exposure"].cat.categories) == ["RL", "MVR", "UVR"]
    assert list(df["stimulus"].cat.categories) == ["NonFood", "Food"]
    assert set(df["gender"].dropna()) == {"female", "male"}
    assert "craving" in df and "Craving" not in df


def test_level_order_does_not_depend_on_row_order(config, raw_export):
    shuffled = raw_export.sample(frac=1.0, random_state=3)
    shuffled = shuffled.sort_values("Condition", ascending=False)
    df = recode_dataset(shuffled, config)
    assert df["exposure"].cat.categories[0] == "RL"


def test_custom_exposure_order(config, raw_export):
    df = recode_dataset(raw_export, config.with_overrides(exposure_levels=("MVR", "RL", "UVR")))
    assert df["exposure"].cat.categories[0] == "MVR"


def test_missing_columns_raise_schema_error(config, raw_export):
    with pytest.raises(SchemaError) as info:
        recode_dataset(raw_export.drop(columns=["Craving", "Hunger"]), config)
    assert info.value.missing == ["craving", "hunger"]


def test_unknown_condition_code(config, raw_export):
    raw_export.loc[0, "Condition"] = 7
    with pytest.raises(SchemaError, match=r"exposure=.*7"):
        recode_dataset(raw_export, config)


def test_recoding_round_trips_condition_codes(config, raw_export):
    df = recode_dataset(raw_export, config)
    decoded = decode_factor(df["exposure"], EXPOSURE_CODES)
    assert decoded.tolist() == raw_export["Condition"].tolist()


def test_blinded_codebook(config, raw_export):
    blinded = raw_export.rename(columns={"Condition": "Condition_blind", "Stimulus": "Stimulus_blind"})
    blinded["Condition_blind"] = blinded["Condition_blind"].map({1: "A", 2: "B", 3: "C"})
    blinded["Stimulus_blind"] = blinded["Stimulus_blind"].map({0: "X", 1: "Y"})

    df = recode_dataset(blinded, config, blinded=True)
    plain = recode_dataset(raw_export, config)
    assert df["exposure"].tolist() == plain["exposure"].tolist()
    assert df["stimulus"].tolist() == plain["stimulus"].tolist()


def test_recode_does_not_modify_input(config, raw_export):
    before = raw_export.copy()
    recode_dataset(raw_export, config)
    pd.testing.assert_frame_equal(raw_export, before)


# =============================================================================
# LOADING
# =============================================================================

def test_load_dataset_adds_centred_covariates(dataset):
    assert dataset["bmi_c"].mean() == pytest.approx(0.0, abs=1e-10)
    assert "z_trait_imagery" in dataset
    assert "presence_c" in dataset
    # raw outcomes untouched
    assert dataset["craving"].min() >= 20.0


def test_excluded_variant_centres_after_exclusion(config, export_path):
    df = load_dataset(config.with_overrides(variant="excluded"), path=export_path, verbose=False)
    assert "P02" not in set(df["participant"])
    assert df["bmi_c"].mean() == pytest.approx(0.0, abs=1e-10)
    assert df["participant"].nunique() == 5


def test_load_dataset_reads_excel(config, tmp_path):
    path = tmp_path / "export.xlsx"
    make_raw_export().to_excel(path, index=False)
    df = load_dataset(config, path=path, verbose=False)
    assert len(df) == 36


def test_load_without_local_copy_or_url(config, monkeypatch):
    monkeypatch.delenv("SMELLE_DATA_URL", raising=False)
    with pytest.raises(ConfigurationError, match="SMELLE_DATA_URL"):
        load_dataset(config, verbose=False)


def test_load_downloads_once(config, monkeypatch):
    csv_bytes = make_raw_export().to_csv(index=False).encode("utf-8")
    calls = []

    def fake_get(url, stream, timeout):
        calls.append(url)
        return FakeResponse(chunks=(csv_bytes,))

    monkeypatch.setattr(loaders.requests, "get", fake_get)
    monkeypatch.setattr(loaders, "UNBLINDED_FILENAME", "smelle_data.csv")
    config = config.with_overrides(data_url="https://example.org/smelle.csv")

    first = load_dataset(config, verbose=False)
    second = load_dataset(config, verbose=False)
    assert calls == ["https://example.org/smelle.csv"]
    pd.testing.assert_frame_equal(first, second)


# =============================================================================
# DOWNLOAD
# =============================================================================

def test_download_is_noop_when_cached(tmp_path, monkeypatch):
    target = tmp_path / "data.xlsx"
    target.write_bytes(b"cached")

    def fail(*args, **kwargs):
        raise AssertionError("network must not be touched")

    monkeypatch.setattr(loaders.requests, "get", fail)
    assert download_dataset("https://example.org/x", target, verbose=False) == target
    assert target.read_bytes() == b"cached"


def test_download_writes_file(tmp_path, monkeypatch):
    monkeypatch.setattr(loaders.requests, "get", lambda url, stream, timeout: FakeResponse())
    target = tmp_path / "sub" / "data.xlsx"
    download_dataset("https://example.org/x", target, verbose=False)
    assert target.read_bytes() == b"abcdef"
    assert list(target.parent.glob("*.part")) == []


def test_download_connection_error(tmp_path, monkeypatch):
    def boom(url, stream, timeout):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(loaders.requests, "get", boom)
    target = tmp_path / "data.xlsx"
    with pytest.raises(NetworkError) as info:
        download_dataset("https://example.org/x", target, verbose=False)
    assert info.value.url == "https://example.org/x"
    assert not target.exists()


def test_download_http_error_leaves_no_partial_file(tmp_path, monkeypatch):
    error = requests.HTTPError("404 Client Error")
    monkeypatch.setattr(
        loaders.requests, "get",
        lambda url, stream, timeout: FakeResponse(status_error=error),
    )
    target = tmp_path / "data.xlsx"
    with pytest.raises(NetworkError):
        download_dataset("https://example.org/x", target, verbose=False)
    assert not target.exists()
    assert list(tmp_path.iterdir()) == []


def test_resolve_data_url_prefers_config(monkeypatch):
    monkeypatch.setenv("SMELLE_DATA_URL", "https://env.example.org")
    monkeypatch.setenv("SMELLE_BLINDED_DATA_URL", "https://blind.example.org")
    assert loaders.resolve_data_url(AnalysisConfig()) == "https://env.example.org"
    assert loaders.resolve_data_url(AnalysisConfig(blinded=True)) == "https://blind.example.org"
    assert loaders.resolve_data_url(AnalysisConfig(data_url="https://cfg")) == "https://cfg"
