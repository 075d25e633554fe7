from __future__ import annotations

from pathlib import Path

import arviz as az
import numpy as np
import pandas as pd
import pytest

from smelle.config import AnalysisConfig
from smelle.preprocessing import load_dataset


PARTICIPANTS = ["P01", "P02", "P03", "P04", "P05", "P06"]
FOOD_EFFECT = 10.0


def make_raw_export(
    participants=PARTICIPANTS,
    failed_blinding=("P02",),
    food_effect: float = FOOD_EFFECT,
) -> pd.DataFrame:
    """
    Unblinded export: one row per participant x exposure x stimulus.

    Craving for Food is exactly ``food_effect`` above NonFood in every
    participant and exposure mode.
    """
    rows = []
    for i, pid in enumerate(participants):
        for condition in (1, 2, 3):
            presence = 40.0 + 5.0 * condition + i
            for stimulus in (0, 1):
                nonfood_craving = 20.0 + 2.0 * i + 3.0 * condition
                rows.append({
                    "ID": pid,
                    "Condition": condition,
                    "Stimulus": stimulus,
                    "Gender": 1 if i % 2 == 0 else 2,
                    "Age": 20 + i,
                    "BMI": 21.0 + 0.5 * i,
                    "VR_familiarity": 30.0 + 4.0 * i,
                    "VVIQ": 50.0 + 3.0 * i,
                    "State_imagery": 60.0 - 2.0 * i,
                    "Saliva": 0.5 + 0.1 * i + 0.2 * stimulus + 0.05 * condition,
                    "Craving": nonfood_craving + food_effect * stimulus,
                    "Liking": 55.0 + stimulus * 5.0,
                    "Presence": presence,
                    "Hunger": 45.0 + 2.0 * i,
                    "Blinding_check": "Yes" if pid in failed_blinding else "No",
                })
    return pd.DataFrame(rows)


def make_fake_sampler(noise: float = 0.01, n_chains: int = 4, n_draws: int = 500, seed: int = 0):
    """
    Stand-in for ``pm.sample``: least-squares coefficients plus small
    independent noise, returned as InferenceData with the fitter's names.
    """
    def sampler(model, *, designs, config, target_accept, verbose=True):
        rng = np.random.default_rng(seed)
        posterior, coords, dims = {}, {}, {}
        for design in designs:
            X = design.X.to_numpy(dtype=float)
            beta, *_ = np.linalg.lstsq(X, design.y, rcond=None)
            name = f"b_{design.outcome}"
            posterior[name] = beta + noise * rng.standard_normal((n_chains, n_draws, len(beta)))
            coords[f"{design.outcome}_coef"] = design.columns
            dims[name] = [f"{design.outcome}_coef"]
            posterior[f"sigma_{design.outcome}"] = 1.0 + noise * np.abs(
                rng.standard_normal((n_chains, n_draws))
            )
        sampler.calls += 1
        sampler.target_accepts.append(target_accept)
        return az.from_dict(posterior=posterior, coords=coords, dims=dims)

    sampler.calls = 0
    sampler.target_accepts = []
    return sampler


@pytest.fixture
def raw_export() -> pd.DataFrame:
    return make_raw_export()


@pytest.fixture
def config(tmp_path: Path) -> AnalysisConfig:
    return AnalysisConfig(
        data_dir=tmp_path / "data",
        cache_dir=tmp_path / "cache",
        output_dir=tmp_path / "results",
        draws=500,
        tune=100,
        chains=4,
        cores=1,
        rhat_threshold=1.05,
        ess_threshold=100.0,
    )


@pytest.fixture
def export_path(tmp_path: Path, raw_export: pd.DataFrame) -> Path:
    path = tmp_path / "export.csv"
    raw_export.to_csv(path, index=False)
    return path


@pytest.fixture
def dataset(config: AnalysisConfig, export_path: Path) -> pd.DataFrame:
    return load_dataset(config, path=export_path, verbose=False)


@pytest.fixture
def fake_sampler():
    return make_fake_sampler()
