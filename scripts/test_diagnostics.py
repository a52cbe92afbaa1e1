# scripts/test_diagnostics.py
from pathlib import Path
import sys
HERE = Path(__file__).resolve()
REPO_ROOT = HERE.parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import numpy as np
import pandas as pd
import pytest

from lifeexp.model.diagnostics import residual_frame, residual_summary
from lifeexp.model.model_defs import PredictorSpec
from lifeexp.model.train import fit_ols


def _model():
    rng = np.random.default_rng(2)
    n = 60
    df = pd.DataFrame(
        {"x": rng.uniform(0, 1, n), "z": rng.uniform(0, 1, n)},
        index=pd.Index([f"country_{i}" for i in range(n)], name="country"),
    )
    df["y"] = 2.0 + df["x"] - df["z"] + rng.normal(0, 0.1, n)
    return df, fit_ols(df, "y", [PredictorSpec("x"), PredictorSpec("z", "sqrt")])


def test_fitted_plus_residual_equals_observed():
    df, model = _model()
    frame = residual_frame(model)
    assert list(frame.columns) == ["observed", "fitted", "residual"]
    assert len(frame) == len(df)
    assert list(frame.index) == list(df.index)
    assert np.allclose(frame["fitted"] + frame["residual"], df["y"])
    assert frame["residual"].mean() == pytest.approx(0.0, abs=1e-10)


def test_residual_frame_does_not_touch_model():
    _, model = _model()
    before = model.params.copy()
    residual_frame(model)
    residual_summary(model)
    pd.testing.assert_series_equal(model.params, before)


def test_residual_summary_reports_statistics():
    _, model = _model()
    summary = residual_summary(model)
    for key in ["jarque_bera", "jarque_bera_pvalue", "breusch_pagan_lm", "breusch_pagan_pvalue", "durbin_watson"]:
        assert key in summary
        assert np.isfinite(summary[key])
    assert summary["n_obs"] == 60
    assert 0.0 <= summary["jarque_bera_pvalue"] <= 1.0


def main():
    return pytest.main([__file__, "-q"])


if __name__ == "__main__":
    raise SystemExit(main())
