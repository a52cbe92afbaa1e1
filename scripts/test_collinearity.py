# scripts/test_collinearity.py
from pathlib import Path
import sys
HERE = Path(__file__).resolve()
REPO_ROOT = HERE.parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import numpy as np
import pandas as pd
import pytest

from lifeexp.model import collinearity as col
from lifeexp.model.model_defs import PredictorSpec
from lifeexp.utils.errors import ThresholdUnsatisfiable


def _frame(n=150, seed=21):
    rng = np.random.default_rng(seed)
    df = pd.DataFrame({"x1": rng.uniform(0, 1, n), "x3": rng.uniform(0, 1, n)})
    df["x2"] = df["x1"] + rng.normal(0, 0.01, n)
    df["y"] = 1.0 + 2.0 * df["x1"] + 1.5 * df["x3"] + rng.normal(0, 0.1, n)
    return df


SPECS = [PredictorSpec("x1"), PredictorSpec("x2"), PredictorSpec("x3")]


def _manual_vif(df, target, others):
    X = np.column_stack([np.ones(len(df))] + [df[c].to_numpy() for c in others])
    y = df[target].to_numpy()
    beta, *_ = np.linalg.lstsq(X, y, rcond=None)
    resid = y - X @ beta
    r2 = 1 - (resid ** 2).sum() / ((y - y.mean()) ** 2).sum()
    return 1.0 / (1.0 - r2)


def test_compute_vif_matches_auxiliary_regression():
    df = _frame()
    vif = col.compute_vif(df, SPECS)
    assert list(vif.index) == ["x1", "x2", "x3"]
    assert vif["x3"] == pytest.approx(_manual_vif(df, "x3", ["x1", "x2"]), rel=1e-6)
    assert vif["x1"] == pytest.approx(_manual_vif(df, "x1", ["x2", "x3"]), rel=1e-6)
    assert vif["x1"] > 100


def test_single_predictor_has_unit_vif():
    vif = col.compute_vif(_frame(), [PredictorSpec("x3")])
    assert vif.to_dict() == {"x3": 1.0}


def test_prune_collinear_reaches_threshold():
    df = _frame()
    result = col.prune_collinear(df, "y", SPECS, threshold=10.0, reselect=False)
    assert len(result.dropped) == 1
    assert result.dropped[0]["dropped"] in {"x1", "x2"}
    assert result.vif.max() <= 10.0
    assert "x3" in result.model.terms
    assert list(result.dropped_frame().columns) == ["step", "dropped", "vif", "max_vif_after"]


def test_prune_collinear_reselects_by_aic():
    result = col.prune_collinear(_frame(), "y", SPECS, threshold=10.0, reselect=True)
    assert result.selection is not None
    assert result.model is result.selection.model
    assert result.vif.max() <= 10.0


def test_threshold_below_one_stops_at_single_predictor():
    result = col.prune_collinear(_frame(), "y", SPECS, threshold=0.5, reselect=False)
    assert len(result.model.specs) == 1
    assert len(result.dropped) == 2


def test_pruning_refits_on_rows_complete_for_starting_set():
    df = _frame()
    df.loc[df.index[::3], "x2"] = np.nan
    complete = int(df.notna().all(axis=1).sum())
    result = col.prune_collinear(df, "y", SPECS, threshold=10.0, reselect=False)
    assert len(result.dropped) == 1
    assert result.model.n_obs == complete

    reselected = col.prune_collinear(df, "y", SPECS, threshold=10.0, reselect=True)
    assert reselected.model.n_obs == complete


def test_unsatisfiable_inputs():
    with pytest.raises(ThresholdUnsatisfiable):
        col.prune_collinear(_frame(), "y", [], threshold=10.0)
    with pytest.raises(ThresholdUnsatisfiable):
        col.prune_collinear(_frame(), "y", SPECS, threshold=0.0)


def test_vif_table_sorted_descending():
    table = col.vif_table(col.compute_vif(_frame(), SPECS))
    assert list(table.columns) == ["feature", "vif"]
    assert table["vif"].is_monotonic_decreasing


def main():
    return pytest.main([__file__, "-q"])


if __name__ == "__main__":
    raise SystemExit(main())
