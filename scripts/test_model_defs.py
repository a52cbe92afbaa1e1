# scripts/test_model_defs.py
from pathlib import Path
import sys
HERE = Path(__file__).resolve()
REPO_ROOT = HERE.parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import numpy as np
import pandas as pd
import pytest

from lifeexp.model import model_defs
from lifeexp.model.model_defs import PredictorSpec
from lifeexp.model.train import fit_ols
from lifeexp.utils.errors import RankDeficientDesign, SchemaMismatch, TransformDomainError


def _frame(n=120, seed=3):
    rng = np.random.default_rng(seed)
    df = pd.DataFrame({
        "x1": rng.uniform(0, 1, n),
        "x2": rng.uniform(0, 1, n),
        "x4": rng.uniform(0, 1, n),
    })
    df["y"] = 1.0 + 2.0 * df["x1"] - 3.0 * df["x2"] + rng.normal(0, 0.01, n)
    return df


def test_parse_predictor_specs_accepts_strings_and_dicts():
    specs = model_defs.parse_predictor_specs(["x1", {"column": "x2", "link": "sqrt"}, {"column": "x4", "link": "sqrt_complement"}])
    assert [s.term for s in specs] == ["x1", "sqrt(x2)", "sqrt(1-x4)"]


def test_parse_predictor_specs_rejects_bad_entries():
    with pytest.raises(ValueError):
        model_defs.parse_predictor_specs([{"column": "x1", "link": "cube"}])
    with pytest.raises(ValueError):
        model_defs.parse_predictor_specs(["x1", "x1"])
    with pytest.raises(ValueError):
        model_defs.parse_predictor_specs([42])


def test_prepare_design_matrix_applies_links():
    df = _frame()
    specs = [PredictorSpec("x1", "sqrt"), PredictorSpec("x2", "sqrt_complement")]
    X = model_defs.prepare_design_matrix(df, specs)
    assert list(X.columns) == ["const", "sqrt(x1)", "sqrt(1-x2)"]
    assert np.allclose(X["sqrt(x1)"], np.sqrt(df["x1"]))
    assert np.allclose(X["sqrt(1-x2)"], np.sqrt(1 - df["x2"]))
    assert (X["const"] == 1.0).all()


def test_link_domain_checked():
    df = pd.DataFrame({"x": [-0.5, 0.5]})
    with pytest.raises(TransformDomainError):
        model_defs.prepare_design_matrix(df, [PredictorSpec("x", "sqrt")])
    df = pd.DataFrame({"x": [0.5, 1.5]})
    with pytest.raises(TransformDomainError):
        model_defs.prepare_design_matrix(df, [PredictorSpec("x", "sqrt_complement")])


def test_fit_ols_recovers_coefficients_and_stats():
    model = fit_ols(_frame(), "y", [PredictorSpec("x1"), PredictorSpec("x2")])
    assert model.params["const"] == pytest.approx(1.0, abs=0.02)
    assert model.params["x1"] == pytest.approx(2.0, abs=0.02)
    assert model.params["x2"] == pytest.approx(-3.0, abs=0.02)
    stats = model.fit_stats()
    assert stats["r2"] > 0.99
    assert stats["df_model"] == 2
    assert stats["df_resid"] == 120 - 3
    table = model.coef_table()
    assert list(table["term"]) == ["const", "x1", "x2"]
    assert {"coef", "std_err", "t", "pvalue"} <= set(table.columns)
    assert (table["pvalue"] < 1e-6).all()


def test_aic_matches_gaussian_likelihood_definition():
    model = fit_ols(_frame(), "y", [PredictorSpec("x1"), PredictorSpec("x2")])
    k = 3
    assert model.aic == pytest.approx(2 * k - 2 * model.results.llf)


def test_rank_deficient_design_names_columns():
    df = _frame()
    df["x3"] = df["x1"] + df["x2"]
    specs = [PredictorSpec(c) for c in ["x1", "x2", "x3", "x4"]]
    with pytest.raises(RankDeficientDesign) as exc:
        fit_ols(df, "y", specs)
    assert set(exc.value.columns) == {"x1", "x2", "x3"}


def test_too_few_rows_is_rank_deficient():
    df = _frame().head(2)
    with pytest.raises(RankDeficientDesign):
        fit_ols(df, "y", [PredictorSpec("x1"), PredictorSpec("x2")])


def test_missing_columns_raise_schema_mismatch():
    with pytest.raises(SchemaMismatch):
        fit_ols(_frame(), "le", [PredictorSpec("x1")])
    with pytest.raises(SchemaMismatch) as exc:
        fit_ols(_frame(), "y", [PredictorSpec("x1"), PredictorSpec("gdp")])
    assert exc.value.columns == ["gdp"]


def main():
    return pytest.main([__file__, "-q"])


if __name__ == "__main__":
    raise SystemExit(main())
