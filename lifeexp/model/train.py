# lifeexp/model/train.py
"""
OLS fitting on the transformed feature table.

Produces a FittedModel: the statsmodels results plus the predictor specs that
generated the design, so selection and pruning can refit on subsets without
rebuilding formula strings.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd
import statsmodels.api as sm

from lifeexp.model import model_defs as mdefs
from lifeexp.model.model_defs import PredictorSpec
from lifeexp.utils.errors import SchemaMismatch

LOG = logging.getLogger("lifeexp.model.train")
if not LOG.handlers:
    h = logging.StreamHandler()
    h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    LOG.addHandler(h)
LOG.setLevel(logging.INFO)


# -----------------------------
# Lightweight datatypes
# -----------------------------
@dataclass
class FittedModel:
    outcome: str
    specs: List[PredictorSpec]
    results: Any
    design: pd.DataFrame
    y: pd.Series

    @property
    def terms(self) -> List[str]:
        return [s.term for s in self.specs]

    @property
    def n_obs(self) -> int:
        return int(self.results.nobs)

    @property
    def aic(self) -> float:
        return float(self.results.aic)

    @property
    def params(self) -> pd.Series:
        return self.results.params

    @property
    def pvalues(self) -> pd.Series:
        return self.results.pvalues

    def spec_for(self, term: str) -> PredictorSpec:
        for s in self.specs:
            if s.term == term:
                return s
        raise KeyError(term)

    def coef_table(self, model_name: str = "OLS") -> pd.DataFrame:
        return pd.DataFrame(summarize_sm_results(self.results, list(self.design.columns), self.n_obs, model_name))

    def fit_stats(self) -> Dict[str, float]:
        r = self.results
        return {
            "n_obs": self.n_obs,
            "df_model": float(r.df_model),
            "df_resid": float(r.df_resid),
            "r2": float(r.rsquared),
            "r2_adj": float(r.rsquared_adj),
            "f_stat": float(r.fvalue),
            "f_pvalue": float(r.f_pvalue),
            "llf": float(r.llf),
            "aic": float(r.aic),
            "bic": float(r.bic),
        }


# -----------------------------
# Summarization helpers
# -----------------------------
def summarize_sm_results(sm_obj: Any, cols: List[str], n_obs: int, model_name: str) -> List[Dict[str, Any]]:
    """One row per term: coef, std_err, t, pvalue."""
    rows: List[Dict[str, Any]] = []
    for c in cols:
        rows.append({
            "model": model_name,
            "term": str(c),
            "coef": float(sm_obj.params.get(c, np.nan)),
            "std_err": float(sm_obj.bse.get(c, np.nan)),
            "t": float(sm_obj.tvalues.get(c, np.nan)),
            "pvalue": float(sm_obj.pvalues.get(c, np.nan)),
            "n_obs": int(n_obs),
        })
    return rows


# -----------------------------
# Core modeling functions
# -----------------------------
def complete_sample(df: pd.DataFrame, outcome: str, specs: Sequence[PredictorSpec]) -> pd.DataFrame:
    """
    Rows of df with the outcome and every column used by `specs` observed.

    Model comparisons (AIC, VIF) must refit on this frame, built once from the
    largest spec set, so every candidate sees the same observations.
    """
    if outcome not in df.columns:
        raise SchemaMismatch(f"Outcome column '{outcome}' not in feature table", columns=[outcome])
    if any(s.column == outcome for s in specs):
        raise ValueError(f"Outcome '{outcome}' also listed as a predictor")
    mdefs.check_columns(df, [s.column for s in specs])
    sdf = df[[outcome] + list(dict.fromkeys(s.column for s in specs))].dropna()
    if len(sdf) < len(df):
        LOG.warning("Dropped %d rows with missing values (%d left)", len(df) - len(sdf), len(sdf))
    return sdf


def fit_ols(df: pd.DataFrame, outcome: str, specs: Sequence[PredictorSpec], quiet: bool = False) -> FittedModel:
    """
    Fit outcome ~ const + specs by ordinary least squares.

    Raises SchemaMismatch for absent columns and RankDeficientDesign when the
    design is not of full column rank; a collinear column is never dropped
    silently.
    """
    specs = list(specs)
    sdf = complete_sample(df, outcome, specs)
    X = mdefs.prepare_design_matrix(sdf, specs, add_constant=True)
    mdefs.check_rank(X)
    y = sdf[outcome].astype(float)
    res = sm.OLS(y, X).fit()
    if not quiet:
        LOG.info(
            "OLS %s ~ %d terms: n=%d R2=%.4f AIC=%.3f",
            outcome, len(specs), int(res.nobs), res.rsquared, res.aic,
        )
    return FittedModel(outcome=outcome, specs=specs, results=res, design=X, y=y)
