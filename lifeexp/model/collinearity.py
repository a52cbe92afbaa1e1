# lifeexp/model/collinearity.py
"""
Variance inflation factors and the collinearity pruning loop.

VIF_i = 1 / (1 - R2_i), R2_i from regressing term i (with intercept) on the
other current terms. The pruner drops the max-VIF term and refits until every
VIF is at or below the threshold or a single predictor is left, then reruns
backward elimination over what survived. All refits use the rows complete for
the starting predictor set.
"""
from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from statsmodels.stats.outliers_influence import variance_inflation_factor

from lifeexp.model.model_defs import PredictorSpec, prepare_design_matrix
from lifeexp.model.selection import SelectionResult, backward_eliminate
from lifeexp.model.train import FittedModel, complete_sample, fit_ols
from lifeexp.utils.errors import ThresholdUnsatisfiable

LOG = logging.getLogger("lifeexp.model.collinearity")
if not LOG.handlers:
    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    LOG.addHandler(ch)
LOG.setLevel(logging.INFO)

DEFAULT_VIF_THRESHOLD = 10.0
ADVISORY_VIF_THRESHOLD = 4.0


@dataclass
class PruneResult:
    model: FittedModel
    vif: pd.Series
    dropped: List[Dict[str, Any]] = field(default_factory=list)
    selection: Optional[SelectionResult] = None

    def dropped_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.dropped, columns=["step", "dropped", "vif", "max_vif_after"])


def vif_from_design(X: pd.DataFrame) -> pd.Series:
    """VIF for every non-constant column of a design matrix that includes 'const'."""
    terms = [c for c in X.columns if c != "const"]
    if len(terms) == 1:
        return pd.Series([1.0], index=terms, name="vif")
    arr = X.to_numpy(dtype=float)
    vals = []
    with warnings.catch_warnings():
        # exact collinearity gives 1/(1-1)
        warnings.simplefilter("ignore", RuntimeWarning)
        for col in terms:
            v = float(variance_inflation_factor(arr, X.columns.get_loc(col)))
            vals.append(v if np.isfinite(v) else np.inf)
    return pd.Series(vals, index=terms, name="vif")


def compute_vif(df: pd.DataFrame, specs: Sequence[PredictorSpec]) -> pd.Series:
    """VIF per predictor term over the complete rows of df."""
    if not specs:
        return pd.Series(dtype=float, name="vif")
    cols = list(dict.fromkeys(s.column for s in specs))
    X = prepare_design_matrix(df[cols].dropna(), specs, add_constant=True)
    return vif_from_design(X)


def vif_table(vif: pd.Series) -> pd.DataFrame:
    return vif.rename("vif").rename_axis("feature").reset_index().sort_values("vif", ascending=False)


def prune_collinear(
    df: pd.DataFrame,
    outcome: str,
    specs: Sequence[PredictorSpec],
    threshold: float = DEFAULT_VIF_THRESHOLD,
    reselect: bool = True,
    min_improvement: float = 0.0,
    advisory_threshold: Optional[float] = ADVISORY_VIF_THRESHOLD,
) -> PruneResult:
    """Drop max-VIF predictors until max VIF <= threshold, then reselect by AIC."""
    specs = list(specs)
    if not specs:
        raise ThresholdUnsatisfiable("Collinearity pruning needs at least one predictor.")
    if not threshold > 0:
        raise ThresholdUnsatisfiable(
            f"VIF threshold {threshold} cannot be met by any predictor set (VIF >= 1).",
            columns=[s.term for s in specs],
        )

    df = complete_sample(df, outcome, specs)
    model = fit_ols(df, outcome, specs)
    vif = vif_from_design(model.design)
    dropped: List[Dict[str, Any]] = []
    LOG.info("Initial VIFs:\n%s", vif_table(vif).to_string(index=False))

    while vif.max() > threshold and len(model.specs) > 1:
        worst = vif.idxmax()
        worst_vif = float(vif.max())
        remaining = [s for s in model.specs if s.term != worst]
        model = fit_ols(df, outcome, remaining)
        vif = vif_from_design(model.design)
        dropped.append({
            "step": len(dropped) + 1,
            "dropped": worst,
            "vif": worst_vif,
            "max_vif_after": float(vif.max()),
        })
        LOG.info("Dropped %s (VIF=%.2f); max VIF now %.2f", worst, worst_vif, vif.max())

    if vif.max() > threshold:
        LOG.warning("Single predictor %s left; VIF threshold %.1f not applicable", model.terms, threshold)

    if advisory_threshold is not None:
        above = vif[vif > advisory_threshold]
        if not above.empty:
            LOG.warning("VIF above advisory level %.1f (not enforced): %s", advisory_threshold, above.round(2).to_dict())

    result = PruneResult(model=model, vif=vif, dropped=dropped)
    if reselect:
        sel = backward_eliminate(df, outcome, model.specs, min_improvement=min_improvement)
        result.selection = sel
        result.model = sel.model
        result.vif = vif_from_design(sel.model.design)
    LOG.info("Collinearity pruning done: %d dropped, %d terms kept", len(dropped), len(result.model.specs))
    return result
