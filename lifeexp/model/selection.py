# lifeexp/model/selection.py
"""
Backward elimination by AIC.

At every step each single-term removal is refitted and the one giving the
lowest AIC is taken, provided it beats the current model by more than
`min_improvement`. Equal-AIC candidates are broken by the highest p-value of
the term in the current model (least supported goes first), then by position.
The last remaining predictor is never removed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd

from lifeexp.model.model_defs import PredictorSpec
from lifeexp.model.train import FittedModel, complete_sample, fit_ols

LOG = logging.getLogger("lifeexp.model.selection")
if not LOG.handlers:
    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    LOG.addHandler(ch)
LOG.setLevel(logging.INFO)

AIC_TIE_TOL = 1e-9


@dataclass
class SelectionResult:
    model: FittedModel
    steps: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def dropped(self) -> List[str]:
        return [s["dropped"] for s in self.steps]

    def steps_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.steps, columns=["step", "dropped", "pvalue", "aic_before", "aic_after", "n_terms"])


def _candidates(df: pd.DataFrame, current: FittedModel) -> List[Dict[str, Any]]:
    out = []
    for i, spec in enumerate(current.specs):
        reduced = [s for s in current.specs if s != spec]
        fitted = fit_ols(df, current.outcome, reduced, quiet=True)
        out.append({
            "position": i,
            "spec": spec,
            "model": fitted,
            "aic": fitted.aic,
            "pvalue": float(current.pvalues.get(spec.term, float("nan"))),
        })
    return out


def _pick(candidates: List[Dict[str, Any]]) -> Dict[str, Any]:
    best_aic = min(c["aic"] for c in candidates)
    tied = [c for c in candidates if c["aic"] - best_aic <= AIC_TIE_TOL]
    # highest p-value first; NaN p-values sort last
    return sorted(tied, key=lambda c: (-np.nan_to_num(c["pvalue"], nan=-1.0), c["position"]))[0]


def backward_eliminate(
    df: pd.DataFrame,
    outcome: str,
    specs: Sequence[PredictorSpec],
    min_improvement: float = 0.0,
) -> SelectionResult:
    """Run backward elimination from the full model built on `specs`."""
    if min_improvement < 0:
        raise ValueError("min_improvement must be >= 0")
    # one sample for every refit so the AICs stay comparable
    df = complete_sample(df, outcome, specs)
    current = fit_ols(df, outcome, specs)
    result = SelectionResult(model=current)
    LOG.info("Backward elimination start: %d terms, AIC=%.3f", len(current.specs), current.aic)

    while len(current.specs) > 1:
        best = _pick(_candidates(df, current))
        if not best["aic"] < current.aic - min_improvement:
            LOG.info(
                "No removal lowers AIC (best candidate %s -> %.3f vs %.3f); stopping.",
                best["spec"].term, best["aic"], current.aic,
            )
            break
        result.steps.append({
            "step": len(result.steps) + 1,
            "dropped": best["spec"].term,
            "pvalue": best["pvalue"],
            "aic_before": current.aic,
            "aic_after": best["aic"],
            "n_terms": len(best["model"].specs),
        })
        LOG.info("Drop %s: AIC %.3f -> %.3f", best["spec"].term, current.aic, best["aic"])
        current = best["model"]

    # refit once more at INFO level so the final model is logged
    result.model = fit_ols(df, outcome, current.specs)
    LOG.info("Backward elimination done: %d terms kept, %d dropped", len(current.specs), len(result.steps))
    return result
