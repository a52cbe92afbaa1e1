# lifeexp/model/diagnostics.py
"""
Residual diagnostics for a finalized model.

Nothing here mutates the model or passes judgement: the functions only
expose fitted values, residuals and the usual test statistics so a report or
chart can be built from them elsewhere.
"""
from __future__ import annotations

import logging
from typing import Dict

import numpy as np
import pandas as pd
from statsmodels.stats.diagnostic import het_breuschpagan
from statsmodels.stats.stattools import durbin_watson, jarque_bera

from lifeexp.model.train import FittedModel

LOG = logging.getLogger("lifeexp.model.diagnostics")
if not LOG.handlers:
    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    LOG.addHandler(ch)
LOG.setLevel(logging.INFO)


def residual_frame(model: FittedModel) -> pd.DataFrame:
    """Fitted values and residuals, one row per observation used in the fit."""
    res = model.results
    out = pd.DataFrame({
        "observed": model.y.astype(float),
        "fitted": pd.Series(np.asarray(res.fittedvalues, dtype=float), index=model.y.index),
        "residual": pd.Series(np.asarray(res.resid, dtype=float), index=model.y.index),
    })
    out.index.name = model.y.index.name or "country"
    return out


def residual_summary(model: FittedModel) -> Dict[str, float]:
    """Normality / homoscedasticity / autocorrelation statistics of the residuals."""
    resid = np.asarray(model.results.resid, dtype=float)
    jb, jb_p, skew, kurt = jarque_bera(resid)
    summary = {
        "n_obs": int(len(resid)),
        "resid_mean": float(resid.mean()),
        "resid_std": float(resid.std(ddof=1)) if len(resid) > 1 else float("nan"),
        "jarque_bera": float(jb),
        "jarque_bera_pvalue": float(jb_p),
        "skew": float(skew),
        "kurtosis": float(kurt),
        "durbin_watson": float(durbin_watson(resid)),
    }
    # Breusch-Pagan needs at least one regressor besides the constant
    if model.design.shape[1] > 1:
        lm, lm_p, fval, f_p = het_breuschpagan(resid, model.design.to_numpy(dtype=float))
        summary.update({
            "breusch_pagan_lm": float(lm),
            "breusch_pagan_pvalue": float(lm_p),
            "breusch_pagan_f": float(fval),
            "breusch_pagan_f_pvalue": float(f_p),
        })
    LOG.info("Residual summary: %s", {k: round(v, 4) for k, v in summary.items()})
    return summary
