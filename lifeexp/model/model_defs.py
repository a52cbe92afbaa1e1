# lifeexp/model/model_defs.py
"""
Model helpers: structured predictor specifications, design matrix preparation,
and rank checks.

A predictor is a (column, link) pair rather than a formula string:
- identity:         x
- sqrt:             sqrt(x)
- sqrt_complement:  sqrt(1 - x)   (decreasing, concave relationships)

The links assume min-max normalized inputs in [0, 1].
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Sequence
import numpy as np
import pandas as pd
import logging

from lifeexp.utils.errors import RankDeficientDesign, SchemaMismatch, TransformDomainError

LOG = logging.getLogger("lifeexp.model.model_defs")
if not LOG.handlers:
    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    LOG.addHandler(ch)
LOG.setLevel(logging.INFO)

RANK_TOL = 1e-10


def _identity(s: pd.Series) -> pd.Series:
    return s


def _sqrt(s: pd.Series) -> pd.Series:
    if (s < 0).any():
        raise TransformDomainError(f"sqrt link needs x >= 0 in '{s.name}' (min={s.min():.4g})", columns=[s.name])
    return np.sqrt(s)


def _sqrt_complement(s: pd.Series) -> pd.Series:
    if (s > 1).any():
        raise TransformDomainError(f"sqrt(1-x) link needs x <= 1 in '{s.name}' (max={s.max():.4g})", columns=[s.name])
    return np.sqrt(1.0 - s)


LINKS: Dict[str, Callable[[pd.Series], pd.Series]] = {
    "identity": _identity,
    "sqrt": _sqrt,
    "sqrt_complement": _sqrt_complement,
}
TERM_FORMATS = {
    "identity": "{}",
    "sqrt": "sqrt({})",
    "sqrt_complement": "sqrt(1-{})",
}


@dataclass(frozen=True)
class PredictorSpec:
    column: str
    link: str = "identity"

    def __post_init__(self):
        if self.link not in LINKS:
            raise ValueError(f"Unknown link '{self.link}' for {self.column} (expected one of {sorted(LINKS)})")

    @property
    def term(self) -> str:
        return TERM_FORMATS[self.link].format(self.column)

    def evaluate(self, df: pd.DataFrame) -> pd.Series:
        return LINKS[self.link](df[self.column].astype(float)).rename(self.term)


def parse_predictor_specs(raw: Iterable[Any]) -> List[PredictorSpec]:
    """
    Accept config entries as plain column names, {"column": ..., "link": ...}
    dicts, or PredictorSpec objects.
    """
    specs: List[PredictorSpec] = []
    for item in raw:
        if isinstance(item, PredictorSpec):
            specs.append(item)
        elif isinstance(item, str):
            specs.append(PredictorSpec(item))
        elif isinstance(item, dict) and "column" in item:
            specs.append(PredictorSpec(str(item["column"]), str(item.get("link", "identity"))))
        else:
            raise ValueError(f"Cannot parse predictor specification: {item!r}")
    terms = [s.term for s in specs]
    dupes = sorted({t for t in terms if terms.count(t) > 1})
    if dupes:
        raise ValueError(f"Duplicate predictor terms: {dupes}")
    return specs


def check_columns(df: pd.DataFrame, cols: Iterable[str]) -> None:
    """Raise SchemaMismatch listing every column in `cols` that df lacks."""
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise SchemaMismatch(f"Columns not found in dataframe: {missing}", columns=missing)


def prepare_design_matrix(df: pd.DataFrame, specs: Sequence[PredictorSpec], add_constant: bool = True) -> pd.DataFrame:
    """
    Build the design matrix as a DataFrame whose columns are the term names.

    - specs: predictor specifications, evaluated in order
    - add_constant: if True, a leading constant column named 'const' is added
    """
    check_columns(df, [s.column for s in specs])
    pieces = [s.evaluate(df) for s in specs]
    if add_constant:
        # const first to match statsmodels convention
        pieces.insert(0, pd.Series(1.0, index=df.index, name="const"))
    if not pieces:
        return pd.DataFrame(index=df.index)
    X = pd.concat(pieces, axis=1)
    LOG.debug("Prepared design matrix with columns: %s (shape=%s)", list(X.columns), X.shape)
    return X


def check_rank(X: pd.DataFrame) -> None:
    """
    Raise RankDeficientDesign if X does not have full column rank, naming the
    columns that take part in an exact linear dependency.
    """
    n, p = X.shape
    if n < p:
        raise RankDeficientDesign(
            f"Design has {n} observations for {p} parameters.",
            columns=list(X.columns),
        )
    A = X.to_numpy(dtype=float)
    _, sv, vt = np.linalg.svd(A, full_matrices=True)
    tol = RANK_TOL * (sv[0] if len(sv) and sv[0] > 0 else 1.0) * max(n, p)
    rank = int((sv > tol).sum())
    if rank == p:
        return
    null_space = vt[rank:]
    weights = np.abs(null_space).max(axis=0)
    implicated = [c for c, w in zip(X.columns, weights) if w > 1e-8]
    raise RankDeficientDesign(
        f"Design matrix is rank deficient (rank {rank} < {p}); collinear columns: {implicated}",
        columns=implicated,
    )
