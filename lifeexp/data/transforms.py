"""
Skew transforms, normalization and correlation exports for the feature table.

Transforms (all monotonic increasing, so rank order is preserved):
 - right-skewed columns: log(1 + x)
 - left-skewed columns:  -log(C - x), C = 101 for percentage-type indicators
   (the reflected log is negated so larger x still maps to larger values)

Normalization:
 - "minmax" (default): each column scaled to [0, 1] over the full feature set.
   This is the convention the square-root links of the model builder need.
 - "zscore": mean 0, population variance 1.
 - Constant columns raise DegenerateColumn instead of producing NaN/Inf.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.preprocessing import MinMaxScaler, StandardScaler

from lifeexp.utils.errors import DegenerateColumn, SchemaMismatch, TransformDomainError

LOG = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

LEFT_SKEW_OFFSET = 101.0
NORMALIZATION_METHODS = ("minmax", "zscore")


@dataclass
class NormalizationParams:
    """Per-column center/scale so a normalization can be reapplied or inverted."""
    method: str
    center: pd.Series
    scale: pd.Series

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        cols = list(self.center.index)
        out = df.copy()
        out[cols] = (df[cols] - self.center) / self.scale
        return out

    def invert(self, df: pd.DataFrame) -> pd.DataFrame:
        cols = [c for c in self.center.index if c in df.columns]
        out = df.copy()
        out[cols] = df[cols] * self.scale[cols] + self.center[cols]
        return out

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"center": self.center, "scale": self.scale}).rename_axis("column")


def right_skew_transform(series: pd.Series) -> pd.Series:
    """log(1 + x); x must be > -1."""
    s = pd.to_numeric(series, errors="coerce").astype(float)
    bad = s.notna() & (s <= -1)
    if bad.any():
        raise TransformDomainError(
            f"log(1+x) undefined for {int(bad.sum())} values of '{series.name}' (min={s.min():.4g})",
            columns=[series.name],
        )
    return np.log1p(s)


def left_skew_transform(series: pd.Series, offset: float = LEFT_SKEW_OFFSET) -> pd.Series:
    """-log(offset - x); offset - x must be > 0."""
    s = pd.to_numeric(series, errors="coerce").astype(float)
    bad = s.notna() & (offset - s <= 0)
    if bad.any():
        raise TransformDomainError(
            f"log({offset:g}-x) undefined for {int(bad.sum())} values of '{series.name}' (max={s.max():.4g})",
            columns=[series.name],
        )
    return -np.log(offset - s)


def apply_skew_transforms(
    df: pd.DataFrame,
    right_skewed: Iterable[str] = (),
    left_skewed: Iterable[str] = (),
    offset: float = LEFT_SKEW_OFFSET,
) -> pd.DataFrame:
    """Return a copy of df with the two column sets transformed; other columns pass through."""
    right = list(right_skewed)
    left = list(left_skewed)
    overlap = sorted(set(right) & set(left))
    if overlap:
        raise ValueError(f"Columns listed as both right- and left-skewed: {overlap}")
    missing = [c for c in right + left if c not in df.columns]
    if missing:
        raise SchemaMismatch(f"Skew transform columns not in feature table: {missing}", columns=missing)

    out = df.copy()
    for c in right:
        out[c] = right_skew_transform(out[c])
        LOG.debug("log1p -> %s", c)
    for c in left:
        out[c] = left_skew_transform(out[c], offset=offset)
        LOG.debug("-log(%g - x) -> %s", offset, c)
    LOG.info("Skew transforms: %d right-skewed, %d left-skewed (offset=%g)", len(right), len(left), offset)
    return out


def _numeric_columns(df: pd.DataFrame, columns: Optional[Iterable[str]]) -> List[str]:
    if columns is None:
        return df.select_dtypes(include=[np.number]).columns.tolist()
    cols = list(columns)
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise SchemaMismatch(f"Normalization columns not in feature table: {missing}", columns=missing)
    return cols


def fit_normalization(
    df: pd.DataFrame,
    columns: Optional[Iterable[str]] = None,
    method: str = "minmax",
) -> NormalizationParams:
    """Compute per-column normalization parameters once over the full feature set."""
    if method not in NORMALIZATION_METHODS:
        raise ValueError(f"Unknown normalization method '{method}' (expected one of {NORMALIZATION_METHODS})")
    cols = _numeric_columns(df, columns)
    if not cols:
        raise ValueError("No numeric columns to normalize.")
    X = df[cols].astype(float)

    spread = X.max() - X.min()
    degenerate = spread[~(spread > 0)].index.tolist()
    if degenerate:
        raise DegenerateColumn(
            f"Cannot normalize constant (or empty) columns: {degenerate}",
            columns=degenerate,
        )

    if method == "minmax":
        scaler = MinMaxScaler().fit(X.to_numpy())
        center = pd.Series(scaler.data_min_, index=cols)
        scale = pd.Series(scaler.data_range_, index=cols)
    else:
        # StandardScaler uses the population std (ddof=0)
        scaler = StandardScaler().fit(X.to_numpy())
        center = pd.Series(scaler.mean_, index=cols)
        scale = pd.Series(scaler.scale_, index=cols)
    return NormalizationParams(method=method, center=center, scale=scale)


def normalize(
    df: pd.DataFrame,
    columns: Optional[Iterable[str]] = None,
    method: str = "minmax",
) -> Tuple[pd.DataFrame, NormalizationParams]:
    """Normalize every numeric column independently; returns (frame, params)."""
    params = fit_normalization(df, columns=columns, method=method)
    out = params.apply(df)
    LOG.info("Normalized %d columns (%s)", len(params.center), method)
    return out, params


def export_top_correlations(df: pd.DataFrame, top_k: int = 50) -> pd.DataFrame:
    """Absolute pairwise correlations between numeric columns, strongest first."""
    num = df.select_dtypes(include=[np.number])
    if num.shape[1] < 2:
        LOG.info("Not enough numeric columns for correlation analysis.")
        return pd.DataFrame(columns=["x", "y", "abs_corr"])

    corr = num.corr().abs()
    cols = corr.columns.tolist()
    pairs = []
    for i in range(len(cols)):
        for j in range(i + 1, len(cols)):
            pairs.append((cols[i], cols[j], float(corr.iloc[i, j])))
    pairs_df = pd.DataFrame(pairs, columns=["x", "y", "abs_corr"]).sort_values("abs_corr", ascending=False)
    return pairs_df.head(top_k).reset_index(drop=True)
