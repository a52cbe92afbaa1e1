# lifeexp/data/aggregate.py
"""
Collapse the long Indicator Table to a Country-Indicator Matrix.

Rules:
 - only rows whose year falls inside the configured window are kept
 - duplicate (country, indicator, year) rows are averaged first, so a
   duplicated year does not get double weight in the window mean
 - the window mean ignores missing values; an all-missing group stays NaN
 - a country with nothing observed inside the window is dropped
"""
from __future__ import annotations

import logging
from typing import Iterable

import pandas as pd

LOG = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

KEYS = ["country", "indicator_name"]


def filter_years(df_long: pd.DataFrame, years: Iterable[int]) -> pd.DataFrame:
    """Keep rows whose year is in `years`."""
    years = sorted({int(y) for y in years})
    if not years:
        raise ValueError("Year window is empty.")
    out = df_long[df_long["year"].astype(int).isin(years)].copy()
    LOG.info("Year window %s-%s keeps %s of %s rows", years[0], years[-1], f"{len(out):,}", f"{len(df_long):,}")
    return out


def aggregate_indicators(df_long: pd.DataFrame, years: Iterable[int]) -> pd.DataFrame:
    """
    Return the Country-Indicator Matrix: index = country, one column per
    indicator, cell = mean of the present yearly values inside `years`.
    """
    missing = [c for c in KEYS + ["year", "value"] if c not in df_long.columns]
    if missing:
        raise KeyError(f"Long indicator table lacks columns: {missing}")

    window = filter_years(df_long, years)
    window["value"] = pd.to_numeric(window["value"], errors="coerce")

    n_dupes = int(window.duplicated(subset=KEYS + ["year"]).sum())
    if n_dupes:
        LOG.warning("Averaging %d duplicate (country, indicator, year) rows", n_dupes)
    per_year = window.groupby(KEYS + ["year"], sort=True)["value"].mean()

    # groupby-mean skips NaN; an all-NaN group yields NaN
    means = per_year.groupby(level=KEYS).mean()

    matrix = means.unstack("indicator_name")
    matrix.columns.name = None
    matrix.index.name = "country"

    empty = matrix.index[matrix.isna().all(axis=1)]
    if len(empty):
        LOG.info("Dropping %d countries with no observed values in window", len(empty))
        matrix = matrix.drop(index=empty)

    n_missing = int(matrix.isna().sum().sum())
    LOG.info(
        "Country-indicator matrix: %d countries x %d indicators (%d empty aggregates)",
        matrix.shape[0], matrix.shape[1], n_missing,
    )
    return matrix
