# lifeexp/data/select_features.py
"""
Lock the modeling schema: project the required indicators out of the
Country-Indicator Matrix and keep only complete rows.

Design Notes:
  - Missing required indicators are a hard failure (SchemaMismatch) that lists
    every absent name; nothing is skipped silently.
  - Rows with any missing required value are dropped, never imputed.
  - Deterministic column order (the order of `required`).
  - Emits a schema digest for drift tracking.
"""

from __future__ import annotations
import hashlib
import json
import logging
from typing import Dict, List, Mapping, Sequence, Tuple, Union

import pandas as pd

from lifeexp.utils.errors import SchemaMismatch

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(message)s"
)
log = logging.getLogger(__name__)

Required = Union[Sequence[str], Mapping[str, str]]


def _normalize_required(required: Required) -> Tuple[List[str], Dict[str, str]]:
    """Return (indicator names in order, indicator -> alias)."""
    if isinstance(required, Mapping):
        names = list(required.values())
        aliases = {name: alias for alias, name in required.items()}
    else:
        names = list(required)
        aliases = {}
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        raise ValueError(f"Indicators requested more than once: {dupes}")
    return names, aliases


def select_features(matrix: pd.DataFrame, required: Required) -> pd.DataFrame:
    """
    Return the Feature Record set: one row per country (index), one column per
    required indicator (renamed to its alias when `required` is a mapping),
    with no missing values.
    """
    names, aliases = _normalize_required(required)
    if not names:
        raise ValueError("No required indicators configured.")

    missing = [n for n in names if n not in matrix.columns]
    if missing:
        log.error("Required indicators missing from matrix: %s", missing)
        raise SchemaMismatch(
            f"Cannot select features: missing required indicators -> {missing}",
            columns=missing,
        )

    projected = matrix[names].apply(pd.to_numeric, errors="coerce")
    complete = projected.dropna(how="any")
    n_dropped = len(projected) - len(complete)
    if n_dropped:
        worst = projected.isna().sum().sort_values(ascending=False)
        worst = worst[worst > 0]
        log.info("Dropping %d of %d countries with incomplete indicators", n_dropped, len(projected))
        log.info("Missing counts by indicator:\n%s", worst.head(10).to_string())

    if aliases:
        complete = complete.rename(columns=aliases)
    complete.index.name = "country"
    log.info("Feature records: %d countries x %d indicators", complete.shape[0], complete.shape[1])
    return complete


def schema_manifest(features: pd.DataFrame, required: Required) -> Dict[str, object]:
    """Small manifest of the locked schema (columns, row count, md5 digest)."""
    names, _ = _normalize_required(required)
    schema_text = json.dumps({"columns": list(features.columns)}, sort_keys=True).encode("utf-8")
    return {
        "timestamp_utc": pd.Timestamp.now(tz="UTC").isoformat(),
        "indicators": names,
        "columns": list(features.columns),
        "n_rows": int(len(features)),
        "schema_md5": hashlib.md5(schema_text).hexdigest(),
    }
