# lifeexp/data/generate_metadata.py
"""
Variable metadata card.

Links every modeled alias to:
  - the source indicator name
  - a short display name (presentation only; never used in computation)
  - the skew transform applied to it
  - the fraction of countries missing it in the Country-Indicator Matrix

Intended usage:
  from lifeexp.data.generate_metadata import make_metadata_card
  card = make_metadata_card(indicators, matrix, right_skewed, left_skewed)
"""

from __future__ import annotations
import re
from typing import Iterable, Mapping, Optional
import logging

import pandas as pd

logger = logging.getLogger(__name__)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(message)s"
)


def default_display_name(indicator_name: str) -> str:
    """Indicator name without its trailing parenthesised unit."""
    name = re.sub(r"\s*\([^)]*\)\s*$", "", str(indicator_name)).strip()
    return name or str(indicator_name)


def make_metadata_card(
    indicators: Mapping[str, str],
    matrix: Optional[pd.DataFrame] = None,
    right_skewed: Iterable[str] = (),
    left_skewed: Iterable[str] = (),
    display_names: Optional[Mapping[str, str]] = None,
    target: Optional[str] = None,
) -> pd.DataFrame:
    """
    Return one row per alias: alias, indicator_name, display_name, role,
    transform, missing_fraction.
    """
    right = set(right_skewed)
    left = set(left_skewed)
    display_names = dict(display_names or {})

    rows = []
    for alias, name in indicators.items():
        if alias in right:
            transform = "log1p"
        elif alias in left:
            transform = "neg_log_reflected"
        else:
            transform = "none"
        missing = float("nan")
        if matrix is not None and name in matrix.columns and len(matrix):
            missing = float(matrix[name].isna().mean())
        rows.append({
            "alias": alias,
            "indicator_name": name,
            "display_name": display_names.get(alias, default_display_name(name)),
            "role": "outcome" if alias == target else "predictor",
            "transform": transform,
            "missing_fraction": missing,
        })

    card = pd.DataFrame(rows)
    if not card.empty:
        preview = card.sort_values("missing_fraction", ascending=False).head(10)
        logger.info("Top indicators by missing_fraction:\n%s", preview[["alias", "missing_fraction"]].to_string(index=False))
    return card
