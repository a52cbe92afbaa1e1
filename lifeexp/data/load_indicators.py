# lifeexp/data/load_indicators.py
"""
Load a World Bank style wide indicator export and reshape it to long form.

Behavior:
- The header row (Country Name, Country Code, Indicator Name, Indicator Code,
  one column per year) is read on its own, then the data region is read from a
  configurable line offset and labelled with that header. The reference ESG
  export starts its data region 3084 lines into the file.
- Wide year-columns are melted to a canonical long table:
  country, iso3, indicator_name, indicator_code, year, value.

Usage:
    python -m lifeexp.data.load_indicators --in data/raw/esg.csv --skiprows 3084
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd

LOG = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

COMMON_ENCODINGS = ["utf-8", "utf-8-sig", "cp1252", "latin1"]

ID_TARGETS = [
    "country name", "country code",
    "indicator name", "indicator code",
]
CANONICAL_IDS = ["country", "iso3", "indicator_name", "indicator_code"]


def _read_sample_lines(path: Path, encoding: str, n_lines: int) -> Optional[List[str]]:
    """Read up to n_lines strictly with `encoding`; None if the bytes do not decode."""
    lines: List[str] = []
    try:
        with path.open("r", encoding=encoding) as fh:
            for _ in range(n_lines):
                line = fh.readline()
                if not line:
                    break
                lines.append(line)
    except UnicodeDecodeError as exc:
        LOG.debug("Encoding %s rejected for %s: %s", encoding, path, exc)
        return None
    return lines


def detect_encoding(path: Path, encodings: Sequence[str] = COMMON_ENCODINGS, n_lines: int = 200) -> str:
    """Return the first encoding that decodes the head of the file; latin1 as last resort."""
    for enc in encodings:
        if _read_sample_lines(Path(path), enc, n_lines) is not None:
            return enc
    return "latin1"


def read_header(path: Path, encoding: str = "utf-8") -> List[str]:
    """Return the column labels from the first line of the export."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Indicator file not found: {path}")
    cols = pd.read_csv(path, nrows=0, encoding=encoding).columns
    return [str(c).strip() for c in cols]


def read_indicator_table(
    path: Path,
    skiprows: int = 1,
    header: Optional[Sequence[str]] = None,
    encoding: str = "utf-8",
) -> pd.DataFrame:
    """
    Read the wide data region of the export.

    `skiprows` counts every file line before the first data row, the header
    line included. `header` defaults to the file's own first line.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Indicator file not found: {path}")
    if skiprows < 0:
        raise ValueError(f"skiprows must be >= 0, got {skiprows}")
    if encoding == "auto":
        encoding = detect_encoding(path)
        LOG.info("Detected encoding=%s", encoding)

    names = list(header) if header is not None else read_header(path, encoding=encoding)
    df = pd.read_csv(
        path,
        skiprows=skiprows,
        header=None,
        names=names,
        encoding=encoding,
        low_memory=False,
    )
    # World Bank exports end each line with a comma -> trailing unnamed column
    unnamed = [c for c in df.columns if not str(c).strip() or str(c).startswith("Unnamed")]
    if unnamed:
        df = df.drop(columns=unnamed)
    LOG.info("Read %s rows x %s cols from %s (skiprows=%d)", f"{len(df):,}", df.shape[1], path, skiprows)
    return df


def melt_to_long(df: pd.DataFrame) -> pd.DataFrame:
    """
    Melt a WDI-style wide table to the long Indicator Table.

    - id columns are found by label (country name/code, indicator name/code),
      falling back to the first four columns
    - every other column whose label holds a 4-digit year is melted
    - values are coerced to numeric (unparseable -> NaN)
    """
    cols = list(df.columns)

    id_vars: List[str] = []
    for target in ID_TARGETS:
        for c in cols:
            if str(c).strip().lower() == target and c not in id_vars:
                id_vars.append(c)
    if len(id_vars) < 4:
        id_vars = cols[:4]

    year_cols = [c for c in cols if c not in id_vars]
    df_long = df.melt(id_vars=id_vars, value_vars=year_cols, var_name="year", value_name="value")
    df_long = df_long.rename(columns=dict(zip(id_vars, CANONICAL_IDS)))

    # Normalize year to integer (extract first 4-digit group)
    df_long["year"] = df_long["year"].astype(str).str.extract(r"(\d{4})", expand=False)
    df_long = df_long[df_long["year"].notna()].copy()
    df_long["year"] = df_long["year"].astype(int)

    df_long["value"] = pd.to_numeric(df_long["value"], errors="coerce")
    return df_long.reset_index(drop=True)


def load_long(path: Path, skiprows: int = 1, encoding: str = "utf-8") -> pd.DataFrame:
    """Header + data region -> long Indicator Table."""
    header = read_header(path, encoding=detect_encoding(path) if encoding == "auto" else encoding)
    wide = read_indicator_table(path, skiprows=skiprows, header=header, encoding=encoding)
    df_long = melt_to_long(wide)
    LOG.info(
        "Indicator table: %s rows, %d countries, %d indicators, years %s-%s",
        f"{len(df_long):,}",
        df_long["country"].nunique(),
        df_long["indicator_name"].nunique(),
        df_long["year"].min() if len(df_long) else "n/a",
        df_long["year"].max() if len(df_long) else "n/a",
    )
    return df_long


def _cli():
    p = argparse.ArgumentParser(description="Reshape a wide indicator export to long form")
    p.add_argument("--in", dest="infile", required=True, help="Wide indicator CSV")
    p.add_argument("--out", dest="outfile", default="data/interim/indicators_long.csv")
    p.add_argument("--skiprows", type=int, default=1, help="Lines before the data region (header included)")
    p.add_argument("--encoding", default="auto")
    args = p.parse_args()
    df_long = load_long(Path(args.infile), skiprows=args.skiprows, encoding=args.encoding)
    out = Path(args.outfile)
    out.parent.mkdir(parents=True, exist_ok=True)
    df_long.to_csv(out, index=False)
    LOG.info("Long table saved to %s", out)


if __name__ == "__main__":
    _cli()
