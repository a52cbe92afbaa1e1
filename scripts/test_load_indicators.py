# scripts/test_load_indicators.py
from pathlib import Path
import sys
HERE = Path(__file__).resolve()
REPO_ROOT = HERE.parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import pandas as pd
import pytest

from lifeexp.data import load_indicators as li

HEADER = '"Country Name","Country Code","Indicator Name","Indicator Code","2013","2014",\n'


def _write_export(path: Path) -> Path:
    lines = [
        HEADER,
        # block the offset skips (other indicators / footnotes)
        '"Zland","ZZZ","Skipped indicator","SK.IP",99,99,\n',
        '"Zland","ZZZ","Skipped indicator 2","SK.IP2",98,98,\n',
        '"Aland","AAA","Life expectancy","LE",70.5,71.5,\n',
        '"Aland","AAA","Forest area","FA",,12,\n',
        '"Bland","BBB","Life expectancy","LE",60,n/a,\n',
    ]
    path.write_text("".join(lines), encoding="utf-8")
    return path


def test_read_header_keeps_year_labels(tmp_path):
    header = li.read_header(_write_export(tmp_path / "esg.csv"))
    assert header[:6] == ["Country Name", "Country Code", "Indicator Name", "Indicator Code", "2013", "2014"]


def test_read_indicator_table_honours_offset(tmp_path):
    path = _write_export(tmp_path / "esg.csv")
    wide = li.read_indicator_table(path, skiprows=3)
    assert list(wide["Country Name"]) == ["Aland", "Aland", "Bland"]
    assert not any(str(c).startswith("Unnamed") for c in wide.columns)


def test_melt_to_long_canonical_columns(tmp_path):
    path = _write_export(tmp_path / "esg.csv")
    df_long = li.melt_to_long(li.read_indicator_table(path, skiprows=3))
    assert list(df_long.columns) == ["country", "iso3", "indicator_name", "indicator_code", "year", "value"]
    assert len(df_long) == 6
    assert set(df_long["year"]) == {2013, 2014}
    b = df_long[(df_long["country"] == "Bland") & (df_long["year"] == 2014)]
    assert b["value"].isna().all()
    fa = df_long[(df_long["indicator_name"] == "Forest area") & (df_long["year"] == 2013)]
    assert fa["value"].isna().all()


def test_load_long_with_auto_encoding(tmp_path):
    path = _write_export(tmp_path / "esg.csv")
    df_long = li.load_long(path, skiprows=3, encoding="auto")
    le = df_long[(df_long["country"] == "Aland") & (df_long["indicator_name"] == "Life expectancy")]
    assert sorted(le["value"]) == [70.5, 71.5]


def test_missing_file_is_reported(tmp_path):
    with pytest.raises(FileNotFoundError):
        li.read_indicator_table(tmp_path / "nope.csv", skiprows=1)


def test_negative_offset_rejected(tmp_path):
    with pytest.raises(ValueError):
        li.read_indicator_table(_write_export(tmp_path / "esg.csv"), skiprows=-1)


def main():
    return pytest.main([__file__, "-q"])


if __name__ == "__main__":
    raise SystemExit(main())
