# lifeexp/utils/config.py
"""Config loading for the pipeline (YAML or JSON) with project defaults."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

import yaml

LOG = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG = ROOT / "config" / "model.yml"

DEFAULT_OUTPUTS = {
    "interim_dir": "data/interim",
    "processed_dir": "data/processed",
    "reports_dir": "reports",
    "models_dir": "models",
    "sources_file": "data/raw/sources.yaml",
}


def load_config(path: Path) -> Dict[str, Any]:
    """Load config from yaml or json path and fill in defaults."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf8")
    if path.suffix == ".json":
        cfg = json.loads(text)
    else:
        cfg = yaml.safe_load(text)
    cfg = apply_defaults(cfg or {})
    LOG.info("Loaded config %s", path)
    return cfg


def apply_defaults(cfg: Dict[str, Any]) -> Dict[str, Any]:
    cfg.setdefault("data", {})
    cfg["data"].setdefault("skiprows", 0)
    cfg["data"].setdefault("encoding", "utf-8")
    cfg.setdefault("years", [2013, 2014, 2015, 2016, 2017])
    cfg.setdefault("indicators", {})
    cfg.setdefault("target", {})
    cfg.setdefault("transforms", {})
    cfg["transforms"].setdefault("right_skewed", [])
    cfg["transforms"].setdefault("left_skewed", [])
    cfg["transforms"].setdefault("offset", 101.0)
    cfg.setdefault("normalization", "minmax")
    cfg.setdefault("predictors", [])
    cfg.setdefault("selection", {})
    cfg["selection"].setdefault("min_improvement", 0.0)
    cfg.setdefault("collinearity", {})
    cfg["collinearity"].setdefault("vif_threshold", 10.0)
    cfg["collinearity"].setdefault("advisory_threshold", 4.0)
    outputs = cfg.setdefault("outputs", {})
    for key, value in DEFAULT_OUTPUTS.items():
        outputs.setdefault(key, value)
    return cfg


def resolve_years(years: Any) -> list:
    """Accept an explicit year list or a {start, end} closed range."""
    if isinstance(years, dict):
        return list(range(int(years["start"]), int(years["end"]) + 1))
    return [int(y) for y in years]
