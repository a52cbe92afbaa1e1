# lifeexp/model/utils.py
"""Artifact helpers for the modeling stages: joblib models, JSON/text reports,
CSV checkpoints indexed by country, and reproducibility snapshots.

Usage examples:
    from lifeexp.model.utils import save_model, save_json, write_checkpoint, read_checkpoint
"""
from __future__ import annotations
from pathlib import Path
import json
import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, Dict

import joblib
import numpy as np
import pandas as pd

# --- logging setup (idempotent) ---
LOG = logging.getLogger("lifeexp.model.utils")
if not LOG.handlers:
    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    LOG.addHandler(ch)
LOG.setLevel(logging.INFO)


def ensure_parent(path: Path) -> Path:
    """Create parent directory for `path` if missing and return the Path (idempotent)."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


def now_iso() -> str:
    """Return current UTC timestamp in ISO format with trailing 'Z'."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def sha256sum(path: Path) -> str:
    """Return SHA256 hex digest of file at path."""
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating,)):
        return float(obj)
    if isinstance(obj, Path):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def save_json(obj: Any, out_path: Path) -> Path:
    """Save JSON-serializable `obj` to out_path (pretty-printed)."""
    p = ensure_parent(out_path)
    with open(p, "w", encoding="utf8") as fh:
        json.dump(obj, fh, indent=2, ensure_ascii=False, default=_json_default)
    LOG.info("Saved json -> %s", p)
    return p


def write_text(text: str, out_path: Path) -> Path:
    """Write text to file (creates parent dir)."""
    p = ensure_parent(out_path)
    with open(p, "w", encoding="utf8") as fh:
        fh.write(text)
    LOG.info("Saved text -> %s", p)
    return p


def save_config_snapshot(cfg: Dict[str, Any], out_path: Path) -> Path:
    """Save a small reproducibility snapshot with timestamp + config."""
    return save_json({"saved_at": now_iso(), "config": cfg}, out_path)


def save_model(obj: Any, out_path: Path) -> Path:
    """Save `obj` with joblib to out_path. Creates parent dirs if needed."""
    p = ensure_parent(out_path)
    joblib.dump(obj, str(p))
    LOG.info("Saved model -> %s (sha256=%s)", p, sha256sum(p)[:12])
    return p


def load_model(path: Path) -> Any:
    return joblib.load(str(path))


def write_checkpoint(df: pd.DataFrame, out_path: Path, index_label: str = "country") -> Path:
    """Persist a stage table as CSV with the country as row index."""
    p = ensure_parent(out_path)
    df.to_csv(p, index=True, index_label=index_label)
    LOG.info("Saved checkpoint -> %s (%s rows, %s cols)", p, f"{len(df):,}", df.shape[1])
    return p


def read_checkpoint(path: Path, index_col: str = "country") -> pd.DataFrame:
    """Reload a checkpoint written by write_checkpoint."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Checkpoint not found: {p}")
    return pd.read_csv(p, index_col=index_col, low_memory=False)
