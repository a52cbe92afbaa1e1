"""
Simple utilities for dataset provenance:
- compute_md5(path): writes <path>.md5
- update_sources_yaml(canonical_id, checksum, path): upserts data/raw/sources.yaml
"""

from __future__ import annotations
import hashlib
import logging
import datetime
from pathlib import Path
from typing import Optional

import yaml

LOG = logging.getLogger(__name__)

# Resolve project root → works regardless of run location
PROJECT_ROOT = Path(__file__).resolve().parents[2]
SOURCES_FILE = PROJECT_ROOT / "data" / "raw" / "sources.yaml"


def compute_md5(file_path: str | Path) -> str:
    """Compute MD5 for a file and write <file>.md5 next to it."""
    p = Path(file_path)
    if not p.exists():
        raise FileNotFoundError(f"{file_path} not found")

    h = hashlib.md5()
    with p.open("rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)

    md5 = h.hexdigest()
    (p.parent / (p.name + ".md5")).write_text(md5, encoding="utf8")
    LOG.debug("Wrote md5 for %s", p)
    return md5


def update_sources_yaml(
    canonical_id: str,
    checksum: str,
    path: Optional[str | Path] = None,
    sources_file: Optional[Path] = None,
) -> bool:
    """
    Set last_fetch + checksum for `canonical_id` in sources.yaml, adding the
    entry when it is not registered yet. Returns True if the file was written.
    """
    sources_file = Path(sources_file) if sources_file else SOURCES_FILE
    data = {}
    if sources_file.exists():
        with sources_file.open("r", encoding="utf8") as f:
            data = yaml.safe_load(f) or {}

    entries = data.setdefault("sources", [])
    entry = next((s for s in entries if s.get("canonical_id") == canonical_id), None)
    if entry is None:
        entry = {"canonical_id": canonical_id}
        entries.append(entry)
        LOG.debug("Registering new artifact %s in %s", canonical_id, sources_file)

    entry["last_fetch"] = datetime.datetime.now(datetime.timezone.utc).isoformat().replace("+00:00", "Z")
    entry["checksum"] = checksum
    if path is not None:
        entry["path"] = str(path)

    sources_file.parent.mkdir(parents=True, exist_ok=True)
    with sources_file.open("w", encoding="utf8") as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
    LOG.info("Updated %s for %s", sources_file.name, canonical_id)
    return True


def record_artifact(
    file_path: str | Path,
    canonical_id: Optional[str] = None,
    sources_file: Optional[Path] = None,
) -> Optional[str]:
    """Compute md5 and update sources registry if canonical_id is given."""
    try:
        md5 = compute_md5(file_path)
    except Exception as exc:
        LOG.error("compute_md5 failed for %s: %s", file_path, exc)
        return None

    if canonical_id:
        update_sources_yaml(canonical_id, md5, path=file_path, sources_file=sources_file)

    return md5
