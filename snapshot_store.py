#!/usr/bin/env python3
"""Read and replace the on-disk JSON copy of the last fetched feed payload."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

log = logging.getLogger("splat_notifier.store")


def load_snapshot_file(path: str | Path) -> dict[str, Any] | None:
    """Load the cached payload at *path*, returning None if there is none.

    A file that exists but cannot be read or parsed is an error and is
    raised to the caller.
    """
    p = Path(path)
    if not p.exists():
        log.info("No cached snapshot at %s", p)
        return None
    data = json.loads(p.read_text(encoding="utf-8"))
    log.info("Loaded cached snapshot from %s", p)
    return data


def save_snapshot_file(path: str | Path, payload: dict[str, Any]) -> Path:
    """Atomically replace the cache file at *path* with *payload*."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(payload, ensure_ascii=False)

    fd, tmp_name = tempfile.mkstemp(dir=p.parent, prefix=f".{p.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, p)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    log.info("Saved snapshot to %s", p)
    return p
