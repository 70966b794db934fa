#!/usr/bin/env python3
"""Find the events a feed has announced since the cached snapshot."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from feeds import Snapshot

log = logging.getLogger("splat_notifier.diff")


def new_events(live: Sequence[Any], cached: Sequence[Any]) -> list[Any]:
    """Return the leading events of *live* that do not appear in *cached*.

    Feeds list the newest event first, so the scan stops at the first live
    event that has an equal counterpart anywhere in the cached list.
    """
    fresh: list[Any] = []
    for event in live:
        if any(event == old for old in cached):
            break
        fresh.append(event)
    return fresh


def detect_new_events(live: Snapshot, cached: Snapshot) -> dict[str, list[dict[str, Any]]]:
    """Diff every category of a feed independently, in feed order."""
    if live.feed != cached.feed:
        raise ValueError(f"Cannot diff {live.feed!r} against {cached.feed!r}")
    changes: dict[str, list[dict[str, Any]]] = {}
    for category in live.categories:
        changes[category] = new_events(live.events(category), cached.events(category))
        if changes[category]:
            log.info("%s: %d new %s event(s)", live.feed, len(changes[category]), category)
    return changes
