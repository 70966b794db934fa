#!/usr/bin/env python3
"""Feed definitions and the fetch-or-fall-back-to-cache snapshot loader.

Each feed is a splatoon3.ink JSON document holding one or more ordered
lists of events (newest first). A fetch produces two snapshots of the same
feed: the *live* one from the network and the *cached* one from the
previous run, which the change detector compares per category.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import requests
from urllib3.exceptions import MaxRetryError, NewConnectionError

from snapshot_store import load_snapshot_file, save_snapshot_file

log = logging.getLogger("splat_notifier.feeds")

# ============================================================
# Constants
# ============================================================
SCHEDULES_URL = "https://splatoon3.ink/data/schedules.json"
FESTIVALS_URL = "https://splatoon3.ink/data/festivals.json"
DEFAULT_SCHEDULES_CACHE = "Schedules Json.json"
DEFAULT_FESTIVALS_CACHE = "Splatfest Json.json"
REQUEST_TIMEOUT = 30
USER_AGENT = "SplatNotifier/1.0 (+https://splatoon3.ink)"

FESTIVAL_REGIONS = ("US", "EU", "JP", "AP")
DEFAULT_REGION = "US"

# Event categories
REGULAR = "regular"
BIG_RUN = "big_run"
TEAM_CONTEST = "team_contest"
FESTIVAL = "festival"

_COOP = ("data", "coopGroupingSchedule")

# Fields every event of a category must carry. Lists map to the key each
# of their items needs.
_WINDOW = (("startTime",), ("endTime",))
_STAGE = (("setting", "coopStage", "name"), ("setting", "coopStage", "image", "url"))
_KING = (("__splatoon3ink_king_salmonid_guess",),)
EVENT_FIELDS: dict[str, tuple[tuple[str, ...], ...]] = {
    REGULAR: _WINDOW + _STAGE + _KING,
    BIG_RUN: _WINDOW + _STAGE + _KING,
    TEAM_CONTEST: _WINDOW + _STAGE,
    FESTIVAL: _WINDOW + (("title",), ("image", "url")),
}
EVENT_LISTS: dict[str, tuple[tuple[str, ...], str]] = {
    REGULAR: (("setting", "weapons"), "name"),
    BIG_RUN: (("setting", "weapons"), "name"),
    TEAM_CONTEST: (("setting", "weapons"), "name"),
    FESTIVAL: (("teams",), "teamName"),
}


class FeedFormatError(ValueError):
    """A feed payload does not have the shape the pipeline relies on."""


def parse_time(value: str) -> datetime:
    """Parse an ISO-8601 feed timestamp into an aware UTC datetime."""
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError) as exc:
        raise FeedFormatError(f"Bad timestamp {value!r}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class Feed:
    """Where a feed lives and where each of its event lists sits in the JSON."""

    name: str
    url: str
    cache_path: str
    categories: dict[str, tuple[str, ...]] = field(default_factory=dict)


def schedules_feed(
    url: str = SCHEDULES_URL,
    cache_path: str = DEFAULT_SCHEDULES_CACHE,
) -> Feed:
    return Feed(
        name="schedules",
        url=url,
        cache_path=cache_path,
        categories={
            REGULAR: _COOP + ("regularSchedules", "nodes"),
            BIG_RUN: _COOP + ("bigRunSchedules", "nodes"),
            TEAM_CONTEST: _COOP + ("teamContestSchedules", "nodes"),
        },
    )


def festivals_feed(
    url: str = FESTIVALS_URL,
    cache_path: str = DEFAULT_FESTIVALS_CACHE,
    region: str = DEFAULT_REGION,
) -> Feed:
    if region not in FESTIVAL_REGIONS:
        raise ValueError(f"Unknown festival region {region!r}; expected one of {FESTIVAL_REGIONS}")
    return Feed(
        name="festivals",
        url=url,
        cache_path=cache_path,
        categories={FESTIVAL: (region, "data", "festRecords", "nodes")},
    )


# ============================================================
# Snapshots
# ============================================================
@dataclass(frozen=True)
class Snapshot:
    """One fetched or cached value of a feed. Compared by value."""

    feed: str
    payload: dict[str, Any]
    categories: dict[str, tuple[str, ...]] = field(default_factory=dict, compare=False)

    def events(self, category: str) -> list[dict[str, Any]]:
        return _resolve(self.payload, self.categories[category])


def _resolve(payload: Any, path: tuple[str, ...]) -> Any:
    node = payload
    for key in path:
        if not isinstance(node, dict) or key not in node:
            raise FeedFormatError(f"Missing key {key!r} along {'.'.join(path)}")
        node = node[key]
    return node


def _check_event(category: str, event: Any) -> None:
    for path in EVENT_FIELDS.get(category, ()):
        value = _resolve(event, path)
        if path in _WINDOW:
            parse_time(value)
        elif not isinstance(value, str):
            raise FeedFormatError(f"{'.'.join(path)} is {type(value).__name__}, expected a string")
    if category in EVENT_LISTS:
        path, item_key = EVENT_LISTS[category]
        items = _resolve(event, path)
        if not isinstance(items, list):
            raise FeedFormatError(f"{'.'.join(path)} is not a list")
        for item in items:
            if not isinstance(_resolve(item, (item_key,)), str):
                raise FeedFormatError(f"{'.'.join(path)} entry has a non-string {item_key}")


def parse_snapshot(feed: Feed, payload: Any) -> Snapshot:
    """Validate *payload* against *feed*'s category paths and wrap it.

    Every event is checked for the fields notifications are built from, so
    a payload that fails here is never written to the cache.
    """
    if not isinstance(payload, dict):
        raise FeedFormatError(f"{feed.name} payload is {type(payload).__name__}, expected an object")
    for category, path in feed.categories.items():
        nodes = _resolve(payload, path)
        if not isinstance(nodes, list):
            raise FeedFormatError(f"{feed.name}: {category} events at {'.'.join(path)} are not a list")
        for index, event in enumerate(nodes):
            try:
                _check_event(category, event)
            except FeedFormatError as exc:
                raise FeedFormatError(f"{feed.name}: {category} event #{index}: {exc}") from exc
    return Snapshot(feed=feed.name, payload=payload, categories=dict(feed.categories))


# ============================================================
# HTTP
# ============================================================
def fetch_json(
    url: str,
    *,
    timeout: float = REQUEST_TIMEOUT,
    user_agent: str = USER_AGENT,
) -> Any:
    """GET *url* and decode its body as UTF-8 JSON."""
    resp = requests.get(url, headers={"User-Agent": user_agent}, timeout=timeout)
    resp.raise_for_status()
    return json.loads(resp.content.decode("utf-8"))


def is_connect_failure(exc: requests.ConnectionError) -> bool:
    """True when no connection was ever established (DNS, refused, connect timeout).

    requests raises ``ConnectionError`` for dropped connections, TLS and
    proxy failures too; those happen after connecting and do not count.
    """
    if isinstance(exc, requests.ConnectTimeout):
        return True
    reason = exc.args[0] if exc.args else None
    if isinstance(reason, MaxRetryError):
        reason = reason.reason
    return isinstance(reason, NewConnectionError)


def fetch_or_cached(
    feed: Feed,
    *,
    timeout: float = REQUEST_TIMEOUT,
    user_agent: str = USER_AGENT,
    base_dir: str | Path | None = None,
) -> tuple[Snapshot, Snapshot]:
    """Return the ``(live, cached)`` snapshot pair for *feed*.

    When the endpoint cannot be reached at all, the cached payload stands in
    for the live one, so nothing is reported as new. Any other failure is
    raised. Without a cache file the cached snapshot equals the live one,
    which keeps a first run from announcing every listed event. The live
    payload is written back only after the cache has been read.
    """
    cache_path = Path(base_dir or Path.cwd()) / feed.cache_path

    try:
        live_payload = fetch_json(feed.url, timeout=timeout, user_agent=user_agent)
    except requests.ConnectionError as exc:
        if not is_connect_failure(exc):
            raise
        log.warning("Could not connect to %s (%s); falling back to %s", feed.url, exc, cache_path)
        live_payload = load_snapshot_file(cache_path)
        if live_payload is None:
            raise FileNotFoundError(f"No cached {feed.name} snapshot at {cache_path}") from exc
    live = parse_snapshot(feed, live_payload)
    log.info("Fetched %s snapshot", feed.name)

    cached_payload = load_snapshot_file(cache_path)
    if cached_payload is None:
        log.info("Seeding %s baseline at %s", feed.name, cache_path)
        cached = live
    else:
        cached = parse_snapshot(feed, cached_payload)

    save_snapshot_file(cache_path, live_payload)
    return live, cached
