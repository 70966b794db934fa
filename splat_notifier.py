#!/usr/bin/env python3
"""Splatoon 3 schedule notifier - Discord webhook alerts for new events.

Polls the splatoon3.ink schedule and festival feeds, compares them with the
copies cached by the previous run and posts one Discord message for every
newly announced Salmon Run rotation of interest (random or golden weapons,
Big Run, Eggstra Work) and every new Splatfest.

Both feeds are processed concurrently, and so are the messages of each feed.
"""

from __future__ import annotations

import argparse
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from discord_webhook import DispatchOutcome, dispatch, summarize, validate_webhook_url
from feeds import (
    DEFAULT_FESTIVALS_CACHE,
    DEFAULT_REGION,
    DEFAULT_SCHEDULES_CACHE,
    FESTIVAL_REGIONS,
    FESTIVALS_URL,
    REQUEST_TIMEOUT,
    SCHEDULES_URL,
    USER_AGENT,
    Feed,
    fetch_or_cached,
    festivals_feed,
    schedules_feed,
)
from notifications import Mentions, Notification, build_notifications, role_mention
from schedule_diff import detect_new_events

# ============================================================
# Logging
# ============================================================
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logging.Formatter.converter = time.gmtime
log = logging.getLogger("splat_notifier")


# ============================================================
# Pipeline
# ============================================================
def collect_notifications(
    feed: Feed,
    *,
    timeout: float = REQUEST_TIMEOUT,
    user_agent: str = USER_AGENT,
) -> list[Notification]:
    """Fetch *feed*, diff it against its cache and build notifications."""
    live, cached = fetch_or_cached(feed, timeout=timeout, user_agent=user_agent)
    notifications = build_notifications(detect_new_events(live, cached))
    log.info("%s: %d notification(s) to send", feed.name, len(notifications))
    return notifications


def process_feed(feed: Feed, args: argparse.Namespace, mentions: Mentions) -> list[DispatchOutcome]:
    notifications = collect_notifications(feed, timeout=args.timeout_seconds, user_agent=USER_AGENT)
    return dispatch(
        notifications,
        args.webhook_url,
        mentions,
        timeout=args.timeout_seconds,
        max_rate_limit_retries=args.max_rate_limit_retries,
        dry_run=args.dry_run,
    )


def build_feeds(args: argparse.Namespace) -> list[Feed]:
    return [
        schedules_feed(url=args.schedules_url, cache_path=args.schedules_cache),
        festivals_feed(url=args.festivals_url, cache_path=args.festivals_cache, region=args.region),
    ]


def build_mentions(args: argparse.Namespace) -> Mentions:
    return Mentions(
        splatfest=role_mention(args.splatfest_role),
        salmon_run=role_mention(args.salmon_run_role),
    )


# ============================================================
# CLI
# ============================================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Announce new Salmon Run rotations and Splatfests on Discord.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Environment variables:\n"
            "  DISCORD_WEBHOOK_URL   Discord webhook (fallback for --webhook-url)\n"
            "  SPLATFEST_ROLE_ID     Role pinged for Splatfests\n"
            "  SALMON_RUN_ROLE_ID    Role pinged for Salmon Run rotations\n"
        ),
    )

    p.add_argument(
        "--webhook-url",
        default=os.environ.get("DISCORD_WEBHOOK_URL", ""),
        help="Discord webhook URL (default: $DISCORD_WEBHOOK_URL)",
    )
    p.add_argument(
        "--splatfest-role",
        default=os.environ.get("SPLATFEST_ROLE_ID", ""),
        help="Role ID mentioned on Splatfest messages (default: $SPLATFEST_ROLE_ID)",
    )
    p.add_argument(
        "--salmon-run-role",
        default=os.environ.get("SALMON_RUN_ROLE_ID", ""),
        help="Role ID mentioned on Salmon Run messages (default: $SALMON_RUN_ROLE_ID)",
    )

    # Feeds
    p.add_argument("--schedules-url", default=SCHEDULES_URL)
    p.add_argument("--festivals-url", default=FESTIVALS_URL)
    p.add_argument(
        "--schedules-cache",
        default=DEFAULT_SCHEDULES_CACHE,
        help=f"Cached schedules snapshot, relative to the working directory (default: {DEFAULT_SCHEDULES_CACHE})",
    )
    p.add_argument(
        "--festivals-cache",
        default=DEFAULT_FESTIVALS_CACHE,
        help=f"Cached festivals snapshot, relative to the working directory (default: {DEFAULT_FESTIVALS_CACHE})",
    )
    p.add_argument("--region", choices=FESTIVAL_REGIONS, default=DEFAULT_REGION, help="Splatfest region")

    p.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Log what would be sent without posting to Discord",
    )

    # Tuning
    p.add_argument("--timeout-seconds", type=float, default=REQUEST_TIMEOUT)
    p.add_argument(
        "--max-rate-limit-retries",
        type=int,
        default=None,
        help="Give up on a message after this many rate-limit retries (default: retry forever)",
    )

    args = p.parse_args(argv)
    args.webhook_url = args.webhook_url.strip()
    return args


# ============================================================
# Orchestration
# ============================================================
def run(args: argparse.Namespace) -> int:
    """Process every feed concurrently and report the send totals.

    Returns the process exit code: 1 when a feed could not be processed,
    0 otherwise. Individual failed sends are reported but do not change it.
    """
    feeds = build_feeds(args)
    mentions = build_mentions(args)

    outcomes: list[DispatchOutcome] = []
    feed_failed = False
    with ThreadPoolExecutor(max_workers=len(feeds)) as pool:
        futures: dict[Any, Feed] = {pool.submit(process_feed, feed, args, mentions): feed for feed in feeds}
        for future, feed in futures.items():
            try:
                outcomes.extend(future.result())
            except Exception as exc:
                feed_failed = True
                log.error("Processing the %s feed failed: %s", feed.name, exc)

    sent, failed = summarize(outcomes)
    log.info("Notifs sent: %d | Notifs failed: %d", sent, failed)
    return 1 if feed_failed else 0


# ============================================================
# Entrypoint
# ============================================================
def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    if not args.dry_run and not validate_webhook_url(args.webhook_url):
        log.error(
            "No valid Discord webhook URL provided (expected https://discord.com/api/webhooks/...). "
            "Set DISCORD_WEBHOOK_URL or pass --webhook-url."
        )
        raise SystemExit(1)

    raise SystemExit(run(args))


if __name__ == "__main__":
    main()
