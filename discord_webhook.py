#!/usr/bin/env python3
"""Render notifications as Discord webhook messages and deliver them.

Delivery fans out one worker per notification. A 429 from Discord carries
``retry_after``; only the rate-limited notification waits that long before
resubmitting, the others keep sending. Outcomes are collected in completion
order.
"""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional
from urllib.parse import urlparse

import requests

from feeds import REQUEST_TIMEOUT, USER_AGENT
from notifications import (
    BigRun,
    EggstraWork,
    GoldenRotation,
    Mentions,
    Notification,
    RandomRotation,
    Splatfest,
    color,
    mention,
    sender_avatar,
    sender_name,
    thumbnail,
    title,
)

log = logging.getLogger("splat_notifier.discord")

NO_CONTENT = 204
DISCORD_WEBHOOK_HOSTS = ("discord.com", "discordapp.com", "ptb.discord.com", "canary.discord.com")
WEBHOOK_PATH_PREFIX = "/api/webhooks/"


class WebhookError(RuntimeError):
    """Discord answered with an error body that is not a rate limit."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"Discord returned {status_code}: {detail}")
        self.status_code = status_code


class RateLimited(Exception):
    """Discord asked us to wait *retry_after* seconds before trying again."""

    def __init__(self, message: str, retry_after: float, global_: bool = False):
        super().__init__(f"{message} (retry after {retry_after:.3f}s, global={global_})")
        self.message = message
        self.retry_after = max(0.0, retry_after)
        self.global_ = global_


@dataclass(frozen=True)
class DispatchOutcome:
    notification: Notification
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ============================================================
# Rendering
# ============================================================
def _stamp_field(label: str, moment) -> dict[str, Any]:
    ts = int(moment.timestamp())
    return {"name": f"{label} <t:{ts}:R>", "value": f"<t:{ts}:f>", "inline": True}


def _field(name: str, value: str) -> dict[str, Any]:
    return {"name": name, "value": value, "inline": False}


def render_message(notification: Notification, mentions: Mentions) -> dict[str, Any]:
    """Build the webhook JSON body for *notification*."""
    embed: dict[str, Any] = {
        "title": title(notification),
        "color": color(notification),
        "thumbnail": {"url": thumbnail(notification)},
    }

    if isinstance(notification, Splatfest):
        fields = [
            _stamp_field("Starts", notification.start),
            _stamp_field("Tricolor", notification.tricolor),
            _stamp_field("Ends", notification.end),
            _field(notification.title, "\n".join(notification.teams)),
        ]
        image = notification.team_image
    elif isinstance(notification, EggstraWork):
        fields = [
            _stamp_field("Starts", notification.start),
            _stamp_field("Ends", notification.end),
            _field("Weapons", "\n".join(notification.weapons)),
            _field("Stage", notification.stage.name),
        ]
        image = notification.stage.image_url
    elif isinstance(notification, RandomRotation):
        fields = [
            _stamp_field("Starts", notification.start),
            _stamp_field("Ends", notification.end),
            _field("Weapons", "\n".join(notification.weapons)),
            _field("King Salmonid", notification.king),
            _field("Stage", notification.stage.name),
        ]
        image = notification.stage.image_url
    elif isinstance(notification, (BigRun, GoldenRotation)):
        fields = [
            _stamp_field("Starts", notification.start),
            _stamp_field("Ends", notification.end),
            _field("King Salmonid", notification.king),
            _field("Stage", notification.stage.name),
        ]
        image = notification.stage.image_url
    else:
        raise TypeError(f"Not a notification: {notification!r}")

    embed["fields"] = fields
    embed["image"] = {"url": image}

    message: dict[str, Any] = {
        "username": sender_name(notification),
        "avatar_url": sender_avatar(notification),
        "embeds": [embed],
    }
    content = mention(notification, mentions)
    if content:
        message["content"] = content
    return message


# ============================================================
# Discord Webhook Delivery
# ============================================================
def validate_webhook_url(url: str) -> bool:
    """Check that *url* is an https Discord webhook on one of the Discord hosts."""
    cleaned = (url or "").strip()
    if not cleaned:
        return False
    parsed = urlparse(cleaned)
    return (
        parsed.scheme == "https"
        and parsed.netloc in DISCORD_WEBHOOK_HOSTS
        and parsed.path.startswith(WEBHOOK_PATH_PREFIX)
        and len(parsed.path) > len(WEBHOOK_PATH_PREFIX)
    )


def _rate_limit_from_body(status_code: int, body: str) -> RateLimited:
    try:
        data = json.loads(body)
        return RateLimited(
            message=str(data["message"]),
            retry_after=float(data["retry_after"]),
            global_=bool(data["global"]),
        )
    except (ValueError, TypeError, KeyError) as exc:
        raise WebhookError(status_code, body[:300]) from exc


def post_message(
    webhook_url: str,
    payload: dict[str, Any],
    *,
    timeout: float = REQUEST_TIMEOUT,
    user_agent: str = USER_AGENT,
) -> None:
    """POST one message. Returns on 204, raises ``RateLimited`` or ``WebhookError`` otherwise."""
    resp = requests.post(
        webhook_url,
        json=payload,
        headers={"User-Agent": user_agent},
        timeout=timeout,
    )
    if resp.status_code == NO_CONTENT:
        return
    body = resp.content.decode("utf-8")
    raise _rate_limit_from_body(resp.status_code, body)


def deliver(
    notification: Notification,
    webhook_url: str,
    mentions: Mentions,
    *,
    timeout: float = REQUEST_TIMEOUT,
    user_agent: str = USER_AGENT,
    max_rate_limit_retries: int | None = None,
    dry_run: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> DispatchOutcome:
    """Send one notification, waiting out rate limits until it lands or fails."""
    log.info("%s", notification)
    try:
        payload = render_message(notification, mentions)
    except (TypeError, ValueError, AttributeError) as exc:
        log.error("Rendering failed for %s: %s", notification, exc)
        return DispatchOutcome(notification, error=exc)

    if dry_run:
        log.info("[DRY-RUN] %s", json.dumps(payload, ensure_ascii=False))
        return DispatchOutcome(notification)

    rate_limited = 0
    while True:
        try:
            post_message(webhook_url, payload, timeout=timeout, user_agent=user_agent)
            return DispatchOutcome(notification)
        except RateLimited as exc:
            rate_limited += 1
            if max_rate_limit_retries is not None and rate_limited > max_rate_limit_retries:
                log.error("Sending failed for %s: still rate-limited after %d retries", notification, rate_limited - 1)
                return DispatchOutcome(notification, error=exc)
            log.warning("Discord rate-limited %s, sleeping %.2fs", notification, exc.retry_after)
            sleep(exc.retry_after)
        except (requests.RequestException, WebhookError, UnicodeDecodeError) as exc:
            log.error("Sending failed for %s: %s", notification, exc)
            return DispatchOutcome(notification, error=exc)


def dispatch(
    notifications: Iterable[Notification],
    webhook_url: str,
    mentions: Mentions,
    *,
    max_workers: int | None = None,
    **deliver_kwargs: Any,
) -> list[DispatchOutcome]:
    """Deliver all *notifications* concurrently and return every outcome.

    Outcomes are appended as each delivery finishes, so the result order is
    completion order rather than input order.
    """
    pending = list(notifications)
    if not pending:
        return []

    outcomes: list[DispatchOutcome] = []
    with ThreadPoolExecutor(max_workers=max_workers or len(pending)) as pool:
        futures = {
            pool.submit(deliver, notification, webhook_url, mentions, **deliver_kwargs): notification
            for notification in pending
        }
        for future in as_completed(futures):
            try:
                outcomes.append(future.result())
            except Exception as exc:
                log.error("Sending failed for %s: %s", futures[future], exc)
                outcomes.append(DispatchOutcome(futures[future], error=exc))
    return outcomes


def summarize(outcomes: Iterable[DispatchOutcome]) -> tuple[int, int]:
    """Return ``(sent, failed)`` counts."""
    sent = failed = 0
    for outcome in outcomes:
        if outcome.ok:
            sent += 1
        else:
            failed += 1
    return sent, failed
