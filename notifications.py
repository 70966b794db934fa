#!/usr/bin/env python3
"""Notification variants built from newly detected feed events.

Every variant is a frozen dataclass and the set is closed: the presentation
helpers below (title, colour, thumbnail, mention, sender) map each variant
explicitly and raise ``TypeError`` for anything else.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

from feeds import BIG_RUN, FESTIVAL, REGULAR, TEAM_CONTEST, FeedFormatError, parse_time

log = logging.getLogger("splat_notifier.notifications")

# splatoon3.ink weapon ids containing these markers flag special rotations.
RANDOM_WEAPON_ID = "52e07029f01362a4"
GOLDEN_WEAPON_ID = "obaiwjeobjo"


# ============================================================
# Variants
# ============================================================
@dataclass(frozen=True)
class Stage:
    name: str
    image_url: str


@dataclass(frozen=True)
class Splatfest:
    title: str
    teams: tuple[str, ...]
    team_image: str
    start: datetime
    tricolor: datetime
    end: datetime

    def __str__(self) -> str:
        return f"Splatfest: {self.title}"


@dataclass(frozen=True)
class BigRun:
    start: datetime
    end: datetime
    king: str
    stage: Stage

    def __str__(self) -> str:
        return f"Big Run on {self.stage.name}"


@dataclass(frozen=True)
class EggstraWork:
    start: datetime
    end: datetime
    weapons: tuple[str, ...]
    stage: Stage

    def __str__(self) -> str:
        return f"Eggstra Work on {self.stage.name}"


@dataclass(frozen=True)
class RandomRotation:
    start: datetime
    end: datetime
    weapons: tuple[str, ...]
    king: str
    stage: Stage

    def __str__(self) -> str:
        return f"Random Rotation on {self.stage.name}"


@dataclass(frozen=True)
class GoldenRotation:
    start: datetime
    end: datetime
    king: str
    stage: Stage

    def __str__(self) -> str:
        return f"Golden Rotation on {self.stage.name}"


Notification = Union[Splatfest, BigRun, EggstraWork, RandomRotation, GoldenRotation]
SALMON_RUN_VARIANTS = (BigRun, EggstraWork, RandomRotation, GoldenRotation)


@dataclass(frozen=True)
class Mentions:
    """Role mentions prepended to a message; an empty string sends none."""

    splatfest: str = ""
    salmon_run: str = ""


def role_mention(role_id: str | None) -> str:
    return f"<@&{role_id}>" if role_id else ""


# ============================================================
# Presentation
# ============================================================
THUMBNAIL_SPLATFEST = "https://cdn.discordapp.com/attachments/842036323652337690/1259640933893275711/SfOpenSche.png"
THUMBNAIL_BIG_RUN = "https://cdn.wikimg.net/en/splatoonwiki/images/7/73/S3_Badge_Big_Run_Top_50_Percent.png"
THUMBNAIL_EGGSTRA_WORK = "https://cdn.wikimg.net/en/splatoonwiki/images/3/36/S3_Badge_Eggstra_Work_Top_5_Percent.png"
THUMBNAIL_RANDOM = (
    "https://splatoon3.ink/assets/splatnet/v2/ui_img/"
    "473fffb2442075078d8bb7125744905abdeae651b6a5b7453ae295582e45f7d1_0.png"
)
THUMBNAIL_GOLDEN = THUMBNAIL_BIG_RUN

TITLE_SPLATFEST = "A Splatfest has been announced!"
TITLE_BIG_RUN = "A Big Run alert has been broadcasted!"
TITLE_EGGSTRA_WORK = "Eggstra Workers are needed at Grizzco!"
TITLE_SINGLE_RANDOM = "A Single Random Rotation has been added to the schedule!"
TITLE_PARTIAL_RANDOM = "A Partial Random Rotation has been added to the schedule!"
TITLE_FULL_RANDOM = "A Random Rotation has been added to the schedule!"
TITLE_GOLDEN = "A Golden Rotation has been added to the schedule!"

COLOR_SPLATFEST = 0x2F5DD4
COLOR_BIG_RUN = 0xB322FF
COLOR_RANDOM = 0x00D82D
COLOR_GOLDEN = 0xD18E14

AVATAR_SPLATFEST = THUMBNAIL_SPLATFEST
AVATAR_GRIZZCO = "https://cdn.wikimg.net/en/splatoonwiki/images/8/8a/S3_Brand_Grizzco.png"
NAME_SPLATFEST = "Fax Machine"
NAME_GRIZZCO = "Grizzco"


def _unknown(notification: Any) -> TypeError:
    return TypeError(f"Not a notification: {notification!r}")


def title(notification: Notification) -> str:
    if isinstance(notification, Splatfest):
        return TITLE_SPLATFEST
    if isinstance(notification, BigRun):
        return TITLE_BIG_RUN
    if isinstance(notification, EggstraWork):
        return TITLE_EGGSTRA_WORK
    if isinstance(notification, RandomRotation):
        count = len(notification.weapons)
        if count <= 1:
            return TITLE_SINGLE_RANDOM
        if count <= 3:
            return TITLE_PARTIAL_RANDOM
        return TITLE_FULL_RANDOM
    if isinstance(notification, GoldenRotation):
        return TITLE_GOLDEN
    raise _unknown(notification)


def color(notification: Notification) -> int:
    if isinstance(notification, Splatfest):
        return COLOR_SPLATFEST
    if isinstance(notification, BigRun):
        return COLOR_BIG_RUN
    if isinstance(notification, RandomRotation):
        return COLOR_RANDOM
    if isinstance(notification, (EggstraWork, GoldenRotation)):
        return COLOR_GOLDEN
    raise _unknown(notification)


def thumbnail(notification: Notification) -> str:
    if isinstance(notification, Splatfest):
        return THUMBNAIL_SPLATFEST
    if isinstance(notification, BigRun):
        return THUMBNAIL_BIG_RUN
    if isinstance(notification, EggstraWork):
        return THUMBNAIL_EGGSTRA_WORK
    if isinstance(notification, RandomRotation):
        return THUMBNAIL_RANDOM
    if isinstance(notification, GoldenRotation):
        return THUMBNAIL_GOLDEN
    raise _unknown(notification)


def mention(notification: Notification, mentions: Mentions) -> str:
    if isinstance(notification, Splatfest):
        return mentions.splatfest
    if isinstance(notification, SALMON_RUN_VARIANTS):
        return mentions.salmon_run
    raise _unknown(notification)


def sender_name(notification: Notification) -> str:
    if isinstance(notification, Splatfest):
        return NAME_SPLATFEST
    if isinstance(notification, SALMON_RUN_VARIANTS):
        return NAME_GRIZZCO
    raise _unknown(notification)


def sender_avatar(notification: Notification) -> str:
    if isinstance(notification, Splatfest):
        return AVATAR_SPLATFEST
    if isinstance(notification, SALMON_RUN_VARIANTS):
        return AVATAR_GRIZZCO
    raise _unknown(notification)


# ============================================================
# Building
# ============================================================
def _get(event: dict[str, Any], *path: str) -> Any:
    node: Any = event
    for key in path:
        if not isinstance(node, dict) or key not in node:
            raise FeedFormatError(f"Event is missing {'.'.join(path)}")
        node = node[key]
    return node


def _window(event: dict[str, Any]) -> tuple[datetime, datetime]:
    return parse_time(_get(event, "startTime")), parse_time(_get(event, "endTime"))


def _stage(event: dict[str, Any]) -> Stage:
    return Stage(
        name=_get(event, "setting", "coopStage", "name"),
        image_url=_get(event, "setting", "coopStage", "image", "url"),
    )


def _weapons(event: dict[str, Any]) -> list[dict[str, Any]]:
    return list(_get(event, "setting", "weapons"))


def _has_weapon_id(weapons: list[dict[str, Any]], marker: str) -> bool:
    return any(marker in (w.get("__splatoon3ink_id") or "") for w in weapons)


def _king(event: dict[str, Any]) -> str:
    return _get(event, "__splatoon3ink_king_salmonid_guess")


def build_notification(category: str, event: dict[str, Any]) -> Optional[Notification]:
    """Turn one new *event* of *category* into a notification, if it warrants one.

    Regular rotations only notify when they contain a random or golden
    weapon; every other category always notifies.
    """
    if category == REGULAR:
        weapons = _weapons(event)
        start, end = _window(event)
        if _has_weapon_id(weapons, RANDOM_WEAPON_ID):
            return RandomRotation(
                start=start,
                end=end,
                weapons=tuple(_get(w, "name") for w in weapons),
                king=_king(event),
                stage=_stage(event),
            )
        if _has_weapon_id(weapons, GOLDEN_WEAPON_ID):
            return GoldenRotation(start=start, end=end, king=_king(event), stage=_stage(event))
        return None

    if category == BIG_RUN:
        start, end = _window(event)
        return BigRun(start=start, end=end, king=_king(event), stage=_stage(event))

    if category == TEAM_CONTEST:
        start, end = _window(event)
        return EggstraWork(
            start=start,
            end=end,
            weapons=tuple(_get(w, "name") for w in _weapons(event)),
            stage=_stage(event),
        )

    if category == FESTIVAL:
        start, end = _window(event)
        return Splatfest(
            title=_get(event, "title"),
            teams=tuple(_get(t, "teamName") for t in _get(event, "teams")),
            team_image=_get(event, "image", "url"),
            start=start,
            tricolor=start + (end - start) / 2,
            end=end,
        )

    raise ValueError(f"Unknown event category {category!r}")


def build_notifications(events_by_category: dict[str, list[dict[str, Any]]]) -> list[Notification]:
    """Build notifications for every new event, keeping category order."""
    notifications: list[Notification] = []
    for category, events in events_by_category.items():
        for event in events:
            notification = build_notification(category, event)
            if notification is None:
                log.debug("No notification for %s event starting %s", category, event.get("startTime"))
                continue
            notifications.append(notification)
    return notifications
