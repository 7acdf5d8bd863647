from __future__ import annotations

from datetime import date
from typing import List, Optional, Sequence

from ..errors import InvalidTemplateIndex, MalformedScheduleEncoding

SLOT_DELIMITER = ","
DAY_DELIMITER = ";"
# Explicit "no availability" marker, distinct from a missing or garbled string.
NO_AVAILABILITY = "-"
DAYS_PER_WEEK = 7


def encode(slots: Sequence[int]) -> str:
    if not slots:
        return NO_AVAILABILITY
    for s in slots:
        # bool is an int subclass but never a slot marker
        if not isinstance(s, int) or isinstance(s, bool):
            raise MalformedScheduleEncoding(f"slot {s!r} is not an integer")
    return SLOT_DELIMITER.join(str(s) for s in slots)


def decode(encoded: Optional[str]) -> List[int]:
    if encoded is None:
        raise MalformedScheduleEncoding("working times missing")
    text = encoded.strip()
    if text == NO_AVAILABILITY:
        return []
    if not text:
        raise MalformedScheduleEncoding("working times empty")

    slots: List[int] = []
    for token in text.split(SLOT_DELIMITER):
        try:
            slots.append(int(token.strip()))
        except ValueError as e:
            raise MalformedScheduleEncoding(f"bad slot token {token!r} in {encoded!r}") from e
    return slots


def split_template(raw: Optional[str]) -> List[str]:
    """Stored ``fixed_times`` column -> list of per-day encoded strings."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(DAY_DELIMITER)]


def join_template(days: Sequence[Sequence[int]]) -> str:
    return DAY_DELIMITER.join(encode(d) for d in days)


def anchor_weekday(d: date) -> int:
    # 0=Sun ... 6=Sat, the anchor calendar's week
    return (d.weekday() + 1) % DAYS_PER_WEEK


def template_slots_for_weekday(template: Sequence[str], weekday: int) -> List[int]:
    if len(template) != DAYS_PER_WEEK:
        raise InvalidTemplateIndex(f"template has {len(template)} days, expected {DAYS_PER_WEEK}")
    if not 0 <= weekday < DAYS_PER_WEEK:
        raise InvalidTemplateIndex(f"weekday {weekday} out of range")
    return decode(template[weekday])
