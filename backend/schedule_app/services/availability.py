from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence

from sqlmodel import Session

from ..db import store_errors
from ..errors import MalformedScheduleEncoding, ScheduleNotFound
from ..models import CalendarEntry
from .calendar_store import CalendarRepository
from .clock import format_date, parse_date
from .codec import decode, encode
from .directory import SqlProviderDirectory
from .directory_base import ProviderDirectory

logger = logging.getLogger(__name__)

SCHEDULES_NOT_FOUND = "schedules_not_found"
WORKING_TIMES_NOT_FOUND = "working_times_not_found"
SCHEDULE_NOT_FOUND = "schedule_not_found"


@dataclass(frozen=True)
class ScheduleEntry:
    id: str
    date: str
    working_times: str
    # None when the stored encoding is corrupt.
    slots: Optional[List[int]]


class AvailabilityService:
    def __init__(self, session: Session, directory: Optional[ProviderDirectory] = None):
        self.session = session
        self.repo = CalendarRepository(session)
        self.directory = directory or SqlProviderDirectory(session)

    def _require_provider(self, provider_id: str) -> None:
        if self.directory.find_provider_by_id(provider_id) is None:
            raise ScheduleNotFound(SCHEDULES_NOT_FOUND)

    def _entry_on(self, provider_id: str, on: date) -> CalendarEntry:
        self._require_provider(provider_id)
        entry = self.repo.find_on(provider_id, on)
        if entry is None:
            raise ScheduleNotFound(WORKING_TIMES_NOT_FOUND)
        try:
            decode(entry.working_times)
        except MalformedScheduleEncoding as e:
            logger.error("Corrupt schedule %s for provider %s on %s (%s)", entry.id, provider_id, on, e)
            raise ScheduleNotFound(WORKING_TIMES_NOT_FOUND) from e
        return entry

    def availability_for_date(self, provider_id: str, on: date) -> List[int]:
        return decode(self._entry_on(provider_id, on).working_times)

    def working_times_for_date(self, provider_id: str, raw_date: str) -> str:
        """Encoded working times for a ``D/M/YYYY`` date, as carried on the RPC wire."""
        return self._entry_on(provider_id, parse_date(raw_date)).working_times

    def all_future_entries(self, provider_id: str) -> List[ScheduleEntry]:
        """
        Every stored entry for the provider, oldest first.
        Past rows that the pruner has not yet removed are included; callers filter.
        """
        self._require_provider(provider_id)
        out: List[ScheduleEntry] = []
        for entry in self.repo.list_for_provider(provider_id):
            try:
                slots: Optional[List[int]] = decode(entry.working_times)
            except MalformedScheduleEncoding:
                logger.warning("Corrupt schedule %s for provider %s", entry.id, provider_id)
                slots = None
            out.append(ScheduleEntry(
                id=entry.id,
                date=format_date(entry.on),
                working_times=entry.working_times,
                slots=slots,
            ))
        return out

    def update_entry_slots(self, entry_id: str, slots: Sequence[int]) -> CalendarEntry:
        entry = self.repo.get(entry_id)
        if entry is None:
            raise ScheduleNotFound(SCHEDULE_NOT_FOUND)
        entry.working_times = encode(slots)
        self.session.add(entry)
        with store_errors():
            self.session.commit()
        self.session.refresh(entry)
        logger.info("Updated working times of schedule %s", entry_id)
        return entry
