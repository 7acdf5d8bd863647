from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, tzinfo
from typing import Callable

from sqlmodel import Session

from ..db import store_errors
from .calendar_store import CalendarRepository
from .clock import Clock, anchor_today

logger = logging.getLogger(__name__)


@dataclass
class PruneReport:
    today: date
    deleted: int


class RetentionPruner:
    """Deletes calendar rows dated strictly before today, across all providers, in one transaction."""

    def __init__(self, session_factory: Callable[[], Session], clock: Clock, tz: tzinfo):
        self.session_factory = session_factory
        self.clock = clock
        self.tz = tz

    def run(self) -> PruneReport:
        today = anchor_today(self.clock, self.tz)
        with self.session_factory() as session:
            deleted = CalendarRepository(session).delete_before(today)
            with store_errors():
                session.commit()
        logger.info("Pruned %d schedules dated before %s", deleted, today)
        return PruneReport(today=today, deleted=deleted)
