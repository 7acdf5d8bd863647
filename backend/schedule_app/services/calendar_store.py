from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional, Set

from sqlalchemy import and_, delete, not_, or_
from sqlmodel import Session, select

from ..db import store_errors
from ..models import CalendarEntry


def date_before(d: date):
    """SQL predicate: entry date strictly before ``d``, compared as (year, month, day)."""
    return or_(
        CalendarEntry.year < d.year,
        and_(CalendarEntry.year == d.year, CalendarEntry.month < d.month),
        and_(
            CalendarEntry.year == d.year,
            CalendarEntry.month == d.month,
            CalendarEntry.day < d.day,
        ),
    )


def date_in_range(start: date, end: date):
    """SQL predicate for the half-open range [start, end)."""
    return and_(not_(date_before(start)), date_before(end))


class CalendarRepository:
    """
    Access to persisted calendar rows keyed by (provider, day, month, year).
    Writes are staged on the session; callers own the commit.
    """

    def __init__(self, session: Session):
        self.session = session

    def existing_dates(self, provider_id: str, start: date, end: date) -> Set[date]:
        with store_errors():
            rows = self.session.exec(
                select(CalendarEntry).where(
                    CalendarEntry.provider_id == provider_id,
                    date_in_range(start, end),
                )
            ).all()
        return {r.on for r in rows}

    def find_on(self, provider_id: str, on: date) -> Optional[CalendarEntry]:
        with store_errors():
            return self.session.exec(
                select(CalendarEntry).where(
                    CalendarEntry.provider_id == provider_id,
                    CalendarEntry.day == on.day,
                    CalendarEntry.month == on.month,
                    CalendarEntry.year == on.year,
                )
            ).first()

    def exists(self, provider_id: str, on: date) -> bool:
        return self.find_on(provider_id, on) is not None

    def list_for_provider(self, provider_id: str) -> List[CalendarEntry]:
        with store_errors():
            return list(self.session.exec(
                select(CalendarEntry)
                .where(CalendarEntry.provider_id == provider_id)
                .order_by(CalendarEntry.year, CalendarEntry.month, CalendarEntry.day)
            ).all())

    def get(self, entry_id: str) -> Optional[CalendarEntry]:
        with store_errors():
            return self.session.get(CalendarEntry, entry_id)

    def bulk_insert(self, entries: Iterable[CalendarEntry]) -> int:
        staged = list(entries)
        if staged:
            self.session.add_all(staged)
        return len(staged)

    def delete_before(self, cutoff: date) -> int:
        """Single bulk DELETE of every row dated before ``cutoff``; returns the row count."""
        stmt = (
            delete(CalendarEntry)
            .where(date_before(cutoff))
            .execution_options(synchronize_session=False)
        )
        with store_errors():
            result = self.session.exec(stmt)
        return result.rowcount
