from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field, Index, UniqueConstraint


class Specialty(str, Enum):
    primary_care = "primary_care"
    dermatology = "dermatology"
    orthopedics = "orthopedics"
    cardiology = "cardiology"
    neurology = "neurology"
    pediatrics = "pediatrics"


class Provider(SQLModel, table=True):
    id: str = Field(primary_key=True)
    name: str
    specialty: Specialty = Specialty.primary_care
    # Weekly template: seven encoded day strings joined by ";", index 0 = Sunday.
    fixed_times: Optional[str] = None
    is_active: bool = True


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_entry_id() -> str:
    return "sch_" + uuid.uuid4().hex[:12]


class CalendarEntry(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("provider_id", "day", "month", "year", name="uq_entry_provider_date"),
    )

    id: str = Field(default_factory=new_entry_id, primary_key=True)
    provider_id: str = Field(foreign_key="provider.id", index=True)
    day: int
    month: int
    year: int
    working_times: str
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    @property
    def on(self) -> date:
        return date(self.year, self.month, self.day)


Index("idx_entry_year_month_day", CalendarEntry.year, CalendarEntry.month, CalendarEntry.day)
