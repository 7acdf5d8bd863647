import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

# Point the app at a throwaway database before any schedule_app import builds the engine.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="schedule-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"
os.environ["ANCHOR_TIMEZONE"] = "Asia/Ho_Chi_Minh"

import pytest
from sqlmodel import SQLModel, Session

from schedule_app import models  # noqa: F401  (registers tables)
from schedule_app.db import engine, session_factory
from schedule_app.models import CalendarEntry, Provider
from schedule_app.services.clock import fixed_clock
from schedule_app.services.codec import join_template

TZ = ZoneInfo("Asia/Ho_Chi_Minh")
# Friday 15 March 2024, 10:00 local (UTC+7).
FRIDAY = datetime(2024, 3, 15, 3, 0, tzinfo=timezone.utc)

SAMPLE_WEEK = [[9], [9, 13], [], [10], [10], [], []]


@pytest.fixture(autouse=True)
def fresh_db():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture
def make_session():
    return session_factory(engine)


@pytest.fixture
def tz():
    return TZ


@pytest.fixture
def clock():
    return fixed_clock(FRIDAY)


@pytest.fixture
def add_provider(session):
    def _add(provider_id: str, week=SAMPLE_WEEK, fixed_times=None, is_active=True) -> Provider:
        p = Provider(
            id=provider_id,
            name=f"Dr. {provider_id}",
            fixed_times=fixed_times if fixed_times is not None else join_template(week),
            is_active=is_active,
        )
        session.add(p)
        session.commit()
        return p

    return _add


@pytest.fixture
def add_entry(session):
    def _add(provider_id: str, d, working_times: str = "9") -> CalendarEntry:
        e = CalendarEntry(
            provider_id=provider_id,
            day=d.day,
            month=d.month,
            year=d.year,
            working_times=working_times,
        )
        session.add(e)
        session.commit()
        session.refresh(e)
        return e

    return _add
