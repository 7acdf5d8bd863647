from __future__ import annotations

import logging

from fastapi import FastAPI, Depends, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from .config import load_settings
from .db import create_db_and_tables, get_session, engine, session_factory, verify_connection
from .errors import InvalidDateFormat, PersistenceUnavailable, ScheduleNotFound
from .models import Provider, Specialty
from .schemas import (
    ScheduleEntryOut, SchedulesResponse,
    WorkingTimesResponse,
    UpdateWorkingTimesRequest, UpdateWorkingTimesResponse,
    GenerationSummary, PruneSummary, RunReportResponse,
    HealthResponse,
)
from .services.availability import AvailabilityService
from .services.clock import format_date, parse_date
from .services.codec import decode, encode, join_template
from .services.driver import ScheduleDriver, build_driver

logger = logging.getLogger(__name__)

settings = load_settings()

app = FastAPI(title="Provider Schedule API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Hour markers per weekday, Sunday first.
WEEKDAY_MORNINGS = [[], [8, 9, 10, 11], [8, 9, 10, 11], [8, 9, 10, 11], [8, 9, 10, 11], [8, 9, 10, 11], []]
WEEKDAY_FULL = [[], [8, 9, 10, 13, 14, 15], [8, 9, 10, 13, 14, 15], [], [8, 9, 10, 13, 14, 15], [9, 13], [9, 10]]

SEED_PROVIDERS = [
    dict(id="doc_1", name="Dr. Maya Patel", specialty=Specialty.primary_care, fixed_times=join_template(WEEKDAY_MORNINGS)),
    dict(id="doc_2", name="Dr. James Lee", specialty=Specialty.cardiology, fixed_times=join_template(WEEKDAY_FULL)),
    dict(id="doc_3", name="Dr. Sofia Kim", specialty=Specialty.dermatology, fixed_times=join_template(WEEKDAY_MORNINGS)),
    dict(id="doc_4", name="Dr. Ethan Ross", specialty=Specialty.orthopedics, fixed_times=join_template(WEEKDAY_FULL)),
]


@app.on_event("startup")
def on_startup():
    verify_connection()
    create_db_and_tables()
    with Session(engine) as s:
        for data in SEED_PROVIDERS:
            if not s.get(Provider, data["id"]):
                s.add(Provider(**data))
        s.commit()


def get_driver() -> ScheduleDriver:
    return build_driver(settings, session_factory())


def _to_out(entry) -> ScheduleEntryOut:
    return ScheduleEntryOut(
        id=entry.id,
        date=format_date(entry.on),
        working_times=entry.working_times,
        slots=decode(entry.working_times),
    )


@app.get("/api/health", response_model=HealthResponse)
def health():
    try:
        verify_connection()
    except PersistenceUnavailable:
        raise HTTPException(status_code=503, detail="database_unavailable")
    return HealthResponse(status="ok")


@app.get("/api/providers/{provider_id}/schedules", response_model=SchedulesResponse)
def provider_schedules(provider_id: str, session: Session = Depends(get_session)):
    try:
        entries = AvailabilityService(session).all_future_entries(provider_id)
    except ScheduleNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except PersistenceUnavailable:
        raise HTTPException(status_code=503, detail="database_unavailable")

    return SchedulesResponse(data=[
        ScheduleEntryOut(id=e.id, date=e.date, working_times=e.working_times, slots=e.slots)
        for e in entries
    ])


@app.get("/api/providers/{provider_id}/working-times", response_model=WorkingTimesResponse)
def working_times(
    provider_id: str,
    date: str = Query(..., description="D/M/YYYY"),
    session: Session = Depends(get_session),
):
    try:
        on = parse_date(date)
        slots = AvailabilityService(session).availability_for_date(provider_id, on)
    except InvalidDateFormat as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ScheduleNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except PersistenceUnavailable:
        raise HTTPException(status_code=503, detail="database_unavailable")

    return WorkingTimesResponse(
        provider_id=provider_id,
        date=format_date(on),
        working_times=encode(slots),
        slots=slots,
    )


@app.patch("/api/schedules/{schedule_id}", response_model=UpdateWorkingTimesResponse)
def update_working_times(
    schedule_id: str,
    req: UpdateWorkingTimesRequest,
    session: Session = Depends(get_session),
):
    try:
        entry = AvailabilityService(session).update_entry_slots(schedule_id, req.working_times)
    except ScheduleNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except PersistenceUnavailable:
        raise HTTPException(status_code=503, detail="database_unavailable")

    return UpdateWorkingTimesResponse(data=_to_out(entry), message="successfully")


@app.post("/api/schedules/run", response_model=RunReportResponse)
def run_schedules(driver: ScheduleDriver = Depends(get_driver)):
    report = driver.run_once()
    gen = report.generation
    return RunReportResponse(
        ok=report.ok,
        started_at=report.started_at,
        generation=GenerationSummary(
            today=gen.today,
            providers_seen=gen.providers_seen,
            created=gen.created,
            template_errors=gen.template_errors,
            failures=gen.failures,
        ) if gen else None,
        pruning=PruneSummary(today=report.pruning.today, deleted=report.pruning.deleted) if report.pruning else None,
        error=report.error,
    )
