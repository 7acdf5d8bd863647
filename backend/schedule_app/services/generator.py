from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date, timedelta, tzinfo
from typing import Callable, Dict, List, Optional

from sqlmodel import Session

from ..db import store_errors
from ..errors import InvalidTemplateIndex, MalformedScheduleEncoding, PersistenceUnavailable
from ..models import CalendarEntry
from .calendar_store import CalendarRepository
from .clock import Clock, anchor_today, window_dates
from .codec import DAYS_PER_WEEK, anchor_weekday, encode, template_slots_for_weekday
from .directory import SqlProviderDirectory
from .directory_base import ProviderDirectory, ProviderRecord

logger = logging.getLogger(__name__)

HORIZON_DAYS = 14


@dataclass
class GenerationReport:
    today: date
    providers_seen: int = 0
    created: Dict[str, int] = field(default_factory=dict)
    template_errors: Dict[str, str] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def total_created(self) -> int:
        return sum(self.created.values())


@dataclass
class _ProviderOutcome:
    created: int
    template_error: Optional[str] = None


def resolve_week(template: List[str]) -> List[List[int]]:
    """Decode all seven days at once; any defect invalidates the whole template."""
    return [template_slots_for_weekday(template, wd) for wd in range(DAYS_PER_WEEK)]


class ScheduleGenerator:
    """
    Keeps every active provider's calendar filled for [today, today + horizon).

    Gap detection is per date: only dates without a row are created, so
    re-running over the same window never duplicates entries. Each provider
    is filled in its own transaction.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock,
        tz: tzinfo,
        horizon_days: int = HORIZON_DAYS,
        max_workers: int = 1,
        directory_factory: Callable[[Session], ProviderDirectory] = SqlProviderDirectory,
    ):
        if horizon_days < 1:
            raise ValueError(f"horizon_days must be >= 1, got {horizon_days}")
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.session_factory = session_factory
        self.clock = clock
        self.tz = tz
        self.horizon_days = horizon_days
        self.max_workers = max_workers
        self.directory_factory = directory_factory

    def run(self) -> GenerationReport:
        today = anchor_today(self.clock, self.tz)
        dates = window_dates(today, self.horizon_days)
        report = GenerationReport(today=today)

        with self.session_factory() as session:
            providers = self.directory_factory(session).list_active_providers()
        report.providers_seen = len(providers)
        logger.info("Generating %d-day window from %s for %d providers", self.horizon_days, today, len(providers))

        aborted: Optional[PersistenceUnavailable] = None
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures: Dict[Future, str] = {
                pool.submit(self._fill_provider, p, dates): p.id for p in providers
            }
            for fut in as_completed(futures):
                pid = futures[fut]
                try:
                    outcome = fut.result()
                except PersistenceUnavailable as e:
                    if aborted is None:
                        aborted = e
                        for pending in futures:
                            pending.cancel()
                    report.failures[pid] = f"PersistenceUnavailable: {e}"
                    continue
                except Exception as e:
                    # Isolated per provider; the run carries on with the rest.
                    logger.warning("Schedule fill failed for provider %s (%s: %s)", pid, type(e).__name__, e)
                    report.failures[pid] = f"{type(e).__name__}: {e}"
                    continue

                report.created[pid] = outcome.created
                if outcome.template_error:
                    report.template_errors[pid] = outcome.template_error

        if aborted is not None:
            logger.error("Generation aborted, calendar store unavailable (%s)", aborted)
            raise aborted

        logger.info(
            "Generation done: created=%d failures=%d template_errors=%d",
            report.total_created, len(report.failures), len(report.template_errors),
        )
        return report

    def _fill_provider(self, provider: ProviderRecord, dates: List[date]) -> _ProviderOutcome:
        with self.session_factory() as session:
            repo = CalendarRepository(session)
            existing = repo.existing_dates(provider.id, dates[0], dates[-1] + timedelta(days=1))
            missing = [d for d in dates if d not in existing]
            if not missing:
                return _ProviderOutcome(created=0)

            template_error = None
            try:
                week = resolve_week(provider.weekly_template)
            except (MalformedScheduleEncoding, InvalidTemplateIndex) as e:
                logger.warning("Provider %s has an unusable weekly template (%s); filling empty days", provider.id, e)
                template_error = str(e)
                week = [[] for _ in range(DAYS_PER_WEEK)]

            staged = [
                CalendarEntry(
                    provider_id=provider.id,
                    day=d.day,
                    month=d.month,
                    year=d.year,
                    working_times=encode(week[anchor_weekday(d)]),
                )
                for d in missing
            ]
            repo.bulk_insert(staged)
            with store_errors():
                session.commit()

        logger.info("Created %d schedules for provider %s", len(staged), provider.id)
        return _ProviderOutcome(created=len(staged), template_error=template_error)
