from __future__ import annotations

import logging
import time as _time
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Callable, Optional

from ..config import Settings
from ..errors import PersistenceUnavailable
from .clock import Clock, system_clock
from .generator import GenerationReport, ScheduleGenerator
from .pruner import PruneReport, RetentionPruner

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    started_at: datetime
    generation: Optional[GenerationReport] = None
    pruning: Optional[PruneReport] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.generation is not None and self.generation.ok


class ScheduleDriver:
    """
    Daily trigger: fill the rolling window, then expire past rows.
    A failed run is reported and left for the next tick; there is no in-process retry.
    """

    def __init__(
        self,
        generator: ScheduleGenerator,
        pruner: RetentionPruner,
        clock: Clock,
        tz: tzinfo,
        run_at: time = time(1, 0),
    ):
        self.generator = generator
        self.pruner = pruner
        self.clock = clock
        self.tz = tz
        self.run_at = run_at

    def run_once(self) -> RunReport:
        report = RunReport(started_at=self.clock())
        try:
            report.generation = self.generator.run()
        except PersistenceUnavailable as e:
            logger.error("Schedule generation aborted (%s); skipping pruning until next run", e)
            report.error = f"generation: {e}"
            return report

        if report.generation.failures:
            logger.warning("Generation failed for providers: %s", ", ".join(sorted(report.generation.failures)))

        try:
            report.pruning = self.pruner.run()
        except PersistenceUnavailable as e:
            logger.error("Schedule pruning aborted (%s)", e)
            report.error = f"pruning: {e}"
        return report

    def seconds_until_next_run(self, now: Optional[datetime] = None) -> float:
        local_now = (now or self.clock()).astimezone(self.tz)
        target = local_now.replace(
            hour=self.run_at.hour, minute=self.run_at.minute, second=0, microsecond=0,
        )
        if target <= local_now:
            target = target + timedelta(days=1)
        return (target.astimezone(timezone.utc) - local_now.astimezone(timezone.utc)).total_seconds()

    def run_forever(self, sleep: Callable[[float], None] = _time.sleep) -> None:
        logger.info("Schedule driver started. Daily run at %s (%s)", self.run_at.strftime("%H:%M"), self.tz)
        while True:
            delay = self.seconds_until_next_run()
            logger.info("Next schedule run in %.0f s", delay)
            sleep(delay)
            try:
                self.run_once()
            except Exception as e:
                # Keep the daily cadence alive; the next tick is the retry.
                logger.error("Schedule run crashed (%s: %s)", type(e).__name__, e)


def build_driver(settings: Settings, session_factory, clock: Clock = system_clock) -> ScheduleDriver:
    tz = settings.tz
    generator = ScheduleGenerator(
        session_factory,
        clock,
        tz,
        horizon_days=settings.horizon_days,
        max_workers=settings.generator_workers,
    )
    pruner = RetentionPruner(session_factory, clock, tz)
    return ScheduleDriver(generator, pruner, clock, tz, run_at=settings.run_at)
