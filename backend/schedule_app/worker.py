import argparse
import asyncio
import logging

from .config import load_settings
from .consumer import ScheduleConsumer
from .db import create_db_and_tables, session_factory, verify_connection
from .services.driver import build_driver


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Provider schedule maintenance worker")
    sub = parser.add_subparsers(dest="command", required=True)
    run = sub.add_parser("run", help="Fill the rolling window and prune past schedules daily")
    run.add_argument("--once", action="store_true", help="Run a single generate+prune pass and exit")
    sub.add_parser("consume", help="Answer working-times requests from RabbitMQ")
    args = parser.parse_args(argv)

    _setup_logging()
    settings = load_settings()
    verify_connection()
    create_db_and_tables()

    if args.command == "consume":
        asyncio.run(ScheduleConsumer(settings).run())
        return 0

    driver = build_driver(settings, session_factory())
    if args.once:
        report = driver.run_once()
        return 0 if report.ok else 1

    driver.run_forever()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
