#!/usr/bin/env python3
"""
Watch a validation record until the validator resolves it

Polls the database with the same bounded schedule clients use while a
webhook is delayed, then prints the outcome and, once resolved, the
flattened text report.

Usage:
    python scripts/watch_validation.py <validation_id> [--interval 10] [--max-attempts 30]
"""
import sys
import os
import asyncio
import argparse
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config import settings
from app.services.db import get_db_session
from app.services.report_builder import build_report_text
from app.services.validation_poller import PollState, ValidationResultPoller
from app.services.validation_store import ValidationStore


async def fetch_record(validation_id: str):
    # Fresh session per attempt so committed webhook writes are visible
    with get_db_session() as db:
        record = ValidationStore.get_by_id(db, validation_id)
        if record is not None:
            db.expunge(record)
        return record


async def watch(validation_id: str, initial_delay: float, interval: float, max_attempts: int) -> int:
    poller = ValidationResultPoller(
        fetch_record,
        initial_delay=initial_delay,
        interval=interval,
        max_attempts=max_attempts,
    )
    print(f"Watching validation {validation_id} (every {interval}s, up to {max_attempts} attempts)")
    outcome = await poller.poll(validation_id)

    print(f"Outcome: {outcome.state} after {outcome.attempts} attempt(s)")
    if outcome.error:
        print(f"Error: {outcome.error}")
        return 1
    if outcome.state == PollState.TIMEOUT:
        print("Validation is still processing. Check again later.")
        return 2
    if outcome.is_terminal:
        print()
        print(build_report_text(outcome.record))
    return 0 if outcome.state == PollState.COMPLETED else 1


def main():
    parser = argparse.ArgumentParser(
        description='Poll a validation record until it is completed or failed'
    )
    parser.add_argument(
        'validation_id',
        help='Validation record id'
    )
    parser.add_argument(
        '--initial-delay',
        type=float,
        default=settings.validation_poll_initial_delay_seconds,
        help='Seconds before the first check'
    )
    parser.add_argument(
        '--interval',
        type=float,
        default=settings.validation_poll_interval_seconds,
        help='Seconds between checks'
    )
    parser.add_argument(
        '--max-attempts',
        type=int,
        default=settings.validation_poll_max_attempts,
        help='Checks before giving up'
    )
    args = parser.parse_args()

    exit_code = asyncio.run(watch(args.validation_id, args.initial_delay, args.interval, args.max_attempts))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
