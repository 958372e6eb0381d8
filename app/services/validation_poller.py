"""
Validation Result Poller
Fallback for delayed webhooks: re-reads a validation record until it reaches a
terminal status, the attempt budget runs out, or the caller cancels.

Polling never changes the record. A timeout only means the caller stops
waiting; the record stays 'processing'.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from app.models.validation_dto import RESOLVED_STATUSES, ValidationStatus

logger = logging.getLogger(__name__)


class PollState:
    """Poll outcome states"""
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass
class PollOutcome:
    state: str
    record: Optional[Any] = None
    attempts: int = 0
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (PollState.COMPLETED, PollState.FAILED)


FetchRecord = Callable[[str], Awaitable[Optional[Any]]]
Sleep = Callable[[float], Awaitable[None]]


def _status_of(record: Any) -> Optional[str]:
    status = record.get("status") if isinstance(record, dict) else getattr(record, "status", None)
    return getattr(status, "value", status)


class ValidationResultPoller:
    """
    Bounded polling loop

    Waits initial_delay, then fetches up to max_attempts times, interval
    seconds apart. A fetch error or a missing record ends polling with
    state 'error'; there are no retries.
    """

    def __init__(
        self,
        fetch_record: FetchRecord,
        initial_delay: float = 5.0,
        interval: float = 10.0,
        max_attempts: int = 30,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Args:
            fetch_record: async callable returning the record (or None) for an id
            initial_delay: Seconds before the first fetch
            interval: Seconds between fetches
            max_attempts: Fetch budget before giving up with 'timeout'
            sleep: Awaitable sleep; tests pass a fake clock
        """
        self.fetch_record = fetch_record
        self.initial_delay = initial_delay
        self.interval = interval
        self.max_attempts = max(1, max_attempts)
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings, fetch_record: FetchRecord, sleep: Sleep = asyncio.sleep) -> "ValidationResultPoller":
        return cls(
            fetch_record,
            initial_delay=settings.validation_poll_initial_delay_seconds,
            interval=settings.validation_poll_interval_seconds,
            max_attempts=settings.validation_poll_max_attempts,
            sleep=sleep,
        )

    async def _wait(self, seconds: float, cancel_event: Optional[asyncio.Event]) -> bool:
        """Sleep, returning True if cancelled before or during the wait."""
        if cancel_event is None:
            await self.sleep(seconds)
            return False
        if cancel_event.is_set():
            return True
        sleeper = asyncio.ensure_future(self.sleep(seconds))
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, waiter):
                if not task.done():
                    task.cancel()
        return cancel_event.is_set()

    async def poll(self, validation_id: str, cancel_event: Optional[asyncio.Event] = None) -> PollOutcome:
        """Poll until terminal, timeout, error or cancellation."""
        attempts = 0
        record = None

        if await self._wait(self.initial_delay, cancel_event):
            logger.info(f"Polling cancelled before first fetch: validation_id={validation_id}")
            return PollOutcome(PollState.CANCELLED, attempts=attempts)

        while attempts < self.max_attempts:
            attempts += 1
            try:
                record = await self.fetch_record(validation_id)
            except Exception as e:
                logger.warning(
                    f"Polling aborted on fetch error: validation_id={validation_id}, attempt={attempts}, error={e}"
                )
                return PollOutcome(PollState.ERROR, record=record, attempts=attempts, error=str(e))

            if record is None:
                logger.warning(f"Polling aborted, record not found: validation_id={validation_id}")
                return PollOutcome(
                    PollState.ERROR, attempts=attempts, error=f"Validation record not found: {validation_id}"
                )

            status = _status_of(record)
            if status in RESOLVED_STATUSES:
                logger.info(f"Polling finished: validation_id={validation_id}, status={status}, attempts={attempts}")
                return PollOutcome(status, record=record, attempts=attempts)
            if status == ValidationStatus.ARCHIVED.value:
                return PollOutcome(
                    PollState.ERROR, record=record, attempts=attempts, error="Validation record was archived"
                )

            if attempts >= self.max_attempts:
                break
            if await self._wait(self.interval, cancel_event):
                logger.info(f"Polling cancelled: validation_id={validation_id}, attempts={attempts}")
                return PollOutcome(PollState.CANCELLED, record=record, attempts=attempts)

        logger.info(
            f"Polling timed out, record still processing: validation_id={validation_id}, attempts={attempts}"
        )
        return PollOutcome(PollState.TIMEOUT, record=record, attempts=attempts)
