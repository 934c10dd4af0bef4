import asyncio
import json
import logging
from contextlib import suppress
from datetime import datetime, timezone
from enum import StrEnum

from sqlalchemy.exc import InterfaceError, OperationalError

from reconciler.application.reconcile_payment import ReconcilePaymentUseCase
from reconciler.core.decoder import MalformedEventError, decode_webhook_event
from reconciler.core.models import EventOutcome, SideTableEnum
from reconciler.infrastructure.event_store import (
    EventStoreUnavailable,
    RedisEventStore,
)

logger = logging.getLogger(__name__)

# Outages, not bad events. Drivers such as asyncpg raise plain OSError subclasses
# (ConnectionRefusedError, TimeoutError) when the database cannot be reached.
TRANSIENT_ERRORS = (EventStoreUnavailable, OperationalError, InterfaceError, OSError)


class WorkerState(StrEnum):
    WAITING = "WAITING"
    DECODING = "DECODING"
    RESOLVING_ORDER = "RESOLVING_ORDER"
    APPLYING = "APPLYING"
    STOPPED = "STOPPED"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ReconciliationWorker:
    """
    Single consumer of the webhook queue.

    Every popped event ends in exactly one disposition before the next pop:
    processed (or an unchanged no-op), failed (no matching order, replayable by an
    operator) or errors (malformed payload or unexpected exception, never replayed).
    Event store and database outages are transient: the loop logs them, backs off
    and tries again.
    """

    def __init__(
        self,
        event_store: RedisEventStore,
        reconcile_payment_use_case: ReconcilePaymentUseCase,
        pop_timeout: int = 30,
        backoff_seconds: float = 5.0,
        max_consecutive_failures: int | None = None,
    ):
        self._event_store = event_store
        self._reconcile_payment = reconcile_payment_use_case
        self._pop_timeout = pop_timeout
        self._backoff_seconds = backoff_seconds
        self._max_consecutive_failures = max_consecutive_failures
        self._stopping = asyncio.Event()
        self._state = WorkerState.STOPPED

    @property
    def state(self) -> WorkerState:
        return self._state

    def stop(self) -> None:
        self._stopping.set()

    async def run(self) -> None:
        logger.info("Webhook processor started")
        consecutive_failures = 0
        recover = True

        try:
            while not self._stopping.is_set():
                try:
                    if recover:
                        await self._event_store.recover_in_flight()
                        recover = False
                    await self.process_next()
                    consecutive_failures = 0
                except Exception as e:
                    consecutive_failures += 1
                    recover = True
                    logger.error(f"Webhook processor error: {e}", exc_info=True)
                    if (
                        self._max_consecutive_failures is not None
                        and consecutive_failures >= self._max_consecutive_failures
                    ):
                        raise
                    await self._backoff()
        finally:
            self._state = WorkerState.STOPPED
            logger.info("Webhook processor stopped")

    async def process_next(self) -> EventOutcome | None:
        """Pop one event and carry it to its disposition. None means the pop timed out."""
        self._state = WorkerState.WAITING
        event_id = await self._event_store.blocking_pop(self._pop_timeout)
        if event_id is None:
            return None

        outcome = await self._dispatch(event_id)
        await self._event_store.acknowledge(event_id)
        return outcome

    async def _dispatch(self, event_id: str) -> EventOutcome:
        logger.info(f"Processing webhook: {event_id}")

        try:
            self._state = WorkerState.DECODING
            raw = await self._event_store.get(event_id)
            if raw is None:
                logger.warning(f"Webhook data not found: {event_id}")
                return EventOutcome.MISSING

            try:
                event = decode_webhook_event(event_id, raw)
            except MalformedEventError as e:
                logger.error(f"Discarding malformed webhook {event_id}: {e.reason}")
                await self._event_store.record_in(
                    SideTableEnum.ERRORS, event_id, self._error_record(e.reason)
                )
                await self._event_store.delete(event_id)
                return EventOutcome.MALFORMED

            self._state = WorkerState.RESOLVING_ORDER
            outcome = await self._reconcile_payment(event)

            self._state = WorkerState.APPLYING
            if outcome == EventOutcome.ORDER_NOT_FOUND:
                await self._event_store.record_in(SideTableEnum.FAILED, event_id, raw)
            elif outcome == EventOutcome.PROCESSED:
                await self._event_store.record_in(
                    SideTableEnum.PROCESSED, event_id, _now()
                )
            await self._event_store.delete(event_id)
            return outcome

        except TRANSIENT_ERRORS:
            await self._requeue(event_id)
            raise

        except Exception as e:
            logger.error(f"Error processing webhook {event_id}: {e}", exc_info=True)
            await self._event_store.record_in(
                SideTableEnum.ERRORS, event_id, self._error_record(str(e))
            )
            return EventOutcome.ERROR

    async def _requeue(self, event_id: str) -> None:
        try:
            await self._event_store.requeue(event_id)
        except EventStoreUnavailable as e:
            logger.error(
                f"Could not requeue webhook {event_id}, left in processing list: {e}"
            )

    async def _backoff(self) -> None:
        with suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stopping.wait(), timeout=self._backoff_seconds)

    @staticmethod
    def _error_record(error: str) -> str:
        return json.dumps({"error": error, "timestamp": _now()})
