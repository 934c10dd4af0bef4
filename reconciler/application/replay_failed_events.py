import logging

from reconciler.core.models import SideTableEnum
from reconciler.infrastructure.event_store import RedisEventStore

logger = logging.getLogger(__name__)


class ReplayFailedEventsUseCase:
    """
    Operator action: move events parked under `failed` (no matching order at the
    time) back onto the work queue. Events are never replayed automatically.
    """

    def __init__(self, event_store: RedisEventStore):
        self._event_store = event_store

    async def __call__(self, event_id: str | None = None) -> list[str]:
        if event_id is not None:
            payload = await self._event_store.get_from_side_table(
                SideTableEnum.FAILED, event_id
            )
            failed = {} if payload is None else {event_id: payload}
        else:
            failed = await self._event_store.list_side_table(SideTableEnum.FAILED)

        replayed = []
        for failed_id, payload in failed.items():
            await self._event_store.enqueue(failed_id, payload)
            await self._event_store.remove_from_side_table(
                SideTableEnum.FAILED, failed_id
            )
            replayed.append(failed_id)

        logger.info(f"Replayed {len(replayed)} failed webhook(s)")
        return replayed
