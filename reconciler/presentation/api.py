from http import HTTPStatus

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from reconciler.application.container import ApplicationContainer
from reconciler.application.replay_failed_events import ReplayFailedEventsUseCase
from reconciler.core.models import SideTableEnum
from reconciler.infrastructure.event_store import (
    EventStoreUnavailable,
    RedisEventStore,
)

router = APIRouter()


class SideTableResponseModel(BaseModel):
    side_table: SideTableEnum
    entries: dict[str, str]


class ReplayResponseModel(BaseModel):
    replayed: list[str]


@router.get("/health", status_code=HTTPStatus.OK)
@inject
async def health(
    event_store: RedisEventStore = Depends(
        Provide[ApplicationContainer.infrastructure_container.event_store]
    ),
):
    try:
        await event_store.ping()
    except EventStoreUnavailable as e:
        return JSONResponse(
            content={"status": "unavailable", "detail": str(e)},
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
        )
    return {"status": "ok"}


@router.get(
    "/webhooks/{side_table}",
    status_code=HTTPStatus.OK,
    response_model=SideTableResponseModel,
)
@inject
async def list_side_table(
    side_table: SideTableEnum,
    event_store: RedisEventStore = Depends(
        Provide[ApplicationContainer.infrastructure_container.event_store]
    ),
):
    entries = await event_store.list_side_table(side_table)
    return SideTableResponseModel(side_table=side_table, entries=entries)


@router.post(
    "/webhooks/failed/replay",
    status_code=HTTPStatus.OK,
    response_model=ReplayResponseModel,
)
@inject
async def replay_all_failed(
    replay_use_case: ReplayFailedEventsUseCase = Depends(
        Provide[ApplicationContainer.replay_failed_events_use_case]
    ),
):
    return ReplayResponseModel(replayed=await replay_use_case())


@router.post(
    "/webhooks/failed/{event_id}/replay",
    status_code=HTTPStatus.OK,
    response_model=ReplayResponseModel,
)
@inject
async def replay_failed(
    event_id: str,
    replay_use_case: ReplayFailedEventsUseCase = Depends(
        Provide[ApplicationContainer.replay_failed_events_use_case]
    ),
):
    replayed = await replay_use_case(event_id=event_id)
    if not replayed:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"Webhook {event_id} is not in the failed table",
        )
    return ReplayResponseModel(replayed=replayed)
