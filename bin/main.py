import asyncio
import logging
import os

import uvicorn
from fastapi import FastAPI

from reconciler.application.container import ApplicationContainer
from reconciler.presentation import api
from reconciler.presentation.api import router
from reconciler.presentation.container import PresentationContainer
from reconciler.presentation.reconciliation_worker import ReconciliationWorker

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def build_api(container: ApplicationContainer):
    app = FastAPI()
    app.include_router(router)
    container.wire(modules=[api])
    return app


async def main():
    presentation_container = PresentationContainer()
    presentation_container.config.from_yaml(
        os.getenv("CONFIG_PATH", "reconciler/config.yaml"), required=True
    )
    infrastructure = presentation_container.application.infrastructure_container

    app = build_api(presentation_container.application)

    worker: ReconciliationWorker = presentation_container.reconciliation_worker()

    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=presentation_container.config.api.host(),
            port=int(presentation_container.config.api.port()),
            log_level="info",
        )
    )

    logger.info("Starting webhook reconciliation service...")
    api_task = asyncio.create_task(server.serve())
    worker_task = asyncio.create_task(worker.run())

    try:
        await asyncio.wait({api_task, worker_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        worker.stop()
        server.should_exit = True
        await asyncio.gather(api_task, worker_task, return_exceptions=True)
        await infrastructure.event_store().close()
        await infrastructure.async_engine().dispose()

    # Surface a worker crash so the supervisor restarts the process
    if worker_task.done() and not worker_task.cancelled():
        worker_task.result()


if __name__ == "__main__":
    asyncio.run(main())
