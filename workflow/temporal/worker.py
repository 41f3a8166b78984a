"""Temporal worker hosting WorkflowRunWorkflow and its activities."""

import asyncio

from temporalio.client import Client
from temporalio.worker import Worker

from .activities import ALL_ACTIVITIES
from ..config import TASK_QUEUE, TEMPORAL_ADDRESS
from ..integrations.tool_gateway import close_http_client
from ..logging_config import get_worker_logger
from ..sse import close_http_client as close_sse_client
from .workflows import WorkflowRunWorkflow

logger = get_worker_logger()


async def main() -> None:
    from app.database import init_db

    # Worker may start before the API; make sure the run tables exist
    await init_db()
    client = await Client.connect(TEMPORAL_ADDRESS)
    worker = Worker(
        client,
        task_queue=TASK_QUEUE,
        workflows=[WorkflowRunWorkflow],
        activities=ALL_ACTIVITIES,
    )
    logger.info(f"Worker listening on task queue {TASK_QUEUE} ({TEMPORAL_ADDRESS})")
    try:
        await worker.run()
    finally:
        await close_http_client()
        await close_sse_client()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
