"""FastAPI Application Entry Point.

Configures the app, lifespan, CORS, and includes all route modules.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Registers every node handler at import time
import workflow.nodes  # noqa: F401
from workflow.integrations.tool_gateway import close_http_client
from workflow.logging_config import get_api_logger

from .database import close_db, init_db
from .temporal_adapter import close_temporal_client, init_temporal_client

logger = get_api_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage database, Temporal client and tool gateway client lifecycle."""
    await init_db()
    await init_temporal_client()
    logger.info("Workflow API started")
    yield
    await close_http_client()
    await close_temporal_client()
    await close_db()


app = FastAPI(title="Workflow Execution API", version="1.0.0", lifespan=lifespan)

# Comma-separated CORS_ORIGINS
_default_origins = "http://localhost:3000,http://127.0.0.1:3000"
CORS_ORIGINS = [
    o.strip() for o in os.getenv("CORS_ORIGINS", _default_origins).split(",") if o.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from .event_bus import router as events_router  # noqa: E402
from .routes.execution import router as execution_router  # noqa: E402
from .routes.history import router as history_router  # noqa: E402
from .routes.workflows import router as workflows_router  # noqa: E402

app.include_router(events_router)
app.include_router(execution_router)
app.include_router(history_router)
app.include_router(workflows_router)


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    from workflow.config import API_HOST, API_PORT

    uvicorn.run(app, host=API_HOST, port=API_PORT)
