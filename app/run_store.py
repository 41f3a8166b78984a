"""SQL-backed RunStore.

Each operation opens its own session, so the API process and the Temporal
worker see the same records. Writes are serialized with a lock so that the
concurrent appends of one layer keep their per-node order. Every change is
announced through an optional notifier ``(run_id, event_type, data)``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, AsyncContextManager, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_session_ctx
from app.models.db import RunLogModel, WorkflowRunModel
from app.repositories.workflow_run import WorkflowRunRepository
from workflow.engine.run_store import (
    LogEntry,
    LogKind,
    RunRecord,
    RunStatus,
    is_transition_allowed,
)

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str, Dict[str, Any]], Awaitable[None]]
SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]

RUN_UPDATED = "run_updated"
RUN_LOG = "run_log"
RUN_FINISHED = "run_finished"


def _to_ms(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def log_from_model(model: RunLogModel) -> LogEntry:
    return LogEntry(
        node_id=model.node_id,
        kind=LogKind(model.kind),
        message=model.message,
        timestamp=model.timestamp_ms,
        metrics=model.metrics,
    )


def run_from_model(model: WorkflowRunModel, logs: Optional[List[LogEntry]] = None) -> RunRecord:
    return RunRecord(
        id=model.id,
        workflow=model.workflow,
        config=model.config or {},
        status=RunStatus(model.status),
        logs=logs if logs is not None else [log_from_model(m) for m in model.logs],
        start_time=_to_ms(model.started_at) or 0,
        end_time=_to_ms(model.ended_at),
        error=model.error,
        transcribed_text=model.transcribed_text,
    )


def _status_payload(record: RunRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "status": record.status.value,
        "error": record.error,
        "startTime": record.start_time,
        "endTime": record.end_time,
    }


class SqlRunStore:
    def __init__(
        self,
        session_factory: SessionFactory = get_session_ctx,
        notifier: Optional[Notifier] = None,
    ):
        self._session_factory = session_factory
        self._notifier = notifier
        self._lock = asyncio.Lock()

    async def _notify(self, run_id: str, event_type: str, data: Dict[str, Any]) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier(run_id, event_type, data)
        except Exception as e:
            logger.warning(f"Run {run_id}: failed to publish {event_type}: {e}")

    async def create(
        self,
        run_id: str,
        workflow: Dict[str, Any],
        config: Optional[Dict[str, Any]] = None,
        transcribed_text: Optional[str] = None,
    ) -> RunRecord:
        async with self._lock:
            async with self._session_factory() as session:
                model = await WorkflowRunRepository(session).create(
                    run_id, workflow, config, transcribed_text,
                )
                record = run_from_model(model, logs=[])
        logger.info(f"Created workflow run: {run_id}")
        await self._notify(run_id, RUN_UPDATED, _status_payload(record))
        return record

    async def get(self, run_id: str) -> Optional[RunRecord]:
        async with self._session_factory() as session:
            model = await WorkflowRunRepository(session).get(run_id)
            return run_from_model(model) if model else None

    async def get_all(self) -> List[RunRecord]:
        """All runs, most recent first."""
        async with self._session_factory() as session:
            models, _ = await WorkflowRunRepository(session).list()
            return [run_from_model(m) for m in models]

    async def update_status(
        self, run_id: str, status: RunStatus, error: Optional[str] = None
    ) -> Optional[RunRecord]:
        """Apply a status change unless it would reopen a finished run."""
        async with self._lock:
            async with self._session_factory() as session:
                repo = WorkflowRunRepository(session)
                model = await repo.get(run_id)
                if model is None:
                    logger.warning(f"Run {run_id} not found when updating status to {status.value}")
                    return None
                current = RunStatus(model.status)
                if not is_transition_allowed(current, status):
                    logger.warning(
                        f"Prevented status revert from {current.value} to {status.value} "
                        f"for run {run_id}"
                    )
                    return run_from_model(model)
                model = await repo.update_status(
                    run_id,
                    status.value,
                    error=error,
                    ended_at=datetime.now(timezone.utc) if status.is_terminal else None,
                )
                record = run_from_model(model)
        logger.info(f"Updated run {run_id} status: {current.value} -> {status.value}")
        await self._notify(run_id, RUN_UPDATED, _status_payload(record))
        if status.is_terminal:
            await self._notify(run_id, RUN_FINISHED, _status_payload(record))
        return record

    async def add_log(self, run_id: str, entry: LogEntry) -> None:
        async with self._lock:
            async with self._session_factory() as session:
                repo = WorkflowRunRepository(session)
                if not await repo.exists(run_id):
                    logger.warning(f"Run {run_id} not found, dropping log entry")
                    return
                await repo.add_log(
                    run_id,
                    node_id=entry.node_id,
                    kind=entry.kind.value,
                    message=entry.message,
                    timestamp_ms=entry.timestamp,
                    metrics=entry.metrics,
                )
        await self._notify(run_id, RUN_LOG, entry.to_dict())
