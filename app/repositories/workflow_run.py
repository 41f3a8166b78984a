"""Repository layer for workflow run persistence.

Provides async CRUD operations for WorkflowRunModel and its RunLogModel
entries.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.db import RunLogModel, WorkflowRunModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowRunRepository:
    """Data access layer for workflow runs."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        run_id: str,
        workflow: Dict[str, Any],
        config: Optional[Dict[str, Any]] = None,
        transcribed_text: Optional[str] = None,
        started_at: Optional[datetime] = None,
    ) -> WorkflowRunModel:
        """Create a pending run.

        Args:
            run_id: Run identifier (the trigger's workflowId)
            workflow: Workflow snapshot
            config: Run configuration
            transcribed_text: Spoken request the workflow was generated from
            started_at: Override of the start timestamp

        Returns:
            Created WorkflowRunModel
        """
        run = WorkflowRunModel(
            id=run_id,
            status="pending",
            workflow=workflow,
            config=config or {},
            transcribed_text=transcribed_text,
            started_at=started_at or _utcnow(),
        )
        self.session.add(run)
        await self.session.flush()
        return run

    async def get(self, run_id: str) -> Optional[WorkflowRunModel]:
        """Get a run by ID with its logs loaded."""
        result = await self.session.execute(
            select(WorkflowRunModel)
            .options(selectinload(WorkflowRunModel.logs))
            .where(WorkflowRunModel.id == run_id)
        )
        return result.scalar_one_or_none()

    async def list(
        self,
        status: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Tuple[List[WorkflowRunModel], int]:
        """List runs newest first.

        Args:
            status: Comma-separated status filter
            page: Page number (1-indexed)
            page_size: Items per page; None returns everything

        Returns:
            Tuple of (runs, total_count)
        """
        query = select(WorkflowRunModel).options(selectinload(WorkflowRunModel.logs))
        count_query = select(func.count()).select_from(WorkflowRunModel)

        if status:
            statuses = [s.strip() for s in status.split(",") if s.strip()]
            query = query.where(WorkflowRunModel.status.in_(statuses))
            count_query = count_query.where(WorkflowRunModel.status.in_(statuses))

        query = query.order_by(WorkflowRunModel.started_at.desc())
        if page_size is not None:
            query = query.offset((page - 1) * page_size).limit(page_size)

        result = await self.session.execute(query)
        runs = list(result.scalars().all())

        count_result = await self.session.execute(count_query)
        total = count_result.scalar() or 0

        return runs, total

    async def update_status(
        self,
        run_id: str,
        status: str,
        error: Optional[str] = None,
        ended_at: Optional[datetime] = None,
    ) -> Optional[WorkflowRunModel]:
        """Set status, and error / end time when given.

        Returns:
            Updated WorkflowRunModel or None if not found
        """
        run = await self.get(run_id)
        if not run:
            return None

        run.status = status
        if error is not None:
            run.error = error
        if ended_at is not None:
            run.ended_at = ended_at

        await self.session.flush()
        return run

    async def add_log(
        self,
        run_id: str,
        node_id: str,
        kind: str,
        message: str,
        timestamp_ms: int,
        metrics: Optional[Dict[str, Any]] = None,
    ) -> RunLogModel:
        entry = RunLogModel(
            run_id=run_id,
            node_id=node_id,
            kind=kind,
            message=message,
            timestamp_ms=timestamp_ms,
            metrics=metrics,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def exists(self, run_id: str) -> bool:
        result = await self.session.execute(
            select(func.count()).select_from(WorkflowRunModel).where(WorkflowRunModel.id == run_id)
        )
        return (result.scalar() or 0) > 0

    async def delete(self, run_id: str) -> bool:
        """Delete a run and its logs. Returns False if not found."""
        run = await self.get(run_id)
        if not run:
            return False
        await self.session.delete(run)
        await self.session.flush()
        return True
