"""SQLAlchemy ORM models for workflow run history.

Tables:
- workflow_runs: One record per run, kept after completion as an audit trail
- run_logs: Append-only log entries of a run, ordered by insertion
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ─── Workflow Run ────────────────────────────────────────────────────


class WorkflowRunModel(Base):
    """Record of a single workflow run.

    The id is the caller-supplied workflowId of the background trigger.
    """

    __tablename__ = "workflow_runs"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="pending",
        comment="pending | running | completed | failed",
    )

    workflow: Mapped[Dict[str, Any]] = mapped_column(
        JSON, nullable=False, comment="Workflow snapshot: {workflowId, nodes, edges}",
    )
    config: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON, nullable=True, comment="Run configuration supplied by the caller",
    )
    transcribed_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    ended_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    logs: Mapped[List["RunLogModel"]] = relationship(
        back_populates="run", cascade="all, delete-orphan",
        order_by="RunLogModel.id",
    )

    __table_args__ = (
        Index("ix_runs_status", "status"),
        Index("ix_runs_started_at", "started_at"),
    )


# ─── Run Log ────────────────────────────────────────────────────────


class RunLogModel(Base):
    """Log entry of a run (progress, success, error or info)."""

    __tablename__ = "run_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("workflow_runs.id", ondelete="CASCADE"), nullable=False,
    )
    node_id: Mapped[str] = mapped_column(
        String(128), nullable=False, comment="Node ID, or 'system' for run-level entries",
    )
    kind: Mapped[str] = mapped_column(
        String(16), nullable=False, default="info",
        comment="progress | success | error | info",
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp_ms: Mapped[int] = mapped_column(
        BigInteger, nullable=False, comment="Epoch milliseconds",
    )
    metrics: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    run: Mapped["WorkflowRunModel"] = relationship(back_populates="logs")

    __table_args__ = (
        Index("ix_run_logs_run_id", "run_id"),
        Index("ix_run_logs_node_id", "node_id"),
    )
