"""Run records and the store interface the durable coordinator writes to.

The SQLAlchemy-backed implementation lives in ``app/run_store.py``;
``InMemoryRunStore`` backs tests and the in-process fallback when no
database is wired.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class LogKind(str, Enum):
    PROGRESS = "progress"
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


SYSTEM_NODE_ID = "system"


def now_ms() -> int:
    return int(time.time() * 1000)


def is_transition_allowed(current: RunStatus, new: RunStatus) -> bool:
    """Terminal runs never go back to pending/running."""
    return not (current.is_terminal and not new.is_terminal)


@dataclass(frozen=True)
class LogEntry:
    node_id: str
    kind: LogKind
    message: str
    timestamp: int = field(default_factory=now_ms)
    metrics: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "nodeId": self.node_id,
            "type": self.kind.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.metrics:
            out["metrics"] = dict(self.metrics)
        return out


@dataclass(frozen=True)
class RunRecord:
    id: str
    workflow: Dict[str, Any]
    config: Dict[str, Any] = field(default_factory=dict)
    status: RunStatus = RunStatus.PENDING
    logs: List[LogEntry] = field(default_factory=list)
    start_time: int = field(default_factory=now_ms)
    end_time: Optional[int] = None
    error: Optional[str] = None
    transcribed_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "workflow": self.workflow,
            "config": self.config,
            "status": self.status.value,
            "logs": [entry.to_dict() for entry in self.logs],
            "startTime": self.start_time,
            "endTime": self.end_time,
            "error": self.error,
            "transcribedText": self.transcribed_text,
        }


class RunStore(Protocol):
    async def create(
        self,
        run_id: str,
        workflow: Dict[str, Any],
        config: Optional[Dict[str, Any]] = None,
        transcribed_text: Optional[str] = None,
    ) -> RunRecord: ...

    async def get(self, run_id: str) -> Optional[RunRecord]: ...

    async def get_all(self) -> List[RunRecord]: ...

    async def update_status(
        self, run_id: str, status: RunStatus, error: Optional[str] = None
    ) -> Optional[RunRecord]: ...

    async def add_log(self, run_id: str, entry: LogEntry) -> None: ...


class InMemoryRunStore:
    """Process-local RunStore; writes are serialized by a lock."""

    def __init__(self):
        self._runs: Dict[str, RunRecord] = {}
        self._lock = asyncio.Lock()

    async def create(self, run_id, workflow, config=None, transcribed_text=None) -> RunRecord:
        async with self._lock:
            record = RunRecord(
                id=run_id,
                workflow=workflow,
                config=dict(config or {}),
                transcribed_text=transcribed_text,
            )
            self._runs[run_id] = record
            return record

    async def get(self, run_id: str) -> Optional[RunRecord]:
        return self._runs.get(run_id)

    async def get_all(self) -> List[RunRecord]:
        return sorted(self._runs.values(), key=lambda r: r.start_time, reverse=True)

    async def update_status(self, run_id, status, error=None) -> Optional[RunRecord]:
        async with self._lock:
            record = self._runs.get(run_id)
            if record is None:
                logger.warning(f"update_status: run {run_id} not found")
                return None
            if not is_transition_allowed(record.status, status):
                logger.warning(
                    f"Ignoring status change {record.status.value} -> {status.value} "
                    f"for finished run {run_id}"
                )
                return record
            record = replace(
                record,
                status=status,
                error=error if error is not None else record.error,
                end_time=now_ms() if status.is_terminal else record.end_time,
            )
            self._runs[run_id] = record
            return record

    async def add_log(self, run_id: str, entry: LogEntry) -> None:
        async with self._lock:
            record = self._runs.get(run_id)
            if record is None:
                logger.warning(f"add_log: run {run_id} not found")
                return
            self._runs[run_id] = replace(record, logs=[*record.logs, entry])
