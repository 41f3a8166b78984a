"""Live-stream event records and their SSE wire form."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .run_store import now_ms

START = "start"
PROGRESS = "progress"
SUCCESS = "success"
ERROR = "error"
COMPLETE = "complete"


@dataclass(frozen=True)
class StreamEvent:
    type: str
    message: str
    node_id: Optional[str] = None
    output: Optional[str] = None
    error: Optional[str] = None
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type, "message": self.message, "timestamp": self.timestamp}
        if self.node_id is not None:
            data["nodeId"] = self.node_id
        if self.output is not None:
            data["output"] = self.output
        if self.error is not None:
            data["error"] = self.error
        return data


def format_sse(event: StreamEvent) -> str:
    """One ``data:`` message per event; the JSON body carries the type."""
    return f"data: {json.dumps(event.to_dict(), ensure_ascii=False)}\n\n"
