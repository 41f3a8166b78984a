"""Node executor: turns one node plus the current context into a NodeResult."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from ..integrations.adapters import AdapterSet
from ..nodes import HandlerOutput, create_handler
from .context import ExecutionContext, UploadedFile
from .errors import WorkflowEngineError
from .graph import Node
from .node_types import is_action_allowed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodeResult:
    success: bool
    output: Optional[str] = None
    error: Optional[str] = None
    uploaded_file: Optional[UploadedFile] = None
    duration_ms: int = 0

    @classmethod
    def ok(cls, output: str, uploaded_file: Optional[UploadedFile] = None, duration_ms: int = 0):
        return cls(success=True, output=output, uploaded_file=uploaded_file, duration_ms=duration_ms)

    @classmethod
    def failed(cls, error: str, duration_ms: int = 0):
        return cls(success=False, error=error, duration_ms=duration_ms)


class NodeExecutor:
    """Dispatches nodes to their registered handler.

    ``execute`` never raises: engine errors keep their message, anything
    unexpected is logged with a traceback and reported as a failed result.
    """

    def __init__(self, adapters: Optional[AdapterSet] = None):
        self.adapters = adapters or AdapterSet()

    async def execute(self, node: Node, context: ExecutionContext) -> NodeResult:
        started = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - started) * 1000)

        if not is_action_allowed(node.type, node.action):
            return NodeResult.failed(
                f"Action '{node.action}' is not supported for node type '{node.type.value}'",
                duration_ms=elapsed(),
            )

        logger.info(f"Executing node {node.id} ({node.type.value}.{node.action})")
        try:
            handler = create_handler(node.type, self.adapters)
            returned = await handler.execute(node, context)
        except WorkflowEngineError as e:
            logger.warning(f"Node {node.id} failed: {e}")
            return NodeResult.failed(str(e) or type(e).__name__, duration_ms=elapsed())
        except Exception as e:
            logger.exception(f"Node {node.id} execution error")
            return NodeResult.failed(str(e) or "Unknown error occurred", duration_ms=elapsed())

        if isinstance(returned, HandlerOutput):
            return NodeResult.ok(returned.output, returned.uploaded_file, duration_ms=elapsed())
        return NodeResult.ok("" if returned is None else str(returned), duration_ms=elapsed())
