"""FastAPI dependencies shared by the execution and history routes."""

from __future__ import annotations

from typing import Optional

from workflow.engine.dispatcher import NodeExecutor
from workflow.integrations.tool_gateway import build_gateway_adapters

from .event_bus import publish_run_event
from .run_store import SqlRunStore

_run_store: Optional[SqlRunStore] = None
_executor: Optional[NodeExecutor] = None


def get_run_store() -> SqlRunStore:
    global _run_store
    if _run_store is None:
        _run_store = SqlRunStore(notifier=publish_run_event)
    return _run_store


def get_node_executor() -> NodeExecutor:
    global _executor
    if _executor is None:
        _executor = NodeExecutor(build_gateway_adapters())
    return _executor
