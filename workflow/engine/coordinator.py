"""Execution coordinator.

Key Components:
- execute_layer / execute_layers: shared core. Nodes of a layer run
  concurrently; the merge rule advances the context once all of them
  settled; the first failure in node order aborts the run.
- StreamingCoordinator: live strategy, yields StreamEvents as they happen.
- DurableCoordinator: background strategy, records progress in a RunStore.
  Its steps are public so a durable host (Temporal activities) can call
  them one at a time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Dict, List, Optional

from ..logging_config import run_logger
from . import events
from .context import ExecutionContext, initialize_context, merge_layer
from .dispatcher import NodeExecutor, NodeResult
from .errors import NodeExecutionFailed, WorkflowEngineError
from .events import StreamEvent
from .graph import ExecutionLayer, Node, WorkflowGraph, plan_execution
from .run_store import SYSTEM_NODE_ID, LogEntry, LogKind, RunRecord, RunStatus, RunStore

logger = logging.getLogger(__name__)


def node_name(node: Node) -> str:
    return node.label or node.type.value


class ExecutionObserver:
    """Hooks called by the shared core; the default does nothing."""

    async def layer_started(self, layer: ExecutionLayer) -> None:
        pass

    async def node_started(self, node: Node) -> None:
        pass

    async def node_succeeded(self, node: Node, result: NodeResult) -> None:
        pass

    async def node_failed(self, node: Node, result: NodeResult) -> None:
        pass


async def execute_layer(
    layer: ExecutionLayer,
    context: ExecutionContext,
    executor: NodeExecutor,
    observer: Optional[ExecutionObserver] = None,
) -> ExecutionContext:
    """Run one layer to its barrier and return the merged context.

    Raises:
        NodeExecutionFailed: some node failed; the earliest in node order wins
    """
    observer = observer or ExecutionObserver()
    logger.info(f"Layer {layer.index}: executing {len(layer.nodes)} node(s) in parallel")
    await observer.layer_started(layer)
    for node in layer.nodes:
        await observer.node_started(node)

    async def run_node(node: Node) -> NodeResult:
        result = await executor.execute(node, context)
        if result.success:
            await observer.node_succeeded(node, result)
        else:
            await observer.node_failed(node, result)
        return result

    results: List[NodeResult] = list(await asyncio.gather(*(run_node(n) for n in layer.nodes)))

    for node, result in zip(layer.nodes, results):
        if not result.success:
            raise NodeExecutionFailed(node.id, result.error or "Unknown error")

    if len(results) > 1:
        logger.info(f"Combining {len(results)} parallel outputs")
    uploads = {
        node.id: result.uploaded_file
        for node, result in zip(layer.nodes, results)
        if result.uploaded_file is not None
    }
    return merge_layer(context, layer.nodes, [r.output or "" for r in results], uploads)


async def execute_layers(
    layers: List[ExecutionLayer],
    context: ExecutionContext,
    executor: NodeExecutor,
    observer: Optional[ExecutionObserver] = None,
) -> ExecutionContext:
    for layer in sorted(layers, key=lambda l: l.index):
        context = await execute_layer(layer, context, executor, observer)
    return context


# =====================================================================
# Strategy A: live stream
# =====================================================================


class _StreamObserver(ExecutionObserver):
    """Turns core callbacks into queued events; goes silent after the first error."""

    def __init__(self, queue: "asyncio.Queue[Optional[StreamEvent]]"):
        self.queue = queue
        self.failed = False

    def emit(self, event: StreamEvent) -> None:
        if not self.failed:
            self.queue.put_nowait(event)

    async def node_started(self, node: Node) -> None:
        self.emit(StreamEvent(
            type=events.PROGRESS, node_id=node.id, message=f"Executing {node_name(node)}...",
        ))

    async def node_succeeded(self, node: Node, result: NodeResult) -> None:
        self.emit(StreamEvent(
            type=events.SUCCESS,
            node_id=node.id,
            message=f"✓ {node_name(node)} completed",
            output=result.output,
        ))

    async def node_failed(self, node: Node, result: NodeResult) -> None:
        self.emit(StreamEvent(
            type=events.ERROR,
            node_id=node.id,
            message=f"✗ {node_name(node)} failed: {result.error}",
            error=result.error,
        ))
        self.failed = True


class StreamingCoordinator:
    """Runs a workflow while streaming start/progress/success/error/complete events."""

    def __init__(self, executor: NodeExecutor):
        self.executor = executor

    async def stream(
        self, workflow: WorkflowGraph, config: Optional[Dict[str, Any]] = None
    ) -> AsyncIterator[StreamEvent]:
        queue: "asyncio.Queue[Optional[StreamEvent]]" = asyncio.Queue()
        observer = _StreamObserver(queue)
        task = asyncio.create_task(self._drive(workflow, config, observer))
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
        finally:
            # consumer went away before the run finished
            if not task.done():
                task.cancel()

    async def _drive(
        self,
        workflow: WorkflowGraph,
        config: Optional[Dict[str, Any]],
        observer: _StreamObserver,
    ) -> None:
        log = run_logger(logger, workflow.workflow_id)
        try:
            observer.emit(StreamEvent(type=events.START, message="Starting workflow execution..."))
            layers = plan_execution(workflow)
            log.info(f"Executing workflow with {len(layers)} layer(s)")
            context = await execute_layers(
                layers, initialize_context(config), self.executor, observer,
            )
            observer.emit(StreamEvent(
                type=events.COMPLETE,
                message="✓ Workflow completed successfully!",
                output=context.last_output,
            ))
        except NodeExecutionFailed as e:
            log.warning(f"Stopped after node {e.node_id} failed: {e.error}")
        except WorkflowEngineError as e:
            log.warning(f"Workflow rejected: {e}")
            observer.emit(StreamEvent(
                type=events.ERROR, message=f"Workflow failed: {e}", error=str(e),
            ))
        except Exception as e:
            log.exception("Workflow execution error")
            observer.emit(StreamEvent(
                type=events.ERROR, message=f"Workflow failed: {e}", error=str(e),
            ))
        finally:
            observer.queue.put_nowait(None)


# =====================================================================
# Strategy B: durable background run
# =====================================================================


class _RunLogObserver(ExecutionObserver):
    def __init__(self, coordinator: "DurableCoordinator", run_id: str):
        self.coordinator = coordinator
        self.run_id = run_id

    async def node_started(self, node: Node) -> None:
        await self.coordinator.add_log(self.run_id, LogEntry(
            node_id=node.id, kind=LogKind.PROGRESS, message=f"Executing {node_name(node)}...",
        ))

    async def node_succeeded(self, node: Node, result: NodeResult) -> None:
        await self.coordinator.add_log(self.run_id, LogEntry(
            node_id=node.id,
            kind=LogKind.SUCCESS,
            message=f"✓ {node_name(node)} completed",
            metrics={"durationMs": result.duration_ms, "outputChars": len(result.output or "")},
        ))

    async def node_failed(self, node: Node, result: NodeResult) -> None:
        await self.coordinator.add_log(self.run_id, LogEntry(
            node_id=node.id, kind=LogKind.ERROR, message=f"✗ {result.error or 'Unknown error'}",
        ))


class DurableCoordinator:
    """Background strategy persisting run state through a RunStore.

    Store failures are logged and never abort the run.
    """

    def __init__(self, store: RunStore, executor: NodeExecutor):
        self.store = store
        self.executor = executor

    async def _guard(self, run_id: str, what: str, op: Awaitable[Any]) -> Any:
        try:
            return await op
        except Exception as e:
            run_logger(logger, run_id).warning(f"Failed to {what}: {e}")
            return None

    async def add_log(self, run_id: str, entry: LogEntry) -> None:
        await self._guard(run_id, "add log", self.store.add_log(run_id, entry))

    async def start_run(
        self,
        run_id: str,
        workflow: Dict[str, Any],
        config: Optional[Dict[str, Any]] = None,
        transcribed_text: Optional[str] = None,
    ) -> None:
        """Create the run if it is missing, then mark it RUNNING."""
        existing = await self._guard(run_id, "load run", self.store.get(run_id))
        if existing is None:
            run_logger(logger, run_id).info("Run not found in store, creating it")
            await self._guard(
                run_id, "create run",
                self.store.create(run_id, workflow, config or {}, transcribed_text),
            )
        await self._guard(
            run_id, "mark run running", self.store.update_status(run_id, RunStatus.RUNNING),
        )

    def initialize(self, config: Optional[Dict[str, Any]] = None) -> ExecutionContext:
        return initialize_context(config)

    def plan(self, graph: WorkflowGraph) -> List[ExecutionLayer]:
        return plan_execution(graph)

    async def execute_layer(
        self, run_id: str, layer: ExecutionLayer, context: ExecutionContext
    ) -> ExecutionContext:
        return await execute_layer(layer, context, self.executor, _RunLogObserver(self, run_id))

    async def finalize(self, run_id: str) -> None:
        # log first: subscribers stop listening once the run is terminal
        await self.add_log(run_id, LogEntry(
            node_id=SYSTEM_NODE_ID, kind=LogKind.SUCCESS, message="Workflow completed successfully",
        ))
        await self._guard(
            run_id, "mark run completed", self.store.update_status(run_id, RunStatus.COMPLETED),
        )
        run_logger(logger, run_id).info("Workflow completed successfully")

    async def mark_failed(self, run_id: str, error: str) -> None:
        run_logger(logger, run_id).error(f"Workflow failed: {error}")
        await self._guard(
            run_id, "mark run failed",
            self.store.update_status(run_id, RunStatus.FAILED, error=error),
        )

    async def run(
        self,
        run_id: str,
        workflow: Dict[str, Any],
        config: Optional[Dict[str, Any]] = None,
        transcribed_text: Optional[str] = None,
    ) -> Optional[RunRecord]:
        """Drive every step in-process and return the final record."""
        await self.start_run(run_id, workflow, config, transcribed_text)
        try:
            graph = WorkflowGraph.from_dict(workflow, workflow_id=run_id)
            context = self.initialize(config)
            layers = self.plan(graph)
            run_logger(logger, run_id).info(f"Workflow has {len(layers)} execution layer(s)")
            for layer in layers:
                context = await self.execute_layer(run_id, layer, context)
        except WorkflowEngineError as e:
            await self.mark_failed(run_id, str(e))
        except Exception as e:
            await self.mark_failed(run_id, str(e) or type(e).__name__)
            raise
        else:
            await self.finalize(run_id)
        return await self._guard(run_id, "load run", self.store.get(run_id))
