"""API tests for execution, history and workflow endpoints.

Uses the httpx ASGITransport client from conftest: in-memory SQLite,
mocked Temporal client and fake tool adapters.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from app.event_bus import get_event_bus
from workflow.engine.run_store import LogKind, RunStatus
from workflow.integrations import adapters as keys

NODES = [
    {"id": "fetch", "type": "notion", "action": "fetch", "label": "Fetch Notes", "params": {}},
    {"id": "sum", "type": "llm", "action": "summarize", "label": "Summarize", "params": {}},
    {"id": "mail", "type": "email", "action": "send", "label": "Email", "params": {}},
]
EDGES = [
    {"id": "e1", "source": "fetch", "target": "sum"},
    {"id": "e2", "source": "sum", "target": "mail"},
]
CONFIG = {"notionPageId": "page-1", "recipientEmail": "team@example.com"}


def sse_events(body: str):
    return [
        json.loads(line[len("data: "):])
        for line in body.split("\n")
        if line.startswith("data: ")
    ]


async def wait_for_terminal(store, run_id, attempts=100):
    for _ in range(attempts):
        run = await store.get(run_id)
        if run is not None and run.status.is_terminal:
            return run
        await asyncio.sleep(0.01)
    raise AssertionError(f"run {run_id} did not finish")


# ---------------------------------------------------------------------------
# POST /api/execute
# ---------------------------------------------------------------------------


class TestExecuteStream:

    @pytest.mark.asyncio
    async def test_streams_events(self, client, fake_adapters):
        resp = await client.post("/api/execute", json={"nodes": NODES, "edges": EDGES, "config": CONFIG})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")

        events = sse_events(resp.text)
        assert [(e["type"], e.get("nodeId")) for e in events] == [
            ("start", None),
            ("progress", "fetch"), ("success", "fetch"),
            ("progress", "sum"), ("success", "sum"),
            ("progress", "mail"), ("success", "mail"),
            ("complete", None),
        ]
        assert events[-1]["output"] == "Email sent"
        assert fake_adapters[keys.EMAIL_SEND].calls[0]["to"] == "team@example.com"

    @pytest.mark.asyncio
    async def test_stream_ends_with_node_error(self, client, fake_adapters):
        fake_adapters[keys.NOTION_FETCH].data = ""
        resp = await client.post("/api/execute", json={"nodes": NODES, "edges": EDGES, "config": CONFIG})
        events = sse_events(resp.text)
        assert events[-1]["type"] == "error"
        assert events[-1]["nodeId"] == "sum"
        assert events[-1]["error"] == "No input data for LLM processing"
        assert fake_adapters[keys.EMAIL_SEND].calls == []

    @pytest.mark.asyncio
    async def test_unknown_node_type_is_422(self, client):
        bad = [{"id": "x", "type": "fax", "action": "send", "label": "Fax"}]
        resp = await client.post("/api/execute", json={"nodes": bad})
        assert resp.status_code == 422
        assert "unknown type 'fax'" in resp.json()["detail"]

    @pytest.mark.asyncio
    async def test_missing_nodes_is_422(self, client):
        resp = await client.post("/api/execute", json={"edges": []})
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# POST /api/execute-background
# ---------------------------------------------------------------------------


class TestExecuteBackground:

    @pytest.mark.asyncio
    async def test_starts_temporal_workflow(self, client, mock_temporal_client, sql_run_store):
        resp = await client.post("/api/execute-background", json={
            "workflowId": "wf_bg_1",
            "workflow": {"nodes": NODES, "edges": EDGES},
            "config": CONFIG,
            "transcribedText": "summarize my notes",
        })
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "workflowId": "wf_bg_1",
            "mode": "temporal",
            "message": "Workflow execution requested",
        }

        args, kwargs = mock_temporal_client.start_workflow.call_args
        assert args[0] == "WorkflowRunWorkflow"
        assert args[1]["workflowId"] == "wf_bg_1"
        assert args[1]["transcribedText"] == "summarize my notes"
        assert kwargs["id"] == "wf_bg_1"

        run = await sql_run_store.get("wf_bg_1")
        assert run.status is RunStatus.PENDING
        assert run.workflow["workflowId"] == "wf_bg_1"

    @pytest.mark.asyncio
    async def test_generates_run_id(self, client):
        resp = await client.post("/api/execute-background", json={"workflow": {"nodes": NODES, "edges": EDGES}})
        assert resp.json()["workflowId"].startswith("wf_")

    @pytest.mark.asyncio
    async def test_duplicate_run_id_is_409(self, client):
        body = {"workflowId": "dup", "workflow": {"nodes": NODES, "edges": EDGES}}
        assert (await client.post("/api/execute-background", json=body)).status_code == 200
        assert (await client.post("/api/execute-background", json=body)).status_code == 409

    @pytest.mark.asyncio
    async def test_invalid_workflow_is_422(self, client, mock_temporal_client):
        cyclic = EDGES + [{"id": "e3", "source": "mail", "target": "fetch"}]
        resp = await client.post("/api/execute-background", json={
            "workflow": {"nodes": NODES, "edges": cyclic},
        })
        assert resp.status_code == 422
        assert resp.json()["detail"]["errors"][0]["code"] == "CIRCULAR_DEPENDENCY"
        mock_temporal_client.start_workflow.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_falls_back_in_process_without_temporal(self, client, sql_run_store):
        with patch(
            "app.temporal_adapter.get_client",
            AsyncMock(side_effect=RuntimeError("Temporal is not connected")),
        ):
            resp = await client.post("/api/execute-background", json={
                "workflowId": "wf_local",
                "workflow": {"nodes": NODES, "edges": EDGES},
                "config": CONFIG,
            })
        assert resp.status_code == 200
        assert resp.json()["mode"] == "in_process"

        run = await wait_for_terminal(sql_run_store, "wf_local")
        assert run.status is RunStatus.COMPLETED
        assert run.logs[-1].node_id == "system"

    @pytest.mark.asyncio
    async def test_in_process_failure_recorded(self, client, sql_run_store, fake_adapters):
        fake_adapters[keys.NOTION_FETCH].data = ""
        with patch(
            "app.temporal_adapter.get_client",
            AsyncMock(side_effect=RuntimeError("Temporal is not connected")),
        ):
            await client.post("/api/execute-background", json={
                "workflowId": "wf_fail",
                "workflow": {"nodes": NODES, "edges": EDGES},
                "config": CONFIG,
            })
        run = await wait_for_terminal(sql_run_store, "wf_fail")
        assert run.status is RunStatus.FAILED
        assert run.error == "No input data for LLM processing"
        assert [(l.node_id, l.kind) for l in run.logs] == [
            ("fetch", LogKind.PROGRESS),
            ("fetch", LogKind.SUCCESS),
            ("sum", LogKind.PROGRESS),
            ("sum", LogKind.ERROR),
        ]

    @pytest.mark.asyncio
    async def test_start_failure_is_503(self, client, mock_temporal_client, sql_run_store):
        mock_temporal_client.start_workflow.side_effect = ConnectionError("frontend unavailable")
        resp = await client.post("/api/execute-background", json={
            "workflowId": "wf_503", "workflow": {"nodes": NODES, "edges": EDGES},
        })
        assert resp.status_code == 503
        run = await sql_run_store.get("wf_503")
        assert run.status is RunStatus.FAILED
        assert "frontend unavailable" in run.error


# ---------------------------------------------------------------------------
# /api/workflow-history
# ---------------------------------------------------------------------------


class TestHistory:

    @pytest.mark.asyncio
    async def test_list_newest_first(self, client, sql_run_store):
        await sql_run_store.create("older", {"nodes": NODES, "edges": EDGES})
        await asyncio.sleep(0.01)
        await sql_run_store.create("newer", {"nodes": NODES, "edges": EDGES})

        resp = await client.get("/api/workflow-history")
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["count"] == 2
        assert [r["id"] for r in data["history"]] == ["newer", "older"]

    @pytest.mark.asyncio
    async def test_get_one(self, client, sql_run_store):
        await sql_run_store.create("r1", {"nodes": NODES, "edges": EDGES}, CONFIG, "hello")
        resp = await client.get("/api/workflow-history/r1")
        run = resp.json()["run"]
        assert run["status"] == "pending"
        assert run["config"] == CONFIG
        assert run["transcribedText"] == "hello"
        assert run["endTime"] is None

    @pytest.mark.asyncio
    async def test_lookup_by_body(self, client, sql_run_store):
        await sql_run_store.create("r1", {"nodes": NODES, "edges": EDGES})
        resp = await client.post("/api/workflow-history", json={"workflowId": "r1"})
        assert resp.json()["run"]["id"] == "r1"

    @pytest.mark.asyncio
    async def test_unknown_run_is_404(self, client):
        assert (await client.get("/api/workflow-history/nope")).status_code == 404
        assert (await client.post("/api/workflow-history", json={"workflowId": "nope"})).status_code == 404
        assert (await client.get("/api/workflow-history/nope/events")).status_code == 404

    @pytest.mark.asyncio
    async def test_event_stream_replays_buffered_updates(self, client, sql_run_store):
        await sql_run_store.create("r1", {"nodes": NODES, "edges": EDGES})
        await sql_run_store.update_status("r1", RunStatus.RUNNING)
        # simulate the rest of the run arriving from the worker
        get_event_bus().push("r1", "run_finished", {"status": "completed"})

        resp = await client.get("/api/workflow-history/r1/events")
        assert resp.status_code == 200
        kinds = [line[len("event: "):] for line in resp.text.split("\n") if line.startswith("event: ")]
        assert kinds == ["run_updated", "run_updated", "run_finished"]

    @pytest.mark.asyncio
    async def test_event_stream_for_finished_run_is_409(self, client, sql_run_store):
        await sql_run_store.create("r1", {"nodes": NODES, "edges": EDGES})
        await sql_run_store.update_status("r1", RunStatus.COMPLETED)
        assert (await client.get("/api/workflow-history/r1/events")).status_code == 409


# ---------------------------------------------------------------------------
# /api/workflows/validate and /api/node-types
# ---------------------------------------------------------------------------


class TestWorkflowEndpoints:

    @pytest.mark.asyncio
    async def test_validate_returns_plan(self, client):
        nodes = NODES + [{"id": "search", "type": "tavily", "action": "search", "label": "Search", "params": {}}]
        edges = EDGES + [
            {"id": "e3", "source": "fetch", "target": "search"},
            {"id": "e4", "source": "search", "target": "mail"},
        ]
        resp = await client.post("/api/workflows/validate", json={"nodes": nodes, "edges": edges})
        assert resp.status_code == 200
        data = resp.json()
        assert data["valid"] is True
        assert data["hasParallelBranches"] is True
        assert [layer["nodeIds"] for layer in data["layers"]] == [["fetch"], ["sum", "search"], ["mail"]]
        assert data["layers"][2]["upstreamDependencyIds"] == ["sum", "search"]

    @pytest.mark.asyncio
    async def test_validate_reports_errors(self, client):
        nodes = [{"id": "m", "type": "email", "action": "fax", "label": "Fax"}]
        resp = await client.post("/api/workflows/validate", json={"nodes": nodes})
        assert resp.status_code == 422
        detail = resp.json()["detail"]
        assert detail["valid"] is False
        assert detail["errors"][0]["code"] == "INVALID_ACTION"

    @pytest.mark.asyncio
    async def test_node_types(self, client):
        resp = await client.get("/api/node-types")
        assert resp.status_code == 200
        by_type = {t["node_type"]: t for t in resp.json()}
        assert len(by_type) == 12
        assert by_type["notion_create"]["actions"] == ["append_to_page", "create_page"]
        assert by_type["prompt"]["category"] == "input"

    @pytest.mark.asyncio
    async def test_health(self, client):
        assert (await client.get("/health")).json() == {"status": "ok"}
