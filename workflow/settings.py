"""Workflow runtime settings: tunable parameters for run execution.

All values read from environment variables with sensible defaults.
Import from here instead of hardcoding.

Infrastructure config (Temporal address, API host, gateway URL) stays
in workflow/config.py.
"""

from __future__ import annotations

import os


def _int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def _float(key: str, default: float) -> float:
    return float(os.getenv(key, str(default)))


# =====================================================================
# Durable runs (Temporal)
# =====================================================================

# Workflow timeout scales with layer count
RUN_WORKFLOW_MIN_TIMEOUT_MINUTES = _int("RUN_WORKFLOW_MIN_TIMEOUT_MINUTES", 10)
RUN_WORKFLOW_PER_LAYER_MINUTES = _int("RUN_WORKFLOW_PER_LAYER_MINUTES", 5)

# Bookkeeping activities (context init, analysis, status updates)
RUN_BOOKKEEPING_TIMEOUT_SECONDS = _float("RUN_BOOKKEEPING_TIMEOUT_SECONDS", 60.0)

# A single layer activity; adapters bound their own latency, this is only a backstop
RUN_LAYER_TIMEOUT_MINUTES = _int("RUN_LAYER_TIMEOUT_MINUTES", 15)


# =====================================================================
# HTTP Clients (Worker → FastAPI SSE push, tool gateway)
# =====================================================================

SSE_HTTP_TIMEOUT = _float("SSE_HTTP_TIMEOUT", 5.0)
SSE_HTTP_MAX_CONNECTIONS = _int("SSE_HTTP_MAX_CONNECTIONS", 10)
SSE_HTTP_MAX_KEEPALIVE = _int("SSE_HTTP_MAX_KEEPALIVE", 5)

TOOL_GATEWAY_HTTP_TIMEOUT = _float("TOOL_GATEWAY_HTTP_TIMEOUT", 120.0)


# =====================================================================
# Node limits
# =====================================================================

# Uploaded file payloads larger than this are rejected by ingestion nodes
MAX_UPLOAD_BYTES = _int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024)
