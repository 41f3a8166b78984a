"""Workflow configuration constants: single source of truth for all env vars."""

import os

# Temporal
TEMPORAL_ADDRESS = os.getenv("TEMPORAL_ADDRESS", "localhost:7233")
TASK_QUEUE = os.getenv("TEMPORAL_TASK_QUEUE", "workflow-run-task-queue")

# Server binding: used by entrypoint / uvicorn
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))

# Tool gateway: HTTP front for the external tool servers (notion, github, ...)
# Use 127.0.0.1 instead of localhost to avoid IPv6 timeout issues
TOOL_GATEWAY_URL = os.getenv("TOOL_GATEWAY_URL", "http://127.0.0.1:3001")

# Default parent page for document-create nodes when neither the run config
# nor the node params name one
NOTION_PAGE_DEFAULT_ID = os.getenv("NOTION_PAGE_DEFAULT_ID", "")
