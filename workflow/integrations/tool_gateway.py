"""HTTP adapters for the MCP-style tool gateway.

The gateway exposes ``POST {TOOL_GATEWAY_URL}/mcp/{server}/tools/{tool}``
taking the tool params as a JSON body and answering
``{success, data, error}``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import TOOL_GATEWAY_URL
from ..settings import SSE_HTTP_MAX_CONNECTIONS, SSE_HTTP_MAX_KEEPALIVE, TOOL_GATEWAY_HTTP_TIMEOUT
from . import adapters as keys
from .adapters import AdapterResult, AdapterSet

logger = logging.getLogger(__name__)

# (server, tool) behind each adapter key
GATEWAY_ROUTES: Dict[str, tuple] = {
    keys.NOTION_FETCH: ("notion", "fetch"),
    keys.NOTION_CREATE_PAGE: ("notion", "create_page"),
    keys.NOTION_APPEND: ("notion", "append_to_page"),
    keys.SEARCH_WEB: ("tavily", "search_web"),
    keys.GITHUB_REPOS: ("github", "get_repos"),
    keys.GITHUB_ISSUES: ("github", "get_issues"),
    keys.GITHUB_CREATE_ISSUE: ("github", "create_issue"),
    keys.EMAIL_SEND: ("email", "send_email"),
    keys.LLM_GENERATE: ("llm", "generate"),
}

_http_client: Optional[httpx.AsyncClient] = None


async def _get_http_client() -> httpx.AsyncClient:
    global _http_client
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(
            timeout=TOOL_GATEWAY_HTTP_TIMEOUT,
            limits=httpx.Limits(
                max_connections=SSE_HTTP_MAX_CONNECTIONS,
                max_keepalive_connections=SSE_HTTP_MAX_KEEPALIVE,
            ),
        )
    return _http_client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
    _http_client = None


class GatewayToolAdapter:
    """One gateway tool as a ToolAdapter.

    Transport problems and non-2xx answers come back as a failed
    AdapterResult rather than an exception.
    """

    def __init__(self, server: str, tool: str, base_url: Optional[str] = None):
        self.server = server
        self.tool = tool
        self.base_url = (base_url or TOOL_GATEWAY_URL).rstrip("/")

    @property
    def url(self) -> str:
        return f"{self.base_url}/mcp/{self.server}/tools/{self.tool}"

    async def call(self, params: Dict[str, Any]) -> AdapterResult:
        logger.info(f"Calling {self.server}.{self.tool}")
        try:
            client = await _get_http_client()
            resp = await client.post(self.url, json=params)
        except httpx.HTTPError as e:
            logger.error(f"{self.server}.{self.tool} transport error: {e}")
            return AdapterResult(success=False, error=f"Tool call failed: {e}")

        if resp.status_code >= 400:
            logger.error(f"{self.server}.{self.tool} returned {resp.status_code}")
            return AdapterResult(
                success=False,
                error=f"Tool gateway error: {resp.status_code} {resp.text}",
            )

        try:
            payload = resp.json()
        except ValueError:
            return AdapterResult(success=True, data=resp.text)
        return AdapterResult.from_payload(payload)


def build_gateway_adapters(base_url: Optional[str] = None) -> AdapterSet:
    """AdapterSet wiring every adapter key to its gateway tool."""
    return AdapterSet({
        key: GatewayToolAdapter(server, tool, base_url=base_url)
        for key, (server, tool) in GATEWAY_ROUTES.items()
    })
