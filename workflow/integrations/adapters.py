"""Tool adapter contract used by node handlers.

Every external capability (document store, web search, repository API,
mail, language model) is reached through an object with
``async call(params) -> AdapterResult``. Handlers look adapters up by key
in an ``AdapterSet``; a missing adapter is an AdapterError raised at call
time, so a run only fails if a node actually needs it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol

from ..engine.errors import AdapterError

# Adapter keys
NOTION_FETCH = "notion.fetch"
NOTION_CREATE_PAGE = "notion.create_page"
NOTION_APPEND = "notion.append"
SEARCH_WEB = "search.web"
GITHUB_REPOS = "github.repos"
GITHUB_ISSUES = "github.issues"
GITHUB_CREATE_ISSUE = "github.create_issue"
EMAIL_SEND = "email.send"
LLM_GENERATE = "llm.generate"

ALL_ADAPTER_KEYS = (
    NOTION_FETCH, NOTION_CREATE_PAGE, NOTION_APPEND, SEARCH_WEB,
    GITHUB_REPOS, GITHUB_ISSUES, GITHUB_CREATE_ISSUE, EMAIL_SEND, LLM_GENERATE,
)


@dataclass(frozen=True)
class AdapterResult:
    success: bool
    data: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "AdapterResult":
        """Read a ``{success, data|content, error}`` JSON body."""
        if not isinstance(payload, dict):
            return cls(success=True, data=None if payload is None else str(payload))
        data = payload.get("data", payload.get("content"))
        if data is not None and not isinstance(data, str):
            data = str(data)
        return cls(
            success=bool(payload.get("success", "error" not in payload)),
            data=data,
            error=payload.get("error"),
        )


class ToolAdapter(Protocol):
    async def call(self, params: Dict[str, Any]) -> AdapterResult: ...


class AdapterSet:
    def __init__(self, adapters: Optional[Mapping[str, ToolAdapter]] = None):
        self._adapters: Dict[str, ToolAdapter] = dict(adapters or {})

    def get(self, key: str) -> ToolAdapter:
        adapter = self._adapters.get(key)
        if adapter is None:
            raise AdapterError(f"No adapter configured for '{key}'", adapter=key)
        return adapter

    def __contains__(self, key: str) -> bool:
        return key in self._adapters

    async def call(self, key: str, params: Dict[str, Any], failure_message: str) -> str:
        """Call an adapter and unwrap its result.

        Raises:
            AdapterError: adapter missing, or it reported failure
        """
        result = await self.get(key).call(params)
        if not result.success:
            raise AdapterError(result.error or failure_message, adapter=key)
        return result.data or ""
