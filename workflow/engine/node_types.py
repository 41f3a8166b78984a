"""Closed set of node types and the capability table the dispatcher enforces."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional


class NodeType(str, Enum):
    NOTION = "notion"
    TAVILY = "tavily"
    WEB_SEARCH = "web_search"
    GITHUB = "github"
    LLM = "llm"
    EMAIL = "email"
    NOTION_CREATE = "notion_create"
    FILE_UPLOAD = "file_upload"
    CSV_UPLOAD = "csv_upload"
    PDF_UPLOAD = "pdf_upload"
    TXT_UPLOAD = "txt_upload"
    PROMPT = "prompt"


class NodeCategory(str, Enum):
    SOURCE = "source"
    TRANSFORM = "transform"
    DELIVERY = "delivery"
    INGESTION = "ingestion"
    INPUT = "input"


@dataclass(frozen=True)
class Capability:
    """What a node type may do.

    Attributes:
        category: Grouping used by the merge rule (only SOURCE feeds sourceContent)
        actions: Allowed action names; None means any action name is accepted
        formats: File extensions accepted by ingestion types (empty = not a file type)
    """

    category: NodeCategory
    actions: Optional[FrozenSet[str]] = None
    formats: FrozenSet[str] = field(default_factory=frozenset)


_SEARCH_ACTIONS = frozenset({"search", "web_search", "search_web"})
_UPLOAD_FORMATS = frozenset({"csv", "pdf", "txt"})

CAPABILITIES: Dict[NodeType, Capability] = {
    NodeType.NOTION: Capability(
        NodeCategory.SOURCE,
        frozenset({
            "fetch", "fetch_page", "fetch_database",
            "query_database", "read_page", "get_page",
        }),
    ),
    NodeType.TAVILY: Capability(NodeCategory.SOURCE, _SEARCH_ACTIONS),
    NodeType.WEB_SEARCH: Capability(NodeCategory.SOURCE, _SEARCH_ACTIONS),
    NodeType.GITHUB: Capability(
        NodeCategory.SOURCE,
        frozenset({
            "get_repos", "fetch_repos", "get_issues",
            "fetch_issues", "create_issue",
        }),
    ),
    NodeType.LLM: Capability(NodeCategory.TRANSFORM),
    NodeType.EMAIL: Capability(NodeCategory.DELIVERY, frozenset({"send", "send_email"})),
    NodeType.NOTION_CREATE: Capability(
        NodeCategory.DELIVERY, frozenset({"create_page", "append_to_page"}),
    ),
    NodeType.FILE_UPLOAD: Capability(NodeCategory.INGESTION, formats=_UPLOAD_FORMATS),
    NodeType.CSV_UPLOAD: Capability(NodeCategory.INGESTION, formats=frozenset({"csv"})),
    NodeType.PDF_UPLOAD: Capability(NodeCategory.INGESTION, formats=frozenset({"pdf"})),
    NodeType.TXT_UPLOAD: Capability(NodeCategory.INGESTION, formats=frozenset({"txt"})),
    NodeType.PROMPT: Capability(NodeCategory.INPUT),
}


def parse_node_type(value: str) -> Optional[NodeType]:
    """Return the NodeType for a raw string, or None if it is not in the closed set."""
    try:
        return NodeType(value)
    except ValueError:
        return None


def is_source_type(node_type: NodeType) -> bool:
    return CAPABILITIES[node_type].category is NodeCategory.SOURCE


def is_action_allowed(node_type: NodeType, action: str) -> bool:
    actions = CAPABILITIES[node_type].actions
    return actions is None or action in actions
