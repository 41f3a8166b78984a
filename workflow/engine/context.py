"""Execution context threaded through a run.

The context is owned by the coordinator. Handlers only read it; the merge
rule in ``merge_layer`` is the single place that produces the next context,
after every node of a layer has settled.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from .graph import Node
from .node_types import is_source_type

RESULT_SEPARATOR = "\n\n---\n\n"


def _pick(data: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if value:
            return str(value)
    return None


@dataclass(frozen=True)
class RunConfig:
    """Caller-supplied run configuration.

    Accepts both camelCase (wire) and snake_case keys; unknown keys are kept
    in ``extra`` so handlers can still resolve them.
    """

    notion_page_id: Optional[str] = None
    notion_database_id: Optional[str] = None
    recipient_email: Optional[str] = None
    github_repo_url: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN = {
        "notionPageId", "notion_page_id",
        "notionDatabaseId", "notion_database_id",
        "recipientEmail", "recipient_email",
        "githubRepoUrl", "github_repo_url",
    }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RunConfig":
        data = dict(data or {})
        return cls(
            notion_page_id=_pick(data, "notionPageId", "notion_page_id"),
            notion_database_id=_pick(data, "notionDatabaseId", "notion_database_id"),
            recipient_email=_pick(data, "recipientEmail", "recipient_email"),
            github_repo_url=_pick(data, "githubRepoUrl", "github_repo_url"),
            extra={k: v for k, v in data.items() if k not in cls._KNOWN},
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(self.extra)
        if self.notion_page_id:
            out["notionPageId"] = self.notion_page_id
        if self.notion_database_id:
            out["notionDatabaseId"] = self.notion_database_id
        if self.recipient_email:
            out["recipientEmail"] = self.recipient_email
        if self.github_repo_url:
            out["githubRepoUrl"] = self.github_repo_url
        return out


@dataclass(frozen=True)
class UploadedFile:
    """Pre-extracted file payload attached to an ingestion node."""

    file_name: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"fileName": self.file_name, "content": self.content, "metadata": dict(self.metadata)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UploadedFile":
        return cls(
            file_name=str(data.get("fileName") or data.get("file_name") or ""),
            content=str(data.get("content") or ""),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class ExecutionContext:
    config: RunConfig = field(default_factory=RunConfig)
    last_output: Optional[str] = None
    source_content: Optional[str] = None
    outputs_by_node_id: Dict[str, str] = field(default_factory=dict)
    uploaded_files: Dict[str, UploadedFile] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe form, used to pass the context between Temporal activities."""
        return {
            "config": self.config.to_dict(),
            "lastOutput": self.last_output,
            "sourceContent": self.source_content,
            "outputsByNodeId": dict(self.outputs_by_node_id),
            "uploadedFiles": {k: f.to_dict() for k, f in self.uploaded_files.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionContext":
        return cls(
            config=RunConfig.from_dict(data.get("config")),
            last_output=data.get("lastOutput"),
            source_content=data.get("sourceContent"),
            outputs_by_node_id=dict(data.get("outputsByNodeId") or {}),
            uploaded_files={
                k: UploadedFile.from_dict(f)
                for k, f in (data.get("uploadedFiles") or {}).items()
            },
        )


def initialize_context(config: Optional[Dict[str, Any]] = None) -> ExecutionContext:
    """Fresh context for a run; ``uploadedFiles`` in the config seeds the uploads map."""
    config = dict(config or {})
    uploads = config.pop("uploadedFiles", None) or {}
    return ExecutionContext(
        config=RunConfig.from_dict(config),
        uploaded_files={k: UploadedFile.from_dict(v) for k, v in uploads.items()},
    )


def combine_outputs(outputs: List[str]) -> str:
    """Single output passes through; several become numbered result blocks."""
    if len(outputs) == 1:
        return outputs[0]
    return RESULT_SEPARATOR.join(
        f"## Result {i}\n\n{output}" for i, output in enumerate(outputs, start=1)
    )


def merge_layer(
    context: ExecutionContext,
    nodes: List[Node],
    outputs: List[str],
    uploads: Optional[Dict[str, UploadedFile]] = None,
) -> ExecutionContext:
    """Fold one layer's outputs into a new context.

    Args:
        context: Context the layer was dispatched against
        nodes: Layer nodes in original order
        outputs: Output of each node, aligned with ``nodes``
        uploads: Upload payloads produced by ingestion nodes, keyed by node id

    Returns:
        The next context; the input context is left untouched
    """
    if len(nodes) != len(outputs):
        raise ValueError(f"layer has {len(nodes)} nodes but {len(outputs)} outputs")
    if not nodes:
        return context

    source_content = context.source_content
    outputs_by_node_id = dict(context.outputs_by_node_id)
    for node, output in zip(nodes, outputs):
        outputs_by_node_id[node.id] = output
        if is_source_type(node.type):
            source_content = (
                f"{source_content}{RESULT_SEPARATOR}{output}" if source_content else output
            )

    uploaded_files = dict(context.uploaded_files)
    if uploads:
        uploaded_files.update(uploads)

    return replace(
        context,
        last_output=combine_outputs(outputs),
        source_content=source_content,
        outputs_by_node_id=outputs_by_node_id,
        uploaded_files=uploaded_files,
    )
