"""Ingestion and input node handlers.

Uploaded files arrive with their text already extracted, either embedded in
the node params (``fileContent``) or in the run's uploads keyed by node id.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Optional

from ..engine.context import ExecutionContext, UploadedFile
from ..engine.errors import ContentError
from ..engine.graph import Node
from ..engine.node_types import CAPABILITIES, NodeType
from ..settings import MAX_UPLOAD_BYTES
from .base import param
from .registry import BaseNodeHandler, HandlerOutput, register_node_type

logger = logging.getLogger(__name__)

MIME_FORMATS = {
    "text/csv": "csv",
    "application/csv": "csv",
    "application/pdf": "pdf",
    "text/plain": "txt",
    "text/txt": "txt",
}


def detect_format(file_name: str, file_type: Optional[str]) -> Optional[str]:
    suffix = PurePosixPath(file_name).suffix.lower().lstrip(".")
    if suffix:
        return suffix
    if file_type:
        return MIME_FORMATS.get(file_type.lower())
    return None


def _payload_size(upload: UploadedFile) -> int:
    declared = upload.metadata.get("fileSize")
    if isinstance(declared, int):
        return declared
    return len(upload.content.encode("utf-8"))


@register_node_type(
    NodeType.FILE_UPLOAD,
    NodeType.CSV_UPLOAD,
    NodeType.PDF_UPLOAD,
    NodeType.TXT_UPLOAD,
    display_name="File Upload",
    description="Feed pre-extracted file text (CSV, PDF, TXT) into the run",
    input_schema={
        "properties": {
            "fileContent": {"type": "string"},
            "fileName": {"type": "string"},
            "fileType": {"type": "string"},
        },
    },
)
class FileUploadHandler(BaseNodeHandler):
    async def execute(self, node: Node, context: ExecutionContext) -> HandlerOutput:
        params = node.params
        content = param(params, "fileContent")
        if content is not None:
            upload = UploadedFile(
                file_name=str(param(params, "fileName") or "uploaded-file"),
                content=str(content),
                metadata={
                    "nodeId": node.id,
                    "uploadedAt": datetime.now(timezone.utc).isoformat(),
                    "fileType": params.get("fileType"),
                    "fileSize": params.get("fileSize"),
                },
            )
        else:
            upload = context.uploaded_files.get(node.id)
        if upload is None or not upload.content:
            raise ContentError("No file uploaded for file upload node. Please upload a file first.")

        if _payload_size(upload) > MAX_UPLOAD_BYTES:
            raise ContentError(
                f"File too large. Maximum size is {MAX_UPLOAD_BYTES // (1024 * 1024)}MB"
            )

        allowed = CAPABILITIES[node.type].formats
        file_format = detect_format(upload.file_name, upload.metadata.get("fileType"))
        if file_format is not None and file_format not in allowed:
            raise ContentError(
                f"Unsupported file format '{file_format}' for {node.type.value}; "
                f"expected one of {sorted(allowed)}"
            )

        logger.info(f"Using uploaded file {upload.file_name} ({len(upload.content)} characters)")
        return HandlerOutput(output=upload.content, uploaded_file=upload)


@register_node_type(
    NodeType.PROMPT,
    display_name="Prompt",
    description="Seed the pipeline with literal text",
    input_schema={"required": ["text"], "properties": {"text": {"type": "string"}}},
)
class PromptHandler(BaseNodeHandler):
    async def execute(self, node: Node, context: ExecutionContext) -> str:
        text = param(node.params, "text", "prompt")
        if not text or not isinstance(text, str):
            raise ContentError("Prompt text is required for this node.")
        return text.strip()
