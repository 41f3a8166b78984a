"""Language-model transform node."""

from __future__ import annotations

import logging

from ..engine.context import ExecutionContext
from ..engine.errors import ContentError
from ..engine.graph import Node
from ..engine.node_types import NodeType
from ..integrations import adapters as keys
from .base import humanize_action, param
from .registry import BaseNodeHandler, register_node_type

logger = logging.getLogger(__name__)

EXTRACTION_MARKERS = ("extract", "find", "get")
ANALYSIS_MARKERS = ("analyze", "insights")

PREDEFINED_PROMPTS = {
    "summarize": (
        "Create a concise, well-structured summary of the following content. "
        "Include key points, action items, and important dates."
    ),
    "analyze": "Analyze the following content and provide key insights, trends, and recommendations.",
    "extract_insights": (
        "Extract the most important insights, learnings, and takeaways from the following content."
    ),
}


def is_extraction_action(action: str) -> bool:
    return any(marker in action for marker in EXTRACTION_MARKERS)


def uses_source_content(action: str) -> bool:
    """Extraction and analysis read the original source data, not the last step."""
    return is_extraction_action(action) or any(m in action for m in ANALYSIS_MARKERS)


def build_instruction(action: str, custom_prompt: str = "") -> str:
    if custom_prompt:
        return custom_prompt
    if action in PREDEFINED_PROMPTS:
        return PREDEFINED_PROMPTS[action]
    if is_extraction_action(action):
        return (
            f"{humanize_action(action)} from the following content. Be specific and provide "
            "ONLY the requested information. If the information is not found, clearly state "
            '"Not found in the content".'
        )
    return f"{humanize_action(action)} from the following content:"


def build_prompt(action: str, content: str, custom_prompt: str = "") -> str:
    return f"{build_instruction(action, custom_prompt)}\n\nContent:\n{content}"


@register_node_type(
    NodeType.LLM,
    display_name="LLM",
    description="Transform content with a language model; any action name is accepted",
    input_schema={"properties": {"prompt": {"type": "string"}}},
)
class LLMHandler(BaseNodeHandler):
    async def execute(self, node: Node, context: ExecutionContext) -> str:
        action = node.action
        if uses_source_content(action):
            content = context.source_content or context.last_output
        else:
            content = context.last_output
        if not content:
            raise ContentError("No input data for LLM processing")

        prompt = build_prompt(action, content, str(param(node.params, "prompt") or ""))
        logger.info(
            f"LLM {action}: using {'SOURCE' if uses_source_content(action) else 'PREVIOUS'} content"
        )
        logger.debug(f"Prompt: {prompt[:150]}...")
        return await self.adapters.call(
            keys.LLM_GENERATE, {"prompt": prompt}, "Language model call failed",
        )
