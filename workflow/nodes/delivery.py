"""Delivery node handlers: email and Notion page creation."""

from __future__ import annotations

import logging

from ..config import NOTION_PAGE_DEFAULT_ID
from ..engine.context import ExecutionContext
from ..engine.errors import ContentError, ValidationError
from ..engine.graph import Node
from ..engine.node_types import NodeType
from ..integrations import adapters as keys
from .base import default_title, first_value, param
from .registry import BaseNodeHandler, register_node_type

logger = logging.getLogger(__name__)


@register_node_type(
    NodeType.EMAIL,
    display_name="Email",
    description="Send the previous output by email",
    input_schema={"properties": {"to": {"type": "string"}, "subject": {"type": "string"}}},
)
class EmailHandler(BaseNodeHandler):
    async def execute(self, node: Node, context: ExecutionContext) -> str:
        to = first_value(context.config.recipient_email, node.params.get("to"))
        if not to:
            raise ContentError(
                "Recipient email address not provided. Please enter it in the configuration modal."
            )
        request = {
            "to": to,
            "subject": param(node.params, "subject") or "Workflow Result",
            "body": context.last_output or "No content",
        }
        logger.info(f"Sending email to {to}")
        return await self.adapters.call(keys.EMAIL_SEND, request, "Failed to send email")


@register_node_type(
    NodeType.NOTION_CREATE,
    display_name="Notion Create",
    description="Create a Notion page or append to one with the previous output",
    input_schema={
        "properties": {
            "title": {"type": "string"},
            "parentId": {"type": "string"},
            "pageId": {"type": "string"},
        },
    },
)
class NotionCreateHandler(BaseNodeHandler):
    async def execute(self, node: Node, context: ExecutionContext) -> str:
        config = context.config
        content = context.last_output or ""

        if node.action == "create_page":
            parent_id = first_value(
                config.notion_database_id,
                config.notion_page_id,
                param(node.params, "databaseId", "pageId", "parentId"),
                NOTION_PAGE_DEFAULT_ID,
            )
            title = param(node.params, "title") or default_title()
            logger.info(f"Creating Notion page '{title}' under {parent_id or 'none (standalone)'}")
            data = await self.adapters.call(
                keys.NOTION_CREATE_PAGE,
                {"parentId": parent_id, "title": title, "content": content},
                "Failed to create Notion page",
            )
            return data or "Page created successfully"

        if node.action == "append_to_page":
            page_id = first_value(config.notion_page_id, node.params.get("pageId"))
            if not page_id:
                raise ContentError("Notion Page ID not provided for appending content")
            data = await self.adapters.call(
                keys.NOTION_APPEND,
                {"pageId": page_id, "content": content},
                "Failed to append to Notion page",
            )
            return data or "Content appended successfully"

        raise ValidationError(f"Unknown Notion create action: {node.action}", node_id=node.id)
