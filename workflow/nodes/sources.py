"""Source node handlers: document store, web search, repository API.

Source outputs also accumulate into ``sourceContent`` (see merge_layer).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..engine.context import ExecutionContext
from ..engine.errors import ContentError, ValidationError
from ..engine.graph import Node
from ..engine.node_types import NodeType
from ..integrations import adapters as keys
from .base import default_title, first_value, int_param, param, parse_github_repo
from .registry import BaseNodeHandler, register_node_type

logger = logging.getLogger(__name__)


@register_node_type(
    NodeType.NOTION,
    display_name="Notion",
    description="Fetch a Notion page or database (auto-detected)",
    input_schema={"properties": {"pageId": {"type": "string"}, "databaseId": {"type": "string"}}},
)
class NotionFetchHandler(BaseNodeHandler):
    async def execute(self, node: Node, context: ExecutionContext) -> str:
        config = context.config
        notion_id = first_value(
            config.notion_page_id,
            config.notion_database_id,
            param(node.params, "pageId", "databaseId"),
        )
        if not notion_id:
            raise ContentError(
                "Notion Page/Database ID not provided. Please enter it in the configuration modal."
            )
        logger.info(f"Notion {node.action}: fetching {notion_id}")
        return await self.adapters.call(
            keys.NOTION_FETCH, {"id": notion_id}, "Failed to fetch Notion content",
        )


def build_search_query(params: Dict[str, Any], context: ExecutionContext) -> str:
    """Template the search query with the previous output.

    ``{input}`` wins over the ``DESTINATION`` placeholder; an empty query
    falls back to the input itself.
    """
    query = str(param(params, "query", "search_query") or "")
    user_input = context.last_output or context.source_content or ""
    if "{input}" in query:
        query = query.replace("{input}", user_input)
    elif "DESTINATION" in query:
        query = query.replace("DESTINATION", user_input)
    if not query:
        query = user_input
    return query


@register_node_type(
    NodeType.TAVILY,
    NodeType.WEB_SEARCH,
    display_name="Web Search",
    description="Search the web; the query may reference the previous output",
    input_schema={
        "properties": {
            "query": {"type": "string"},
            "max_results": {"type": "integer", "default": 5},
            "include_domains": {"type": "array"},
            "site": {"type": "string"},
        },
    },
)
class WebSearchHandler(BaseNodeHandler):
    async def execute(self, node: Node, context: ExecutionContext) -> str:
        query = build_search_query(node.params, context)
        if not query.strip():
            raise ContentError("Search query not provided for web search")

        request = {
            "query": query,
            "maxResults": int_param(node.params, "max_results", "maxResults", default=5),
        }
        include_domains = param(node.params, "includeDomains", "include_domains")
        if include_domains:
            request["includeDomains"] = include_domains
        site = param(node.params, "site")
        if site:
            request["site"] = site

        logger.info(f"Web search ({node.type.value}): {query[:100]}")
        data = await self.adapters.call(keys.SEARCH_WEB, request, "Web search failed")

        # keep earlier branches visible to downstream transforms
        previous = f"{context.last_output}\n\n" if context.last_output else ""
        return previous + data


def _resolve_repository(params: Dict[str, Any], config_repo: Optional[str]) -> Optional[str]:
    if config_repo:
        return config_repo
    repo = param(params, "repo_url", "url")
    if not repo and params.get("owner") and params.get("repo"):
        repo = f"{params['owner']}/{params['repo']}"
    if not repo:
        repo = param(params, "repository")
    return repo


@register_node_type(
    NodeType.GITHUB,
    display_name="GitHub",
    description="List repositories or issues, or create an issue",
    input_schema={
        "properties": {
            "username": {"type": "string"},
            "repo_url": {"type": "string"},
            "state": {"type": "string", "enum": ["open", "closed", "all"]},
            "max_repos": {"type": "integer", "default": 10},
            "max_issues": {"type": "integer", "default": 10},
            "title": {"type": "string"},
        },
    },
)
class GitHubHandler(BaseNodeHandler):
    async def execute(self, node: Node, context: ExecutionContext) -> str:
        action = node.action
        params = node.params

        if action in ("get_repos", "fetch_repos"):
            owner = param(params, "username", "owner", "url", "repo_url")
            if owner and "/" in str(owner):
                parsed = parse_github_repo(str(owner))
                if parsed:
                    owner = parsed.split("/")[0]
            request = {"maxRepos": int_param(params, "max_repos", "maxRepos", default=10)}
            if owner:
                request["username"] = str(owner).strip()
            data = await self.adapters.call(keys.GITHUB_REPOS, request, "Failed to fetch GitHub repos")
            return data or "No repositories found"

        repo_ref = _resolve_repository(params, context.config.github_repo_url)
        if not repo_ref:
            raise ContentError(
                "GitHub repository URL must be provided. Please enter it in the configuration "
                'modal or specify in workflow parameters. Examples: "owner/repo", '
                '"https://github.com/owner/repo"'
            )
        repository = parse_github_repo(str(repo_ref))
        if repository is None:
            raise ContentError(f"Could not parse GitHub repository: {repo_ref}")

        if action in ("get_issues", "fetch_issues"):
            state = param(params, "state") or "open"
            if state not in ("open", "closed", "all"):
                raise ContentError(f"Invalid issue state '{state}'; expected open, closed or all")
            request = {
                "repository": repository,
                "state": state,
                "maxIssues": int_param(params, "max_issues", "maxIssues", default=10),
            }
            data = await self.adapters.call(keys.GITHUB_ISSUES, request, "Failed to fetch GitHub issues")
            return data or "No issues found"

        if action == "create_issue":
            request = {
                "repository": repository,
                "title": param(params, "title") or default_title(),
                "body": first_value(
                    context.last_output,
                    params.get("body"),
                    "This issue was created automatically by a workflow.",
                ),
            }
            data = await self.adapters.call(
                keys.GITHUB_CREATE_ISSUE, request, "Failed to create GitHub issue",
            )
            return data or "Issue created successfully"

        raise ValidationError(
            f"Unknown GitHub action: {action}. Supported actions: get_repos, "
            "fetch_repos, get_issues, fetch_issues, create_issue",
            node_id=node.id,
        )
