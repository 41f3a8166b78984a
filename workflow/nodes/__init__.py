"""Node handlers: registry plus one handler per NodeType."""

# Import handler modules to register every node type
from . import sources  # noqa: F401 - notion, tavily, web_search, github
from . import transform  # noqa: F401 - llm
from . import delivery  # noqa: F401 - email, notion_create
from . import ingestion  # noqa: F401 - file uploads, prompt

from .registry import (
    NODE_CLASSES,
    NODE_REGISTRY,
    BaseNodeHandler,
    HandlerOutput,
    NodeDefinition,
    create_handler,
    get_node_definition,
    is_node_type_registered,
    list_node_types,
    list_node_types_by_category,
    register_node_type,
    verify_registry_complete,
)

verify_registry_complete()

__all__ = [
    "NODE_CLASSES",
    "NODE_REGISTRY",
    "BaseNodeHandler",
    "HandlerOutput",
    "NodeDefinition",
    "create_handler",
    "get_node_definition",
    "is_node_type_registered",
    "list_node_types",
    "list_node_types_by_category",
    "register_node_type",
    "verify_registry_complete",
]
