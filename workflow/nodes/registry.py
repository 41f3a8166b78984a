"""Node Handler Registry

Maps every ``NodeType`` to the handler class that executes it.

Key Components:
- NodeDefinition: Metadata for a node type (display name, accepted params)
- BaseNodeHandler: Abstract base every handler derives from
- register_node_type: Decorator registering a handler for one or more types
- create_handler: Factory used by the dispatcher
- verify_registry_complete: Fails loudly if a NodeType has no handler

Handlers only read the ExecutionContext. Anything a node derives for the
rest of the run (an uploaded file's payload) is returned in a HandlerOutput
and merged by the coordinator after the layer barrier.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar, Union

from ..engine.context import ExecutionContext, UploadedFile
from ..engine.graph import Node
from ..engine.node_types import CAPABILITIES, NodeCategory, NodeType
from ..integrations.adapters import AdapterSet

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="BaseNodeHandler")


@dataclass
class NodeDefinition:
    """Metadata definition for a node type.

    Attributes:
        node_type: The NodeType this definition describes
        display_name: Human-readable name for UI display
        description: Brief description of node functionality
        input_schema: JSON schema of the node params
    """

    node_type: NodeType
    display_name: str
    description: str
    input_schema: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.node_type, NodeType):
            raise ValueError(f"node_type must be a NodeType, got {self.node_type!r}")
        if not self.display_name:
            raise ValueError("display_name cannot be empty")
        if not isinstance(self.input_schema, dict):
            raise ValueError("input_schema must be a dictionary")

    @property
    def category(self) -> NodeCategory:
        return CAPABILITIES[self.node_type].category

    def to_dict(self) -> Dict[str, Any]:
        actions = CAPABILITIES[self.node_type].actions
        return {
            "node_type": self.node_type.value,
            "display_name": self.display_name,
            "description": self.description,
            "category": self.category.value,
            "actions": sorted(actions) if actions is not None else None,
            "input_schema": self.input_schema,
        }


@dataclass
class HandlerOutput:
    """Handler result carrying derived state besides the text output."""

    output: str
    uploaded_file: Optional[UploadedFile] = None


class BaseNodeHandler(ABC):
    """Abstract base for node handlers.

    Args:
        node_type: The NodeType this instance serves
        adapters: Tool adapters available to the run
    """

    def __init__(self, node_type: NodeType, adapters: AdapterSet):
        self.node_type = node_type
        self.adapters = adapters

    @abstractmethod
    async def execute(
        self, node: Node, context: ExecutionContext
    ) -> Union[str, HandlerOutput]:
        """Run the node. Raise an engine error on failure."""


NODE_REGISTRY: Dict[NodeType, NodeDefinition] = {}
NODE_CLASSES: Dict[NodeType, Type[BaseNodeHandler]] = {}


def register_node_type(
    *node_types: NodeType,
    display_name: str,
    description: str,
    input_schema: Optional[Dict[str, Any]] = None,
) -> Callable[[Type[T]], Type[T]]:
    """Decorator registering a handler class for one or more node types.

    Example:
        @register_node_type(
            NodeType.PROMPT,
            display_name="Prompt",
            description="Seeds the pipeline with literal text",
        )
        class PromptHandler(BaseNodeHandler):
            async def execute(self, node, context):
                return node.params["text"]
    """
    if not node_types:
        raise ValueError("register_node_type needs at least one NodeType")

    def decorator(cls: Type[T]) -> Type[T]:
        for node_type in node_types:
            if node_type in NODE_CLASSES:
                raise ValueError(f"Node type already registered: {node_type.value}")
            NODE_REGISTRY[node_type] = NodeDefinition(
                node_type=node_type,
                display_name=display_name,
                description=description,
                input_schema=dict(input_schema or {}),
            )
            NODE_CLASSES[node_type] = cls
            logger.debug(f"Registered node type: {node_type.value} ({display_name})")
        return cls

    return decorator


def create_handler(node_type: NodeType, adapters: AdapterSet) -> BaseNodeHandler:
    """Instantiate the handler for ``node_type``.

    Raises:
        ValueError: If node_type has no registered handler
    """
    handler_class = NODE_CLASSES.get(node_type)
    if handler_class is None:
        raise ValueError(
            f"Unknown node type: {node_type}. "
            f"Available types: {[t.value for t in NODE_CLASSES]}"
        )
    return handler_class(node_type=node_type, adapters=adapters)


def get_node_definition(node_type: NodeType) -> Optional[NodeDefinition]:
    return NODE_REGISTRY.get(node_type)


def list_node_types() -> List[NodeDefinition]:
    return [NODE_REGISTRY[t] for t in NodeType if t in NODE_REGISTRY]


def list_node_types_by_category(category: NodeCategory) -> List[NodeDefinition]:
    return [d for d in list_node_types() if d.category is category]


def is_node_type_registered(node_type: NodeType) -> bool:
    return node_type in NODE_CLASSES


def verify_registry_complete() -> None:
    """Raise RuntimeError if any NodeType lacks a handler."""
    missing = [t.value for t in NodeType if t not in NODE_CLASSES]
    if missing:
        raise RuntimeError(f"No handler registered for node type(s): {missing}")
