"""Workflow engine package.

Subpackages:
- engine: Graph layering, execution context, dispatch and run coordination
- nodes: Node type registry and one handler per node type
- integrations: Tool adapter contract and the HTTP tool gateway client
- temporal: Temporal workflow/activity definitions and worker
"""
