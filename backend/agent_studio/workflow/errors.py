from typing import Optional


class WorkflowError(Exception):
    """Base exception for workflow graph operations."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnresolvedNodeReferenceError(WorkflowError):
    """Raised when an edge points at a node that does not exist in the graph."""

    def __init__(self, node_id: str, edge_id: Optional[str] = None):
        if edge_id:
            message = f"Edge {edge_id} references unknown node: {node_id}"
        else:
            message = f"Unknown node: {node_id}"
        super().__init__(message)
        self.node_id = node_id
        self.edge_id = edge_id


class WorkflowStoreError(WorkflowError):
    """Base exception for WorkflowStore mutations."""
    pass


class NodeNotFoundError(WorkflowStoreError):
    """Raised when a mutation targets a node id that is not in the workflow."""
    pass


class EdgeNotFoundError(WorkflowStoreError):
    """Raised when a mutation targets an edge id that is not in the workflow."""
    pass


class DuplicateNodeError(WorkflowStoreError):
    """Raised when a node is added with an id that is already taken."""
    pass


class InvalidNodeFieldError(WorkflowStoreError):
    """Raised when a field edit does not fit the node's payload."""
    pass
