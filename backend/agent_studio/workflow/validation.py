import logging
from collections import defaultdict
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from pydantic import BaseModel

from .schema import NodeKind, WorkflowEdge, WorkflowGraph, WorkflowNode

logger = logging.getLogger(__name__)


class ConnectionRejection(str, Enum):
    """Reasons a proposed edge is refused."""
    INCOMPATIBLE_KINDS = "IncompatibleKinds"
    FAN_LIMIT_EXCEEDED = "FanLimitExceeded"
    CYCLIC_CONNECTION = "CyclicConnection"


class ConnectionResult(BaseModel):
    ok: bool
    reason: Optional[ConnectionRejection] = None
    message: Optional[str] = None

    @classmethod
    def accepted(cls) -> "ConnectionResult":
        return cls(ok=True)

    @classmethod
    def rejected(cls, reason: ConnectionRejection, message: str) -> "ConnectionResult":
        return cls(ok=False, reason=reason, message=message)


class ValidationIssue(BaseModel):
    """Invariant violation found in a loaded workflow."""
    code: str
    message: str
    node_id: Optional[str] = None
    edge_id: Optional[str] = None
    severity: str = "error"


# Directed kind pairs that may be connected:
#   Input -> Agent          (the input feeds the agent; one outgoing edge only)
#   FunctionTool -> Agent   (tool binding, many-to-many)
#   Agent -> Agent          (handoff)
#   Agent -> Runner         (execution; one incoming edge only)
#   Guardrail -> Agent      (both input and output guardrails)
ALLOWED_CONNECTIONS: FrozenSet[Tuple[NodeKind, NodeKind]] = frozenset({
    (NodeKind.INPUT, NodeKind.AGENT),
    (NodeKind.FUNCTION_TOOL, NodeKind.AGENT),
    (NodeKind.AGENT, NodeKind.AGENT),
    (NodeKind.AGENT, NodeKind.RUNNER),
    (NodeKind.GUARDRAIL, NodeKind.AGENT),
})


def is_allowed_pair(source_kind: NodeKind, target_kind: NodeKind) -> bool:
    return (source_kind, target_kind) in ALLOWED_CONNECTIONS


def _incompatible_message(source: WorkflowNode, target: WorkflowNode) -> str:
    if source.type == NodeKind.AGENT and target.type == NodeKind.FUNCTION_TOOL:
        return "Connect from the Function Tool node to the Agent node, not the other way around"
    if source.type == NodeKind.INPUT:
        return "Input nodes can only connect to Agent nodes"
    return f"Connection {source.type.value} -> {target.type.value} is not allowed"


def _count_outgoing(node_id: str, edges: Sequence[WorkflowEdge]) -> int:
    return sum(1 for e in edges if e.source == node_id)


def _count_incoming(node_id: str, edges: Sequence[WorkflowEdge]) -> int:
    return sum(1 for e in edges if e.target == node_id)


def creates_cycle(source_id: str, target_id: str, edges: Sequence[WorkflowEdge]) -> bool:
    """Check whether adding source -> target lets target reach back to source."""
    adjacency: Dict[str, List[str]] = defaultdict(list)
    for edge in edges:
        adjacency[edge.source].append(edge.target)
    adjacency[source_id].append(target_id)

    visited: Set[str] = set()
    stack = [target_id]
    while stack:
        current = stack.pop()
        if current == source_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        for neighbor in adjacency[current]:
            if neighbor not in visited:
                stack.append(neighbor)
    return False


def validate_connection(
    source: WorkflowNode,
    target: WorkflowNode,
    edges: Sequence[WorkflowEdge],
) -> ConnectionResult:
    """
    Decide whether source -> target may be added to the given edge set.

    Checks run cheapest first: kind compatibility, then fan limits, then the
    cycle search. The edge set is never modified.
    """
    if not is_allowed_pair(source.type, target.type):
        message = _incompatible_message(source, target)
        logger.warning(f"Rejected connection {source.id} -> {target.id}: {message}")
        return ConnectionResult.rejected(ConnectionRejection.INCOMPATIBLE_KINDS, message)

    if source.type == NodeKind.INPUT and _count_outgoing(source.id, edges) > 0:
        message = "Input nodes can only have one outgoing connection"
        logger.warning(f"Rejected connection {source.id} -> {target.id}: {message}")
        return ConnectionResult.rejected(ConnectionRejection.FAN_LIMIT_EXCEEDED, message)

    if target.type == NodeKind.RUNNER and _count_incoming(target.id, edges) > 0:
        message = "Runner nodes can only have one incoming connection"
        logger.warning(f"Rejected connection {source.id} -> {target.id}: {message}")
        return ConnectionResult.rejected(ConnectionRejection.FAN_LIMIT_EXCEEDED, message)

    if creates_cycle(source.id, target.id, edges):
        message = "Connection would create a cycle"
        logger.warning(f"Rejected connection {source.id} -> {target.id}: {message}")
        return ConnectionResult.rejected(ConnectionRejection.CYCLIC_CONNECTION, message)

    return ConnectionResult.accepted()


# =============================================================================
# Whole-graph invariant check
# =============================================================================

def _find_cycle_nodes(graph: WorkflowGraph) -> List[str]:
    """Kahn's algorithm; returns the ids left over when the graph has a cycle."""
    adjacency: Dict[str, List[str]] = defaultdict(list)
    in_degree: Dict[str, int] = {n.id: 0 for n in graph.nodes}

    for edge in graph.edges:
        if edge.source not in in_degree or edge.target not in in_degree:
            continue
        adjacency[edge.source].append(edge.target)
        in_degree[edge.target] += 1

    queue = [node_id for node_id, degree in in_degree.items() if degree == 0]
    ordered = set()

    while queue:
        current = queue.pop(0)
        ordered.add(current)
        for neighbor in adjacency[current]:
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                queue.append(neighbor)

    return [n.id for n in graph.nodes if n.id not in ordered]


def validate_workflow(graph: WorkflowGraph) -> List[ValidationIssue]:
    """Check a loaded workflow against the structural invariants."""
    issues: List[ValidationIssue] = []

    seen_nodes: Set[str] = set()
    for node in graph.nodes:
        if node.id in seen_nodes:
            issues.append(ValidationIssue(
                code="DUPLICATE_NODE_ID",
                message=f"Duplicate node id: {node.id}",
                node_id=node.id,
            ))
        seen_nodes.add(node.id)

    seen_edges: Set[str] = set()
    for edge in graph.edges:
        if edge.id in seen_edges:
            issues.append(ValidationIssue(
                code="DUPLICATE_EDGE_ID",
                message=f"Duplicate edge id: {edge.id}",
                edge_id=edge.id,
            ))
        seen_edges.add(edge.id)

    nodes = graph.node_index()
    for edge in graph.edges:
        source = nodes.get(edge.source)
        target = nodes.get(edge.target)
        if source is None:
            issues.append(ValidationIssue(
                code="INVALID_EDGE_SOURCE",
                message=f"Edge references unknown source node: {edge.source}",
                edge_id=edge.id,
            ))
        if target is None:
            issues.append(ValidationIssue(
                code="INVALID_EDGE_TARGET",
                message=f"Edge references unknown target node: {edge.target}",
                edge_id=edge.id,
            ))
        if source is None or target is None:
            continue
        if not is_allowed_pair(source.type, target.type):
            issues.append(ValidationIssue(
                code=ConnectionRejection.INCOMPATIBLE_KINDS.value,
                message=_incompatible_message(source, target),
                edge_id=edge.id,
            ))

    for node in graph.nodes_of_kind(NodeKind.INPUT):
        if _count_outgoing(node.id, graph.edges) > 1:
            issues.append(ValidationIssue(
                code=ConnectionRejection.FAN_LIMIT_EXCEEDED.value,
                message=f"Input node {node.id} has more than one outgoing connection",
                node_id=node.id,
            ))

    for node in graph.nodes_of_kind(NodeKind.RUNNER):
        if _count_incoming(node.id, graph.edges) > 1:
            issues.append(ValidationIssue(
                code=ConnectionRejection.FAN_LIMIT_EXCEEDED.value,
                message=f"Runner node {node.id} has more than one incoming connection",
                node_id=node.id,
            ))

    for node_id in _find_cycle_nodes(graph):
        issues.append(ValidationIssue(
            code=ConnectionRejection.CYCLIC_CONNECTION.value,
            message=f"Node {node_id} is part of or downstream of a cycle",
            node_id=node_id,
        ))

    return issues
