"""
Runner input propagation.

An Input node's message is the only source of truth for the ``input`` field
of every Runner reachable from it through Agents. These helpers recompute
that derived field; they return new graphs and never modify their arguments.
"""
import logging
from collections import defaultdict
from typing import Dict, Iterator, List, Set, TypeVar

from .schema import NodeKind, WorkflowEdge, WorkflowGraph, WorkflowNode

logger = logging.getLogger(__name__)

GraphT = TypeVar("GraphT", bound=WorkflowGraph)

_TRAVERSABLE_KINDS = (NodeKind.AGENT, NodeKind.RUNNER)


def find_downstream_runners(input_id: str, graph: WorkflowGraph) -> List[str]:
    """Runner ids reachable from input_id, in depth-first discovery order."""
    nodes = graph.node_index()
    graph.require_node(input_id)

    outgoing: Dict[str, List[WorkflowEdge]] = defaultdict(list)
    for edge in graph.edges:
        outgoing[edge.source].append(edge)

    runner_ids: List[str] = []
    visited: Set[str] = {input_id}
    # One open edge iterator per agent on the current depth-first path.
    stack: List[Iterator[WorkflowEdge]] = [iter(outgoing[input_id])]

    while stack:
        edge = next(stack[-1], None)
        if edge is None:
            stack.pop()
            continue
        target = nodes.get(edge.target)
        if target is None:
            graph.require_node(edge.target, edge_id=edge.id)
        if target.type not in _TRAVERSABLE_KINDS:
            continue
        if target.type == NodeKind.RUNNER:
            if target.id not in runner_ids:
                runner_ids.append(target.id)
        elif target.id not in visited:
            visited.add(target.id)
            stack.append(iter(outgoing[target.id]))

    return runner_ids


def _with_field(node: WorkflowNode, field: str, value: str) -> WorkflowNode:
    return node.model_copy(update={"data": node.data.model_copy(update={field: value})})


def propagate_input_message(input_id: str, message: str, graph: GraphT) -> GraphT:
    """Set the Input's message and the input of every Runner downstream of it."""
    source = graph.require_node(input_id)
    if source.type != NodeKind.INPUT:
        raise ValueError(f"Node {input_id} is not an input node")

    runner_ids = set(find_downstream_runners(input_id, graph))
    logger.debug(f"Propagating message from {input_id} to runners: {sorted(runner_ids)}")

    updated: List[WorkflowNode] = []
    for node in graph.nodes:
        if node.id == input_id:
            node = _with_field(node, "message", message)
        elif node.id in runner_ids and node.type == NodeKind.RUNNER:
            node = _with_field(node, "input", message)
        updated.append(node)

    return graph.model_copy(update={"nodes": updated})


def resync_runner_inputs(graph: GraphT) -> GraphT:
    """
    Re-run propagation for every Input node with its current message.

    Called after any edge-set mutation. Idempotent; when two inputs reach the
    same runner the later input in node order wins.
    """
    messages: Dict[str, str] = {
        node.id: node.data.message for node in graph.nodes_of_kind(NodeKind.INPUT)
    }
    for input_id, message in messages.items():
        graph = propagate_input_message(input_id, message, graph)
    return graph
