import logging
import uuid
from typing import Dict, Optional

from .schema import (
    AgentNodeData,
    ExecutionMode,
    FunctionToolNodeData,
    GuardrailNodeData,
    GuardrailType,
    InputNodeData,
    NodeData,
    NodeKind,
    NodePosition,
    RunnerNodeData,
    ValueType,
    WorkflowGraph,
    WorkflowNode,
)

logger = logging.getLogger(__name__)

DEFAULT_RUNNER_INPUT = "Hello world"


def generate_node_id(kind: NodeKind) -> str:
    """Generate a unique node ID prefixed with its kind."""
    return f"{kind.value}-{uuid.uuid4().hex[:12]}"


def _first_input_message(graph: Optional[WorkflowGraph]) -> Optional[str]:
    if graph is None:
        return None
    for node in graph.nodes_of_kind(NodeKind.INPUT):
        if node.data.message:
            return node.data.message
    return None


def default_node_data(kind: NodeKind, graph: Optional[WorkflowGraph] = None) -> NodeData:
    """Payload a freshly dropped node starts with."""
    if kind == NodeKind.AGENT:
        return AgentNodeData(name="Agent", instructions="You are a helpful assistant.")
    if kind == NodeKind.RUNNER:
        return RunnerNodeData(
            name="Runner",
            input=_first_input_message(graph) or DEFAULT_RUNNER_INPUT,
            execution_mode=ExecutionMode.SYNC,
        )
    if kind == NodeKind.FUNCTION_TOOL:
        return FunctionToolNodeData(
            name="Function Tool",
            parameters=[],
            return_type=ValueType.STRING,
            implementation='return "Hello from function tool"',
        )
    if kind == NodeKind.INPUT:
        return InputNodeData(name="Input", message="")
    if kind == NodeKind.GUARDRAIL:
        return GuardrailNodeData(
            name="Guardrail",
            guardrail_type=GuardrailType.INPUT,
            internal_agent_name="DefaultGuardAgent",
            internal_agent_instructions="Check the input based on policy X.",
            tripwire_logic="output.is_policy_violated == True",
        )
    raise ValueError(f"Unsupported node kind: {kind}")


def create_node(
    kind: NodeKind,
    node_id: Optional[str] = None,
    position: Optional[NodePosition] = None,
    graph: Optional[WorkflowGraph] = None,
) -> WorkflowNode:
    node = WorkflowNode(
        id=node_id or generate_node_id(kind),
        type=kind,
        position=position or NodePosition(x=0, y=0),
        data=default_node_data(kind, graph),
    )
    logger.debug(f"Created {kind.value} node {node.id}")
    return node


def node_catalog() -> Dict[str, dict]:
    """Default payload of every node kind, keyed by kind, for the editor palette."""
    return {
        kind.value: default_node_data(kind).model_dump(by_alias=True, mode="json")
        for kind in NodeKind
    }
