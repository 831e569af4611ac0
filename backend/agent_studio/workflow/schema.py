"""
Workflow Schema - Pydantic models for the visual agent workflow graph.

Field aliases follow the payload produced by the React Flow editor, so a saved
workflow file can be validated directly into these models.
"""
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from agent_studio.core.config import DEFAULT_WORKFLOW_NAME

from .errors import UnresolvedNodeReferenceError


class NodeKind(str, Enum):
    """Kinds of nodes in a workflow graph."""
    AGENT = "agent"
    RUNNER = "runner"
    FUNCTION_TOOL = "functionTool"
    INPUT = "input"
    GUARDRAIL = "guardrail"


class ValueType(str, Enum):
    """Declared types for tool parameters, return values and schema fields."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    LIST = "list"
    DICT = "dict"
    NONE = "none"


class ExecutionMode(str, Enum):
    SYNC = "sync"
    ASYNC = "async"


class GuardrailType(str, Enum):
    INPUT = "input"
    OUTPUT = "output"


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SchemaField(_WireModel):
    """A single field of a structured output schema."""
    id: Optional[str] = None
    name: str = ""
    type: ValueType = ValueType.STRING
    is_optional: bool = Field(False, alias="isOptional")
    description: Optional[str] = None


class StructuredSchema(_WireModel):
    """A named, field-typed output contract for an agent."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True, protected_namespaces=())

    model_name: str = Field("", alias="modelName")
    description: Optional[str] = None
    fields: List[SchemaField] = Field(default_factory=list)


class ToolParameter(_WireModel):
    id: Optional[str] = None
    name: str = ""
    type: ValueType = ValueType.STRING


class NodePosition(BaseModel):
    """Position of a node in the visual editor."""
    x: float
    y: float
    model_config = ConfigDict(extra="ignore")


# =============================================================================
# Node payloads
# =============================================================================

class NodeBaseData(_WireModel):
    name: str = ""
    is_expanded: bool = Field(False, alias="isExpanded")


class AgentNodeData(NodeBaseData):
    node_type: Literal["agent"] = Field("agent", alias="nodeType")
    instructions: str = ""
    handoff_description: Optional[str] = None
    output_schema: Optional[StructuredSchema] = Field(None, alias="pydanticSchema")


class RunnerNodeData(NodeBaseData):
    node_type: Literal["runner"] = Field("runner", alias="nodeType")
    input: str = ""
    execution_mode: ExecutionMode = ExecutionMode.SYNC
    context: Optional[str] = None


class FunctionToolNodeData(NodeBaseData):
    node_type: Literal["functionTool"] = Field("functionTool", alias="nodeType")
    description: Optional[str] = None
    parameters: List[ToolParameter] = Field(default_factory=list)
    return_type: ValueType = Field(ValueType.STRING, alias="returnType")
    implementation: str = ""


class InputNodeData(NodeBaseData):
    node_type: Literal["input"] = Field("input", alias="nodeType")
    message: str = ""


class GuardrailNodeData(NodeBaseData):
    node_type: Literal["guardrail"] = Field("guardrail", alias="nodeType")
    guardrail_type: GuardrailType = Field(GuardrailType.INPUT, alias="guardrailType")
    description: Optional[str] = None
    internal_agent_name: str = Field("", alias="internalAgentName")
    internal_agent_instructions: str = Field("", alias="internalAgentInstructions")
    internal_agent_output_schema: Optional[StructuredSchema] = Field(
        None, alias="internalAgentPydanticSchema"
    )
    tripwire_logic: str = Field("", alias="tripwireConditionLogic")


NodeData = Annotated[
    Union[
        AgentNodeData,
        RunnerNodeData,
        FunctionToolNodeData,
        InputNodeData,
        GuardrailNodeData,
    ],
    Field(discriminator="node_type"),
]


class WorkflowNode(BaseModel):
    """A node in the workflow graph."""
    id: str
    type: NodeKind
    position: Optional[NodePosition] = None
    data: NodeData
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def align_kind_and_payload(cls, data: Any) -> Any:
        # React Flow keeps the kind on the node while the payload carries
        # nodeType; either side may be missing in hand-written files.
        if isinstance(data, dict):
            data = dict(data)
            payload = data.get("data")
            if isinstance(payload, dict):
                payload = dict(payload)
                node_type = payload.get("nodeType", payload.get("node_type"))
                if node_type is None and data.get("type") is not None:
                    payload["nodeType"] = _enum_value(data["type"])
                elif data.get("type") is None and node_type is not None:
                    data["type"] = node_type
                data["data"] = payload
            elif payload is None and data.get("type") is not None:
                data["data"] = {"nodeType": _enum_value(data["type"])}
            elif isinstance(payload, BaseModel) and data.get("type") is None:
                data["type"] = getattr(payload, "node_type", None)
        return data

    @model_validator(mode="after")
    def check_payload_kind(self) -> "WorkflowNode":
        if self.data.node_type != self.type.value:
            raise ValueError(
                f"Node {self.id} has type '{self.type.value}' but payload '{self.data.node_type}'"
            )
        return self

    @property
    def kind(self) -> NodeKind:
        return self.type


class WorkflowEdge(BaseModel):
    """A directed edge between two workflow nodes."""
    id: str
    source: str
    target: str
    model_config = ConfigDict(extra="ignore")


class WorkflowGraph(BaseModel):
    """Flat, id-indexed node and edge collections of a workflow."""
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def require_node(self, node_id: str, edge_id: Optional[str] = None) -> WorkflowNode:
        node = self.get_node(node_id)
        if node is None:
            raise UnresolvedNodeReferenceError(node_id, edge_id=edge_id)
        return node

    def node_index(self) -> Dict[str, WorkflowNode]:
        return {node.id: node for node in self.nodes}

    def nodes_of_kind(self, kind: NodeKind) -> List[WorkflowNode]:
        return [n for n in self.nodes if n.type == kind]

    def get_outgoing_edges(self, node_id: str) -> List[WorkflowEdge]:
        return [e for e in self.edges if e.source == node_id]

    def get_incoming_edges(self, node_id: str) -> List[WorkflowEdge]:
        return [e for e in self.edges if e.target == node_id]

    def check_references(self) -> None:
        """Raise UnresolvedNodeReferenceError for the first edge with a missing endpoint."""
        node_ids = {n.id for n in self.nodes}
        for edge in self.edges:
            if edge.source not in node_ids:
                raise UnresolvedNodeReferenceError(edge.source, edge_id=edge.id)
            if edge.target not in node_ids:
                raise UnresolvedNodeReferenceError(edge.target, edge_id=edge.id)


class WorkflowDocument(WorkflowGraph):
    """The persisted workflow record: metadata plus the graph."""
    workflow_name: str = Field(DEFAULT_WORKFLOW_NAME, alias="workflowName")
    workflow_description: str = Field("", alias="workflowDescription")

    def to_graph(self) -> WorkflowGraph:
        return WorkflowGraph(nodes=self.nodes, edges=self.edges)


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value
