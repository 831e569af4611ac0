import logging
import uuid
from typing import Any, List, Optional

from pydantic import ValidationError as PydanticValidationError

from agent_studio.core.config import get_settings

from .codegen import compile_workflow
from .errors import (
    DuplicateNodeError,
    EdgeNotFoundError,
    InvalidNodeFieldError,
    NodeNotFoundError,
)
from .node_factory import create_node
from .propagation import propagate_input_message, resync_runner_inputs
from .schema import (
    NodeKind,
    NodePosition,
    WorkflowDocument,
    WorkflowEdge,
    WorkflowNode,
)
from .validation import ConnectionResult, ValidationIssue, validate_connection, validate_workflow

logger = logging.getLogger(__name__)

# Structural fields that must not change through a field edit.
_IMMUTABLE_FIELDS = {"id", "node_type", "nodeType"}


def generate_edge_id(source_id: str, target_id: str) -> str:
    return f"edge-{source_id}-{target_id}-{uuid.uuid4().hex[:8]}"


class WorkflowStore:
    """
    Owns one workflow document and applies editor mutations to it.

    Edges only enter the graph through ``propose_edge``, which asks the
    connection validator first. Every edge-set change and every Input message
    edit re-runs runner input propagation, so the derived runner inputs heal
    after structural edits.
    """

    def __init__(self, document: Optional[WorkflowDocument] = None):
        if document is None:
            document = WorkflowDocument(workflow_name=get_settings().workflow_default_name)
        self._document = document
        self._document.check_references()

    @property
    def document(self) -> WorkflowDocument:
        return self._document

    @property
    def nodes(self) -> List[WorkflowNode]:
        return self._document.nodes

    @property
    def edges(self) -> List[WorkflowEdge]:
        return self._document.edges

    def get_node(self, node_id: str) -> WorkflowNode:
        node = self._document.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(f"Node {node_id} not found")
        return node

    def _replace(self, **update: Any) -> None:
        self._document = self._document.model_copy(update=update)

    def _resync(self) -> None:
        self._document = resync_runner_inputs(self._document)

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def set_workflow_name(self, name: str) -> None:
        self._replace(workflow_name=name)

    def set_workflow_description(self, description: str) -> None:
        self._replace(workflow_description=description)

    def load(self, document: WorkflowDocument) -> None:
        """Replace the whole workflow with a loaded record."""
        document.check_references()
        self._document = document
        self._resync()
        logger.info(
            f"Loaded workflow '{document.workflow_name}' "
            f"({len(document.nodes)} nodes, {len(document.edges)} edges)"
        )

    def to_document(self, **dump_kwargs: Any) -> dict:
        """Serialize to the persisted record layout (editor aliases)."""
        return self._document.model_dump(by_alias=True, mode="json", **dump_kwargs)

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    def add_node(self, node: WorkflowNode) -> WorkflowNode:
        if self._document.get_node(node.id) is not None:
            raise DuplicateNodeError(f"Node {node.id} already exists")
        self._replace(nodes=self._document.nodes + [node])
        return node

    def add_node_of_kind(
        self,
        kind: NodeKind,
        node_id: Optional[str] = None,
        position: Optional[NodePosition] = None,
    ) -> WorkflowNode:
        return self.add_node(create_node(kind, node_id=node_id, position=position, graph=self._document))

    def remove_node(self, node_id: str) -> None:
        """Remove a node together with every edge touching it."""
        self.get_node(node_id)
        nodes = [n for n in self._document.nodes if n.id != node_id]
        edges = [e for e in self._document.edges if e.source != node_id and e.target != node_id]
        removed = len(self._document.edges) - len(edges)
        self._replace(nodes=nodes, edges=edges)
        self._resync()
        logger.info(f"Removed node {node_id} and {removed} connected edges")

    def toggle_node_expansion(self, node_id: str) -> None:
        node = self.get_node(node_id)
        self._replace_node(node, node.data.model_copy(update={"is_expanded": not node.data.is_expanded}))

    def set_node_field(self, node_id: str, field: str, value: Any) -> WorkflowNode:
        """
        Edit one payload field, by python name or editor alias.

        Editing an Input's message goes through propagation so the runners
        downstream follow it. A Runner's input is derived from its Input node
        and is refused here.
        """
        node = self.get_node(node_id)
        if field in _IMMUTABLE_FIELDS:
            raise InvalidNodeFieldError(f"Field '{field}' cannot be changed")

        field_name = self._resolve_field(node, field)
        if node.type == NodeKind.RUNNER and field_name == "input":
            raise InvalidNodeFieldError(
                f"Runner {node_id} input follows its upstream Input node and cannot be edited"
            )

        payload = node.data.model_dump(by_alias=False)
        payload[field_name] = value
        try:
            data = type(node.data).model_validate(payload)
        except PydanticValidationError as e:
            raise InvalidNodeFieldError(f"Invalid value for '{field}' on node {node_id}: {e}") from e

        if node.type == NodeKind.INPUT and field_name == "message":
            self.set_input_message(node_id, data.message)
            return self.get_node(node_id)
        return self._replace_node(node, data)

    def set_input_message(self, input_id: str, message: str) -> None:
        node = self.get_node(input_id)
        if node.type != NodeKind.INPUT:
            raise InvalidNodeFieldError(f"Node {input_id} is not an input node")
        if not isinstance(message, str):
            raise InvalidNodeFieldError(f"Input {input_id} message must be a string")
        self._document = propagate_input_message(input_id, message, self._document)

    def _resolve_field(self, node: WorkflowNode, field: str) -> str:
        fields = type(node.data).model_fields
        if field in fields:
            return field
        for name, info in fields.items():
            if info.alias == field:
                return name
        raise InvalidNodeFieldError(f"Unknown field '{field}' for {node.type.value} node")

    def _replace_node(self, node: WorkflowNode, data: Any) -> WorkflowNode:
        updated = node.model_copy(update={"data": data})
        self._replace(nodes=[updated if n.id == node.id else n for n in self._document.nodes])
        return updated

    # -------------------------------------------------------------------------
    # Edges
    # -------------------------------------------------------------------------

    def propose_edge(self, source_id: str, target_id: str, edge_id: Optional[str] = None) -> ConnectionResult:
        """Validate source -> target and add the edge when it is legal."""
        source = self.get_node(source_id)
        target = self.get_node(target_id)

        result = validate_connection(source, target, self._document.edges)
        if not result.ok:
            return result

        edge = WorkflowEdge(id=edge_id or generate_edge_id(source_id, target_id), source=source_id, target=target_id)
        self._replace(edges=self._document.edges + [edge])
        self._resync()
        logger.info(f"Connected {source.type.value} {source_id} -> {target.type.value} {target_id}")
        return result

    def remove_edge(self, edge_id: str) -> None:
        edges = [e for e in self._document.edges if e.id != edge_id]
        if len(edges) == len(self._document.edges):
            raise EdgeNotFoundError(f"Edge {edge_id} not found")
        self._replace(edges=edges)
        self._resync()

    # -------------------------------------------------------------------------
    # Compilation
    # -------------------------------------------------------------------------

    def validate(self) -> List[ValidationIssue]:
        return validate_workflow(self._document)

    def compile(self) -> str:
        return compile_workflow(self._document)
