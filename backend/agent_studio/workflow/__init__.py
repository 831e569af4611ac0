from .schema import (
    WorkflowDocument,
    WorkflowGraph,
    WorkflowNode,
    WorkflowEdge,
    NodeKind,
    ValueType,
    ExecutionMode,
    GuardrailType,
    StructuredSchema,
)
from .errors import WorkflowError, UnresolvedNodeReferenceError
from .identifiers import generate_identifier
from .validation import ConnectionRejection, ConnectionResult, validate_connection, validate_workflow
from .propagation import propagate_input_message, resync_runner_inputs
from .codegen import generate_python_code, compile_workflow
from .store import WorkflowStore

__all__ = [
    "WorkflowDocument",
    "WorkflowGraph",
    "WorkflowNode",
    "WorkflowEdge",
    "NodeKind",
    "ValueType",
    "ExecutionMode",
    "GuardrailType",
    "StructuredSchema",
    "WorkflowError",
    "UnresolvedNodeReferenceError",
    "generate_identifier",
    "ConnectionRejection",
    "ConnectionResult",
    "validate_connection",
    "validate_workflow",
    "propagate_input_message",
    "resync_runner_inputs",
    "generate_python_code",
    "compile_workflow",
    "WorkflowStore",
]
