import logging

from fastapi import APIRouter, HTTPException

from agent_studio.api.schemas.workflows import (
    CompileWorkflowResponse,
    ConnectionCheckRequest,
    InputMessageRequest,
    NodeCatalogResponse,
    ValidateWorkflowResponse,
)
from agent_studio.workflow.errors import (
    InvalidNodeFieldError,
    NodeNotFoundError,
    UnresolvedNodeReferenceError,
    WorkflowError,
)
from agent_studio.workflow.node_factory import node_catalog
from agent_studio.workflow.schema import WorkflowDocument
from agent_studio.workflow.store import WorkflowStore
from agent_studio.workflow.validation import ConnectionResult, validate_connection, validate_workflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["workflows"])


def handle_workflow_error(e: WorkflowError):
    """Map workflow errors to HTTP responses."""
    if isinstance(e, UnresolvedNodeReferenceError):
        raise HTTPException(status_code=422, detail=e.message)
    if isinstance(e, NodeNotFoundError):
        raise HTTPException(status_code=404, detail=e.message)
    if isinstance(e, InvalidNodeFieldError):
        raise HTTPException(status_code=400, detail=e.message)
    raise HTTPException(status_code=500, detail=e.message)


# =============================================================================
# Catalog Endpoint
# =============================================================================

@router.get("/node-kinds", response_model=NodeCatalogResponse)
def list_node_kinds():
    """Default payload for every node kind, for the builder palette."""
    return NodeCatalogResponse(kinds=node_catalog())


# =============================================================================
# Compilation & Validation
# =============================================================================

@router.post("/compile", response_model=CompileWorkflowResponse)
def compile_workflow_endpoint(workflow: WorkflowDocument):
    """Generate the Python program for a workflow."""
    try:
        code = WorkflowStore(workflow).compile()
    except WorkflowError as e:
        handle_workflow_error(e)
    return CompileWorkflowResponse(code=code)


@router.post("/validate", response_model=ValidateWorkflowResponse)
def validate_workflow_endpoint(workflow: WorkflowDocument):
    """Check a workflow against the structural rules."""
    issues = validate_workflow(workflow)
    return ValidateWorkflowResponse(valid=not issues, errors=issues)


@router.post("/connections/validate", response_model=ConnectionResult)
def validate_connection_endpoint(request: ConnectionCheckRequest):
    """Check whether a new edge may be added, without adding it."""
    try:
        store = WorkflowStore(request.workflow)
        source = store.get_node(request.source)
        target = store.get_node(request.target)
    except WorkflowError as e:
        handle_workflow_error(e)
    return validate_connection(source, target, store.edges)


# =============================================================================
# Field Edits
# =============================================================================

@router.post("/input-message", response_model=WorkflowDocument)
def set_input_message_endpoint(request: InputMessageRequest):
    """Set an Input node's message and sync every downstream Runner input."""
    try:
        store = WorkflowStore(request.workflow)
        store.set_input_message(request.input_id, request.message)
    except WorkflowError as e:
        handle_workflow_error(e)
    logger.info(f"Updated input {request.input_id} message")
    return store.document
