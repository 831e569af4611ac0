from typing import Any, Dict, List

from pydantic import BaseModel, Field

from agent_studio.workflow.schema import WorkflowDocument
from agent_studio.workflow.validation import ValidationIssue


class CompileWorkflowResponse(BaseModel):
    code: str


class ValidateWorkflowResponse(BaseModel):
    valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)


class ConnectionCheckRequest(BaseModel):
    workflow: WorkflowDocument
    source: str
    target: str


class InputMessageRequest(BaseModel):
    workflow: WorkflowDocument
    input_id: str
    message: str


class NodeCatalogResponse(BaseModel):
    kinds: Dict[str, Dict[str, Any]]
