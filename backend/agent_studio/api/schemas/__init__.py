from .workflows import (
    CompileWorkflowResponse,
    ValidateWorkflowResponse,
    ConnectionCheckRequest,
    InputMessageRequest,
    NodeCatalogResponse,
)

__all__ = [
    "CompileWorkflowResponse",
    "ValidateWorkflowResponse",
    "ConnectionCheckRequest",
    "InputMessageRequest",
    "NodeCatalogResponse",
]
