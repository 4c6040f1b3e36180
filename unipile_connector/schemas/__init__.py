"""Pydantic request and response schemas."""

from unipile_connector.schemas.account import (
    AccountResponse,
    CheckpointResponse,
    ConnectLinkedInRequest,
    SolveCheckpointRequest,
    WaitForValidationRequest,
)

__all__ = [
    "AccountResponse",
    "CheckpointResponse",
    "ConnectLinkedInRequest",
    "SolveCheckpointRequest",
    "WaitForValidationRequest",
]
