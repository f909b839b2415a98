"""Shared error envelope and workflow action schemas."""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """A field-level error, or transition context (current/requested/allowed)."""

    field: str | None = None
    message: str | None = None
    current_status: str | None = None
    requested_status: str | None = None
    allowed: list[str] | None = None


class ErrorBody(BaseModel):
    """Structured error body returned inside every error response."""

    code: str
    message: str
    details: list[ErrorDetail] = []
    request_id: str = Field(alias="requestId")

    model_config = {"populate_by_name": True}


class ErrorResponse(BaseModel):
    """Top-level error envelope."""

    error: ErrorBody


class AvailableTransitionSchema(BaseModel):
    """A status the caller may move the entity to next."""

    status: str
    label: str
    description: str | None = None
    is_override: bool = False


class TransitionRequest(BaseModel):
    """Body of ``POST /{id}/transition`` and ``POST /{id}/force-transition``."""

    target_status: str = Field(..., min_length=1)
    metadata: dict = Field(default_factory=dict)


class TransitionsResponse(BaseModel):
    """Current status plus the transitions open to the caller."""

    entity_id: str
    current_status: str
    current_status_label: str
    available_transitions: list[AvailableTransitionSchema] = []


class ActionResponse(BaseModel):
    """Envelope returned by every state-changing workflow endpoint."""

    success: bool = True
    message: str
    data: dict | None = None
    new_status: str | None = None
    available_transitions: list[AvailableTransitionSchema] = []
