"""Helpers shared by the workflow routers."""

from __future__ import annotations

import enum
from typing import TypeVar

from src.exceptions import ValidationException
from src.modules.workflow.state_machine import AvailableTransition, StatusMachine
from src.schemas.responses import (
    ActionResponse,
    AvailableTransitionSchema,
    TransitionsResponse,
)

S = TypeVar("S", bound=enum.Enum)


def parse_status(status_cls: type[S], value: str) -> S:
    """Convert a request's ``target_status`` into the workflow enum."""
    try:
        return status_cls(value.lower())
    except ValueError as exc:
        allowed = ", ".join(member.value for member in status_cls)
        raise ValidationException(
            f"Unknown status '{value}'",
            details=[{"field": "target_status", "message": f"must be one of: {allowed}"}],
        ) from exc


def _schemas(transitions: list[AvailableTransition]) -> list[AvailableTransitionSchema]:
    return [AvailableTransitionSchema(**t.as_dict()) for t in transitions]


def transitions_response(
    entity_id, status: enum.Enum, machine: StatusMachine, transitions: list[AvailableTransition]
) -> TransitionsResponse:
    return TransitionsResponse(
        entity_id=str(entity_id),
        current_status=status.value,
        current_status_label=machine.label(status),
        available_transitions=_schemas(transitions),
    )


def action_response(
    message: str,
    status: enum.Enum,
    machine: StatusMachine,
    role,
    data: dict | None = None,
) -> ActionResponse:
    """Build the envelope with the new status and what the caller can do next."""
    return ActionResponse(
        success=True,
        message=message,
        data=data,
        new_status=status.value,
        available_transitions=_schemas(machine.available_transitions(status, role)),
    )
