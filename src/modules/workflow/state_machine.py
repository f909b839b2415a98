"""Generic transition-table engine shared by the RFQ, bid and PO workflows.

A machine is a mapping ``from_status -> {to_status -> allowed roles}``. The
normal path (``check_transition``) only permits edges in the table. Admins
additionally have an explicit override path (``check_force_transition``) that
may move an entity to any other status; it is kept separate so the table can
be asserted exhaustive on its own.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Generic, TypeVar

from src.exceptions import ForbiddenException, InvalidTransitionException
from src.models.enums import UserRole

S = TypeVar("S", bound=enum.Enum)

OVERRIDE_SUFFIX = " (Admin Override)"


@dataclass(frozen=True)
class AvailableTransition:
    status: str
    label: str
    description: str | None = None
    is_override: bool = False

    def as_dict(self) -> dict:
        return {
            "status": self.status,
            "label": self.label,
            "description": self.description,
            "is_override": self.is_override,
        }


def _coerce_role(role: UserRole | str) -> UserRole:
    if isinstance(role, UserRole):
        return role
    return UserRole(str(role).lower())


class StatusMachine(Generic[S]):
    def __init__(
        self,
        entity: str,
        transitions: Mapping[S, Mapping[S, Iterable[UserRole]]],
        labels: Mapping[S, str] | None = None,
        descriptions: Mapping[S, str] | None = None,
        override_role: UserRole = UserRole.ADMIN,
    ) -> None:
        self.entity = entity
        self._transitions: dict[S, dict[S, frozenset[UserRole]]] = {
            source: {target: frozenset(roles) for target, roles in targets.items()}
            for source, targets in transitions.items()
        }
        self._labels = dict(labels or {})
        self._descriptions = dict(descriptions or {})
        self.override_role = override_role

        # Every status appearing as a target must also have a row
        self._states: list[S] = list(self._transitions)
        for targets in self._transitions.values():
            for target in targets:
                if target not in self._transitions:
                    self._transitions[target] = {}
                    self._states.append(target)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def states(self) -> list[S]:
        return list(self._states)

    def next_states(self, current: S) -> list[S]:
        return list(self._transitions.get(current, {}))

    def roles_for(self, current: S, target: S) -> frozenset[UserRole]:
        return self._transitions.get(current, {}).get(target, frozenset())

    def is_terminal(self, status: S) -> bool:
        return not self._transitions.get(status)

    def label(self, status: S) -> str:
        return self._labels.get(status) or status.value.replace("_", " ").title()

    def description(self, status: S) -> str | None:
        return self._descriptions.get(status)

    # ------------------------------------------------------------------
    # Normal path
    # ------------------------------------------------------------------

    def can_transition(self, current: S, target: S, role: UserRole | str) -> bool:
        """True when the table has ``current -> target`` and ``role`` may trigger it."""
        return _coerce_role(role) in self.roles_for(current, target)

    def check_transition(self, current: S, target: S, role: UserRole | str) -> None:
        """Raise unless ``current -> target`` is a legal edge for ``role``.

        InvalidTransitionException when the edge is missing, ForbiddenException
        when the edge exists but the role is not permitted to trigger it.
        """
        allowed = self.roles_for(current, target)
        if not allowed:
            raise InvalidTransitionException(
                current_status=current.value,
                requested_status=target.value,
                allowed=[s.value for s in self.next_states(current)],
                entity=self.entity,
            )
        if _coerce_role(role) not in allowed:
            raise ForbiddenException(
                f"Role '{_coerce_role(role).value}' may not move {self.entity} "
                f"from '{current.value}' to '{target.value}'",
                details=[{"allowed_roles": sorted(r.value for r in allowed)}],
            )

    # ------------------------------------------------------------------
    # Admin override path
    # ------------------------------------------------------------------

    def can_force_transition(self, current: S, target: S, role: UserRole | str) -> bool:
        return _coerce_role(role) == self.override_role and current != target

    def check_force_transition(self, current: S, target: S, role: UserRole | str) -> None:
        if _coerce_role(role) != self.override_role:
            raise ForbiddenException(
                f"Only {self.override_role.value} users may override the {self.entity} workflow"
            )
        if current == target:
            raise InvalidTransitionException(
                current_status=current.value,
                requested_status=target.value,
                allowed=[s.value for s in self._states if s != current],
                entity=self.entity,
            )

    # ------------------------------------------------------------------
    # UI helpers
    # ------------------------------------------------------------------

    def available_transitions(
        self,
        current: S,
        role: UserRole | str,
        include_overrides: bool = True,
    ) -> list[AvailableTransition]:
        """Targets the given role can reach from ``current``.

        Admin callers also see every other status as an override target.
        """
        role = _coerce_role(role)
        result = [
            AvailableTransition(
                status=target.value,
                label=self.label(target),
                description=self.description(target),
            )
            for target, roles in self._transitions.get(current, {}).items()
            if role in roles
        ]
        if include_overrides and role == self.override_role:
            listed = {t.status for t in result}
            for status in self._states:
                if status == current or status.value in listed:
                    continue
                result.append(
                    AvailableTransition(
                        status=status.value,
                        label=self.label(status) + OVERRIDE_SUFFIX,
                        description=self.description(status),
                        is_override=True,
                    )
                )
        return result
