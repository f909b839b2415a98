"""Role and company-ownership checks shared by the workflow services."""

from __future__ import annotations

import uuid

from src.exceptions import ForbiddenException
from src.models.enums import UserRole
from src.modules.tenancy.auth import AuthenticatedUser


def require_role(actor: AuthenticatedUser, *roles: UserRole, action: str = "perform this action") -> None:
    """Raise ForbiddenException unless the actor holds one of ``roles`` (admins always pass)."""
    if actor.is_admin or actor.role in roles:
        return
    raise ForbiddenException(
        f"Role '{actor.role.value}' is not allowed to {action}",
        details=[{"allowed_roles": sorted(r.value for r in roles)}],
    )


def require_company_member(
    actor: AuthenticatedUser,
    company_id: uuid.UUID,
    action: str = "access this resource",
) -> None:
    """Raise ForbiddenException unless the actor belongs to ``company_id`` or is an admin."""
    if actor.is_admin:
        return
    if actor.company_id is None or actor.company_id != company_id:
        raise ForbiddenException(f"Your company is not allowed to {action}")
