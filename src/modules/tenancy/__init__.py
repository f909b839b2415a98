"""Caller identity: JWT decoding and company-scoped permission checks."""

from src.modules.tenancy.auth import AuthenticatedUser, get_current_user, system_actor
from src.modules.tenancy.permissions import require_company_member, require_role

__all__ = [
    "AuthenticatedUser",
    "get_current_user",
    "system_actor",
    "require_company_member",
    "require_role",
]
