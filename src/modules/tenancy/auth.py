"""JWT authentication dependency for FastAPI.

Validates Bearer tokens from the Authorization header and turns the claims
into an ``AuthenticatedUser`` that the workflow services use as the actor.
"""

import logging
import uuid
from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from src.config import settings
from src.exceptions import UnauthorizedException
from src.models.enums import UserRole

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

# Actor used by scheduled jobs (auto-close); acts with admin rights
SYSTEM_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000000")


@dataclass
class AuthenticatedUser:
    """The caller of a workflow operation."""

    id: uuid.UUID
    email: str
    role: UserRole
    company_id: uuid.UUID | None = None
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_buyer(self) -> bool:
        return self.role == UserRole.BUYER

    @property
    def is_supplier(self) -> bool:
        return self.role == UserRole.SUPPLIER

    @property
    def is_system(self) -> bool:
        return self.id == SYSTEM_USER_ID


def system_actor() -> AuthenticatedUser:
    return AuthenticatedUser(
        id=SYSTEM_USER_ID,
        email="system@procureflow.local",
        role=UserRole.ADMIN,
        name="System",
    )


def _decode_token(token: str) -> dict:
    """Decode and validate a JWT token. Raises UnauthorizedException on failure."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as exc:
        logger.warning("JWT validation failed: %s", exc)
        raise UnauthorizedException("Invalid or expired token") from exc


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthenticatedUser:
    """FastAPI dependency that extracts and validates the current user from JWT."""
    if credentials is None:
        raise UnauthorizedException("Authentication required")

    payload = _decode_token(credentials.credentials)

    try:
        company_claim = payload.get("company_id")
        user = AuthenticatedUser(
            id=uuid.UUID(payload["sub"]),
            email=payload["email"],
            role=UserRole(str(payload["role"]).lower()),
            company_id=uuid.UUID(company_claim) if company_claim else None,
            name=payload.get("name"),
        )
    except (KeyError, ValueError) as exc:
        raise UnauthorizedException("Token is missing required claims") from exc

    request.state.user = user
    return user
