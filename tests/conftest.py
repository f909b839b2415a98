"""Shared fixtures for the ProcureFlow workflow tests."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.enums import UserRole
from src.modules.tenancy.auth import AuthenticatedUser


@pytest.fixture
def mock_db():
    """Create a mock AsyncSession."""
    session = AsyncMock()
    session.add = MagicMock()
    session.delete = AsyncMock()
    session.flush = AsyncMock()
    session.get = AsyncMock()
    return session


def make_user(role=UserRole.BUYER, company_id=None, user_id=None, name=None):
    return AuthenticatedUser(
        id=user_id or uuid.uuid4(),
        email=f"{role.value}@example.com",
        role=role,
        company_id=company_id,
        name=name or role.value.title(),
    )


@pytest.fixture
def buyer_company_id():
    return uuid.uuid4()


@pytest.fixture
def supplier_company_id():
    return uuid.uuid4()


@pytest.fixture
def buyer(buyer_company_id):
    return make_user(UserRole.BUYER, buyer_company_id)


@pytest.fixture
def supplier(supplier_company_id):
    return make_user(UserRole.SUPPLIER, supplier_company_id)


@pytest.fixture
def admin():
    return make_user(UserRole.ADMIN)

