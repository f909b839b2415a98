"""Tests for the workflow routers: wiring, helpers and the HTTP error envelope."""

import logging
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.exc import IntegrityError

from src.api.v1 import v1_router
from src.app import create_app
from src.config import settings
from src.database.session import get_db
from src.exceptions import ForbiddenException, InvalidTransitionException, ValidationException
from src.middleware.request_id import RequestIdFilter, request_id_ctx
from src.models.enums import RfqStatus, UserRole
from src.modules.bid.router import router as bid_router
from src.modules.negotiation.router import router as negotiation_router
from src.modules.purchase_order.router import router as purchase_order_router
from src.modules.rfq.constants import RFQ_MACHINE
from src.modules.rfq.router import router as rfq_router
from src.modules.tenancy.auth import get_current_user
from src.modules.workflow.actions import action_response, parse_status, transitions_response


def _paths(router):
    return {r.path for r in router.routes}


def _methods(router, path):
    methods = set()
    for route in router.routes:
        if route.path == path:
            methods |= route.methods
    return methods


class TestRfqRouterPaths:
    def test_crud_paths(self):
        paths = _paths(rfq_router)
        assert "/rfqs/" in paths
        assert "/rfqs/{rfq_id}" in paths
        assert "/rfqs/{rfq_id}/items" in paths
        assert "/rfqs/{rfq_id}/invitations" in paths

    def test_workflow_paths(self):
        paths = _paths(rfq_router)
        for action in (
            "transitions",
            "history",
            "transition",
            "force-transition",
            "publish",
            "open-bidding",
            "close-bidding",
            "start-evaluation",
            "award",
            "complete",
            "cancel",
            "reopen",
        ):
            assert f"/rfqs/{{rfq_id}}/{action}" in paths

    def test_methods(self):
        assert _methods(rfq_router, "/rfqs/") == {"GET", "POST"}
        assert _methods(rfq_router, "/rfqs/{rfq_id}") == {"GET", "PATCH", "DELETE"}
        assert _methods(rfq_router, "/rfqs/{rfq_id}/invitations") == {"GET", "POST"}
        assert _methods(rfq_router, "/rfqs/{rfq_id}/transitions") == {"GET"}
        assert _methods(rfq_router, "/rfqs/{rfq_id}/award") == {"POST"}


class TestBidRouterPaths:
    def test_paths(self):
        paths = _paths(bid_router)
        assert "/rfqs/{rfq_id}/bids" in paths
        assert "/bids/{bid_id}" in paths
        for action in (
            "transitions",
            "transition",
            "submit",
            "evaluate",
            "review",
            "award",
            "reject",
            "withdraw",
        ):
            assert f"/bids/{{bid_id}}/{action}" in paths

    def test_methods(self):
        assert _methods(bid_router, "/rfqs/{rfq_id}/bids") == {"GET", "POST"}
        assert _methods(bid_router, "/bids/{bid_id}") == {"GET", "PATCH", "DELETE"}
        assert _methods(bid_router, "/bids/{bid_id}/withdraw") == {"POST"}


class TestNegotiationRouterPaths:
    def test_paths(self):
        paths = _paths(negotiation_router)
        assert "/negotiations/" in paths
        assert "/negotiations/{negotiation_id}" in paths
        for action in (
            "messages",
            "counter-offer",
            "accept",
            "reject",
            "withdraw",
            "read",
            "close",
            "cancel",
        ):
            assert f"/negotiations/{{negotiation_id}}/{action}" in paths

    def test_methods(self):
        assert _methods(negotiation_router, "/negotiations/{negotiation_id}/messages") == {
            "GET",
            "POST",
        }
        assert _methods(negotiation_router, "/negotiations/{negotiation_id}/accept") == {"POST"}


class TestPurchaseOrderRouterPaths:
    def test_paths(self):
        paths = _paths(purchase_order_router)
        assert "/purchase-orders/from-bid" in paths
        assert "/purchase-orders/from-negotiation" in paths
        assert "/purchase-orders/" in paths
        assert "/purchase-orders/{po_id}" in paths
        for action in (
            "history",
            "transitions",
            "transition",
            "force-transition",
            "submit-for-approval",
            "approve",
            "reject",
            "send",
            "acknowledge",
            "start",
            "deliver",
            "complete",
            "cancel",
            "modifications",
        ):
            assert f"/purchase-orders/{{po_id}}/{action}" in paths

    def test_modification_paths(self):
        paths = _paths(purchase_order_router)
        base = "/purchase-orders/{po_id}/modifications/{modification_id}"
        assert f"{base}/approve" in paths
        assert f"{base}/reject" in paths
        assert _methods(purchase_order_router, "/purchase-orders/{po_id}/modifications") == {
            "GET",
            "POST",
        }


def test_v1_router_includes_every_module():
    paths = _paths(v1_router)
    assert "/api/v1/rfqs/" in paths
    assert "/api/v1/bids/{bid_id}" in paths
    assert "/api/v1/negotiations/" in paths
    assert "/api/v1/purchase-orders/from-bid" in paths


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestActionHelpers:
    def test_parse_status_is_case_insensitive(self):
        assert parse_status(RfqStatus, "PUBLISHED") == RfqStatus.PUBLISHED
        assert parse_status(RfqStatus, "bidding_open") == RfqStatus.BIDDING_OPEN

    def test_parse_status_unknown(self):
        with pytest.raises(ValidationException, match="Unknown status 'shipped'"):
            parse_status(RfqStatus, "shipped")

    def test_action_response_lists_next_steps(self):
        response = action_response(
            "RFQ published", RfqStatus.PUBLISHED, RFQ_MACHINE, UserRole.BUYER, data={"x": 1}
        )

        assert response.success is True
        assert response.new_status == "published"
        assert response.data == {"x": 1}
        statuses = {t.status for t in response.available_transitions}
        assert "bidding_open" in statuses
        assert "cancelled" in statuses
        assert not any(t.is_override for t in response.available_transitions)

    def test_transitions_response(self):
        rfq_id = uuid.uuid4()
        transitions = RFQ_MACHINE.available_transitions(RfqStatus.DRAFT, UserRole.BUYER)

        response = transitions_response(rfq_id, RfqStatus.DRAFT, RFQ_MACHINE, transitions)

        assert response.entity_id == str(rfq_id)
        assert response.current_status == "draft"
        assert response.current_status_label == RFQ_MACHINE.label(RfqStatus.DRAFT)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


def _make_rfq(status):
    rfq = MagicMock()
    rfq.id = uuid.uuid4()
    rfq.reference_number = "RFQ-2026-0001"
    rfq.status = status
    return rfq


@pytest.fixture
def client(buyer):
    application = create_app()

    async def _db():
        yield MagicMock()

    application.dependency_overrides[get_db] = _db
    application.dependency_overrides[get_current_user] = lambda: buyer
    return TestClient(application)


class TestRfqEndpoints:
    @patch("src.modules.rfq.router.RfqService")
    def test_transition_returns_action_envelope(self, mock_service_cls, client):
        rfq = _make_rfq(RfqStatus.BIDDING_OPEN)
        mock_service_cls.return_value.transition = AsyncMock(return_value=rfq)

        response = client.post(
            f"/api/v1/rfqs/{rfq.id}/transition", json={"target_status": "BIDDING_OPEN"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["new_status"] == "bidding_open"
        assert body["data"]["reference_number"] == "RFQ-2026-0001"
        target = mock_service_cls.return_value.transition.call_args.args[1]
        assert target == RfqStatus.BIDDING_OPEN

    def test_unknown_status_is_a_validation_error(self, client):
        response = client.post(
            f"/api/v1/rfqs/{uuid.uuid4()}/transition", json={"target_status": "shipped"}
        )

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"][0]["field"] == "target_status"

    @patch("src.modules.rfq.router.RfqService")
    def test_invalid_transition_maps_to_409(self, mock_service_cls, client):
        mock_service_cls.return_value.transition = AsyncMock(
            side_effect=InvalidTransitionException(
                "draft", "awarded", allowed=["published"], entity="RFQ"
            )
        )

        response = client.post(
            f"/api/v1/rfqs/{uuid.uuid4()}/transition",
            json={"target_status": "awarded"},
            headers={"X-Request-ID": "req-1"},
        )

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["requestId"] == "req-1"
        assert error["details"][0]["allowed"] == ["published"]
        assert response.headers["X-Request-ID"] == "req-1"

    @patch("src.modules.rfq.router.RfqService")
    def test_unique_violation_maps_to_conflict(self, mock_service_cls, client):
        mock_service_cls.return_value.transition = AsyncMock(
            side_effect=IntegrityError("INSERT", {}, Exception("duplicate key"))
        )

        response = client.post(
            f"/api/v1/rfqs/{uuid.uuid4()}/transition", json={"target_status": "published"}
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"


class TestScopedReads:
    @pytest.mark.parametrize(
        ("service_path", "method", "url"),
        [
            ("src.modules.rfq.router.RfqService", "get_rfq", "/api/v1/rfqs/{id}"),
            ("src.modules.rfq.router.RfqService", "list_invitations", "/api/v1/rfqs/{id}/invitations"),
            ("src.modules.rfq.router.RfqService", "get_status_history", "/api/v1/rfqs/{id}/history"),
            ("src.modules.bid.router.BidService", "get_bid", "/api/v1/bids/{id}"),
            (
                "src.modules.purchase_order.router.PurchaseOrderService",
                "get_purchase_order",
                "/api/v1/purchase-orders/{id}",
            ),
            (
                "src.modules.purchase_order.router.PurchaseOrderService",
                "get_status_history",
                "/api/v1/purchase-orders/{id}/history",
            ),
            (
                "src.modules.purchase_order.router.ModificationService",
                "list_modifications",
                "/api/v1/purchase-orders/{id}/modifications",
            ),
        ],
    )
    def test_third_party_gets_403(self, client, buyer, service_path, method, url):
        entity_id = uuid.uuid4()
        with patch(service_path) as mock_service_cls:
            setattr(
                mock_service_cls.return_value,
                method,
                AsyncMock(side_effect=ForbiddenException("Your company is not allowed")),
            )
            response = client.get(url.format(id=entity_id))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"
        call = getattr(mock_service_cls.return_value, method).call_args
        assert call.args[:2] == (entity_id, buyer)


class TestAuthentication:
    def _client(self):
        application = create_app()

        async def _db():
            yield MagicMock()

        application.dependency_overrides[get_db] = _db
        return TestClient(application)

    def test_missing_token_is_unauthorized(self):
        response = self._client().get(f"/api/v1/rfqs/{uuid.uuid4()}/transitions")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    @patch("src.modules.rfq.router.RfqService")
    def test_bearer_token_resolves_user(self, mock_service_cls):
        rfq = _make_rfq(RfqStatus.DRAFT)
        user_id = uuid.uuid4()
        transitions = RFQ_MACHINE.available_transitions(RfqStatus.DRAFT, UserRole.BUYER)
        mock_service_cls.return_value.get_available_transitions = AsyncMock(
            return_value=(rfq, transitions)
        )
        token = jwt.encode(
            {
                "sub": str(user_id),
                "email": "buyer@example.com",
                "role": "BUYER",
                "company_id": str(uuid.uuid4()),
            },
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )

        response = self._client().get(
            f"/api/v1/rfqs/{rfq.id}/transitions",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 200
        assert response.json()["current_status"] == "draft"
        user = mock_service_cls.return_value.get_available_transitions.call_args.args[1]
        assert user.id == user_id
        assert user.role == UserRole.BUYER


def test_health_echoes_request_id(client):
    response = client.get("/health")
    assert response.json()["status"] == "ok"
    assert response.headers["X-Request-ID"]


def test_request_id_filter_tags_records():
    token = request_id_ctx.set("abc123")
    try:
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        assert RequestIdFilter().filter(record) is True
        assert record.request_id == "abc123"
    finally:
        request_id_ctx.reset(token)
