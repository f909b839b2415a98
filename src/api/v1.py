"""Centralized v1 API router including every workflow router."""

from fastapi import APIRouter

from src.modules.bid.router import router as bid_router
from src.modules.negotiation.router import router as negotiation_router
from src.modules.purchase_order.router import router as purchase_order_router
from src.modules.rfq.router import router as rfq_router
from src.schemas.responses import ErrorResponse

# Documented on every workflow endpoint; bodies use the shared error envelope
WORKFLOW_ERROR_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Missing or invalid bearer token"},
    403: {"model": ErrorResponse, "description": "Role or company not allowed"},
    404: {"model": ErrorResponse, "description": "Entity not found"},
    409: {"model": ErrorResponse, "description": "Invalid transition or conflict"},
    422: {"model": ErrorResponse, "description": "Validation or precondition failed"},
}

v1_router = APIRouter(prefix="/api/v1", responses=WORKFLOW_ERROR_RESPONSES)
v1_router.include_router(rfq_router)
v1_router.include_router(bid_router)
v1_router.include_router(negotiation_router)
v1_router.include_router(purchase_order_router)
