"""Payment endpoints."""

from fastapi import APIRouter, status

from coursereg.api.dependencies import EngineDep
from coursereg.api.models import (
    APIResponse,
    PaymentCreate,
    PaymentResponse,
    RefundRequest,
    SettleRequest,
    payment_to_response,
)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "",
    response_model=APIResponse[PaymentResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_payment(request: PaymentCreate, engine: EngineDep) -> APIResponse[PaymentResponse]:
    """Open a pending payment for registrations."""
    payment = engine.create_payment_batch(
        request.student_id, request.registration_ids, request.method
    )
    return APIResponse(data=payment_to_response(payment))


@router.get("/{payment_id}", response_model=APIResponse[PaymentResponse])
def get_payment(payment_id: int, engine: EngineDep) -> APIResponse[PaymentResponse]:
    """Get a payment by ID."""
    payment = engine.get_payment(payment_id)
    return APIResponse(data=payment_to_response(payment))


@router.post("/{payment_id}/settle", response_model=APIResponse[PaymentResponse])
def settle_payment(
    payment_id: int, request: SettleRequest, engine: EngineDep
) -> APIResponse[PaymentResponse]:
    """Record the processor outcome of a pending payment."""
    payment = engine.settle_payment(payment_id, request.outcome, request.failure_reason)
    return APIResponse(data=payment_to_response(payment))


@router.post(
    "/{payment_id}/refund",
    response_model=APIResponse[PaymentResponse],
    status_code=status.HTTP_201_CREATED,
)
def refund_payment(
    payment_id: int, request: RefundRequest, engine: EngineDep
) -> APIResponse[PaymentResponse]:
    """Refund a completed payment. Returns the refund row."""
    refund = engine.refund_payment(payment_id, request.reason)
    return APIResponse(data=payment_to_response(refund))


@router.post("/{payment_id}/cancel", response_model=APIResponse[PaymentResponse])
def cancel_payment(payment_id: int, engine: EngineDep) -> APIResponse[PaymentResponse]:
    """Cancel a pending payment."""
    payment = engine.cancel_payment_batch(payment_id)
    return APIResponse(data=payment_to_response(payment))
