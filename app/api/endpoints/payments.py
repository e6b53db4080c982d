# app/api/endpoints/payments.py
from fastapi import APIRouter, Query, Request

from app.api.models.capability import PaymentAttemptModel, PaymentLogResponse

router = APIRouter()


@router.get("/payments/recent", response_model=PaymentLogResponse)
async def recent_payments(
    request: Request,
    limit: int = Query(50, ge=1, le=500),
) -> PaymentLogResponse:
    """Most recent payment attempts, newest first."""
    attempts = request.app.state.payment_log.recent(limit)
    payments = [
        PaymentAttemptModel(
            timestamp=attempt.timestamp,
            attemptId=attempt.attempt_id,
            capability=attempt.capability,
            price=attempt.price,
            network=attempt.network,
            status=attempt.status.value,
            payer=attempt.payer,
            reference=attempt.reference,
            reason=attempt.reason,
        )
        for attempt in attempts
    ]
    return PaymentLogResponse(count=len(payments), payments=payments)
