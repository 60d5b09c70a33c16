"""Document trigger endpoints.

Provides:
- POST /triggers/orders/created - an order record was created

The trigger runs billing and POD dispatch for the new record. Delivery is at
least once; dispatch is guarded by the record's ``pod_created`` flag.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from podbridge.api.schemas import ErrorResponse, EventResponse, OrderCreatedTrigger
from podbridge.application.dispatch_service import (
    DispatchOutcome,
    DispatchService,
    get_dispatch_service,
)

router = APIRouter(prefix="/triggers", tags=["Triggers"])


def get_service(request: Request) -> DispatchService:
    """Get dispatch service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_dispatch_service(request_id=request_id)


@router.post(
    "/orders/created",
    response_model=EventResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Order created trigger",
    description="Charge and dispatch a newly created order record.",
)
async def order_created(
    event: OrderCreatedTrigger,
    service: Annotated[DispatchService, Depends(get_service)],
) -> EventResponse:
    """Handle an order-created event.

    Blocked or failed dispatches are acknowledged; the record carries the
    outcome and a manual fulfill retries it.
    """
    result = await service.dispatch(event.domain, event.order_id)
    if result.outcome == DispatchOutcome.DISPATCHED:
        return EventResponse(status="processed", order_id=event.order_id)
    return EventResponse(
        status="skipped",
        reason=result.error_code or result.outcome.value.upper(),
        order_id=event.order_id,
    )
