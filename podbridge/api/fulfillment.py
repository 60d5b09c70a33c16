"""Fulfillment service callback endpoints.

Provides:
- POST /fulfillment/fulfillment_order_notification - a merchant store sent
  a fulfillment or cancellation request to our fulfillment service
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from podbridge.api.schemas import (
    ErrorResponse,
    FulfillmentOrderNotification,
    FulfillmentOrderNotificationResponse,
)
from podbridge.application.dispatch_service import DispatchService, get_dispatch_service

router = APIRouter(prefix="/fulfillment", tags=["Fulfillment"])


def get_service(request: Request) -> DispatchService:
    """Get dispatch service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_dispatch_service(request_id=request_id)


@router.post(
    "/fulfillment_order_notification",
    response_model=FulfillmentOrderNotificationResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Fulfillment order notification",
    description="Accept the pending fulfillment or cancellation request of an order.",
)
async def fulfillment_order_notification(
    notification: FulfillmentOrderNotification,
    service: Annotated[DispatchService, Depends(get_service)],
) -> FulfillmentOrderNotificationResponse:
    """Resolve the fulfillment order a merchant store notified us about.

    Raises:
        MerchantNotFoundError: If the shop is not installed.
    """
    resolution = await service.handle_fulfillment_order_notification(
        shop=notification.shop,
        order_id=notification.order_id,
        location_id=notification.location_id,
    )
    return FulfillmentOrderNotificationResponse(
        fulfillment_id=resolution.fulfillment_id,
        request_status=resolution.request_status,
        action=resolution.action,
    )
