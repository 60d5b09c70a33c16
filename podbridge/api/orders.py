"""Store order API endpoints.

Provides the merchant dashboard's order endpoints:
- GET /stores/{domain}/orders - all orders, or one with ?id=
- POST /stores/{domain}/orders - create a wholesale order
- DELETE /stores/{domain}/orders - delete by ?id= or ?orders=a,b
- POST /stores/{domain}/orders/fulfill?id= - charge and fulfill by hand
- POST /stores/{domain}/orders/{id}/cancel - cancel an order
- GET /stores/{domain}/orders/next/{seconds} - older page
- GET /stores/{domain}/orders/previous/{seconds} - newer page
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from podbridge.api.schemas import (
    DeleteOrdersResponse,
    ErrorResponse,
    FulfillResponse,
    OrderCancelRequest,
    OrderListResponse,
    OrderPageResponse,
    WholesaleOrderRequest,
    public_order,
)
from podbridge.application.dispatch_service import DispatchOutcome
from podbridge.application.intake_service import IntakeService, get_intake_service
from podbridge.application.order_service import OrderPage, OrderService, get_order_service
from podbridge.domain.entities import Address
from podbridge.domain.exceptions import MerchantNotFoundError, ProductMappingError

router = APIRouter(prefix="/stores/{domain}/orders", tags=["Orders"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service(request: Request) -> OrderService:
    """Get order service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_order_service(request_id=request_id)


def get_intake(request: Request) -> IntakeService:
    """Get intake service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_intake_service(request_id=request_id)


# ============================================================================
# Converters
# ============================================================================


def page_to_response(page: OrderPage) -> OrderPageResponse:
    return OrderPageResponse(
        orders=[public_order(doc) for doc in page.orders],
        first_cursor=page.first_cursor,
        last_cursor=page.last_cursor,
    )


# Dispatch outcomes that fail the request, with their status codes
FULFILL_ERROR_STATUS = {
    DispatchOutcome.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    DispatchOutcome.NOT_DISPATCHABLE: status.HTTP_409_CONFLICT,
    DispatchOutcome.BILLING_BLOCKED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    DispatchOutcome.POD_ORDER_FAILED: status.HTTP_400_BAD_REQUEST,
}


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "",
    response_model=OrderListResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="List orders",
    description="Get all orders of a merchant, or a single order with ?id=.",
)
async def list_orders(
    domain: str,
    service: Annotated[OrderService, Depends(get_service)],
    order_id: str | None = Query(default=None, alias="id", description="Single order id"),
) -> OrderListResponse:
    """List a merchant's orders.

    Raises:
        OrderNotFoundError: If ``id`` is given and the order does not exist.
    """
    if order_id:
        doc = await service.get_order(domain, order_id)
        return OrderListResponse(orders=[public_order(doc)])

    docs = await service.list_orders(domain)
    return OrderListResponse(orders=[public_order(doc) for doc in docs])


@router.post(
    "",
    response_model=dict[str, Any],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Create wholesale order",
    description="Create an order of one product color shipped to a single recipient.",
)
async def create_wholesale_order(
    domain: str,
    request: WholesaleOrderRequest,
    intake: Annotated[IntakeService, Depends(get_intake)],
) -> dict[str, Any]:
    """Create a wholesale order.

    The order record is created in DEACTIVE; charging and dispatch follow
    from the order-created trigger or the fulfill endpoint.
    """
    try:
        record = await intake.create_wholesale(
            domain=domain,
            product_id=request.product_id,
            color=request.color,
            quantity=request.quantity,
            email=request.customer.email,
            address=Address.from_dict(request.customer.address.model_dump()),
        )
    except MerchantNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error_code": "MERCHANT_NOT_FOUND", "message": e.message},
        ) from e
    except ProductMappingError as e:
        product_missing = e.details.get("reason") == "product not found"
        raise HTTPException(
            status_code=(
                status.HTTP_400_BAD_REQUEST
                if product_missing
                else status.HTTP_422_UNPROCESSABLE_ENTITY
            ),
            detail={
                "error_code": "PRODUCT_NOT_FOUND" if product_missing else "VARIANT_NOT_MAPPED",
                "message": e.message,
            },
        ) from e

    return public_order(record.to_document())


@router.delete(
    "",
    response_model=DeleteOrdersResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
    },
    summary="Delete orders",
    description="Delete one order with ?id= or several with ?orders=a,b.",
)
async def delete_orders(
    domain: str,
    service: Annotated[OrderService, Depends(get_service)],
    order_id: str | None = Query(default=None, alias="id"),
    orders: str | None = Query(default=None, description="Comma-separated order ids"),
) -> DeleteOrdersResponse:
    ids = [i.strip() for i in (orders or "").split(",") if i.strip()]
    if order_id:
        ids.insert(0, order_id)
    if not ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error_code": "MISSING_ORDER_ID",
                "message": "Provide ?id= or ?orders=",
            },
        )

    result = await service.delete_orders(domain, ids)
    return DeleteOrdersResponse(deleted=result.deleted, missing=result.missing)


@router.post(
    "/fulfill",
    response_model=FulfillResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Charge and fulfill order",
    description="Run billing and POD dispatch for an order on demand.",
)
async def fulfill_order(
    domain: str,
    service: Annotated[OrderService, Depends(get_service)],
    order_id: str = Query(..., alias="id"),
) -> FulfillResponse:
    """Charge and fulfill an order.

    Returns 422 when the usage gate blocks the order and 400 when the POD
    order could not be created.
    """
    result = await service.charge_and_fulfill(domain, order_id)

    error_status = FULFILL_ERROR_STATUS.get(result.outcome)
    if error_status is not None:
        raise HTTPException(
            status_code=error_status,
            detail={
                "error_code": result.error_code or result.outcome.value.upper(),
                "message": result.error or "Order could not be fulfilled",
            },
        )

    return FulfillResponse(
        outcome=result.outcome.value,
        order=public_order(result.record.to_document()) if result.record else None,
        cost=str(result.decision.cost) if result.decision else None,
        fulfillment_action=result.resolution.action if result.resolution else None,
    )


@router.post(
    "/{order_id}/cancel",
    response_model=dict[str, Any],
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Cancel order",
    description="Cancel an order that is not yet ACTIVE or CANCELLED.",
)
async def cancel_order(
    domain: str,
    order_id: str,
    service: Annotated[OrderService, Depends(get_service)],
    request: OrderCancelRequest | None = None,
) -> dict[str, Any]:
    """Cancel an order.

    Raises:
        OrderNotFoundError: If the order does not exist.
        OrderNotCancellableError: If the order is already terminal.
    """
    reason = request.reason if request else "cancelled by merchant"
    record = await service.cancel_order(domain, order_id, reason=reason)
    return public_order(record.to_document())


@router.get(
    "/next/{last_item_seconds}",
    response_model=OrderPageResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Next page of orders",
    description="Orders created before the given unix time, newest first.",
)
async def next_orders(
    domain: str,
    last_item_seconds: float,
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderPageResponse:
    page = await service.next_page(domain, last_item_seconds)
    return page_to_response(page)


@router.get(
    "/previous/{first_item_seconds}",
    response_model=OrderPageResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Previous page of orders",
    description="Orders created after the given unix time, newest first.",
)
async def previous_orders(
    domain: str,
    first_item_seconds: float,
    service: Annotated[OrderService, Depends(get_service)],
) -> OrderPageResponse:
    page = await service.previous_page(domain, first_item_seconds)
    return page_to_response(page)
