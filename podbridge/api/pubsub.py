"""Pub/Sub push endpoints.

Provides:
- POST /pubsub/pod-order-complete - a merchant order was paid
- POST /pubsub/pod-fulfilled - the POD partner shipped an order
- POST /pubsub/shop-update - a merchant shop changed

Push subscriptions redeliver on any non-2xx response, so handled and skipped
events return 200 and unexpected failures return 500. Malformed messages are
acknowledged and logged; redelivering them cannot succeed.
"""

import base64
import binascii
import json
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status

from podbridge.api.schemas import ErrorResponse, EventResponse, PubSubEnvelope
from podbridge.application.completion_service import CompletionService, get_completion_service
from podbridge.application.dispatch_service import get_dispatch_service
from podbridge.application.intake_service import IntakeService, get_intake_service
from podbridge.application.merchant_service import MerchantService, get_merchant_service
from podbridge.infrastructure.config import settings

logger = structlog.get_logger()

router = APIRouter(prefix="/pubsub", tags=["Pub/Sub"])

TOPIC_ORDER_COMPLETE = "pod-order-complete"
TOPIC_FULFILLED = "pod-fulfilled"
TOPIC_SHOP_UPDATE = "shop-update"


# ============================================================================
# Dependencies
# ============================================================================


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def get_intake(request: Request) -> IntakeService:
    return get_intake_service(request_id=_request_id(request))


def get_completion(request: Request) -> CompletionService:
    return get_completion_service(request_id=_request_id(request))


def get_merchants(request: Request) -> MerchantService:
    return get_merchant_service(request_id=_request_id(request))


# ============================================================================
# Helpers
# ============================================================================


class MalformedMessageError(ValueError):
    """Raised when a push message does not carry a JSON object."""


def decode_message(envelope: PubSubEnvelope) -> dict[str, Any]:
    """Decode the base64 JSON payload of a push message.

    Raises:
        MalformedMessageError: If the data is not base64-encoded JSON object.
    """
    try:
        raw = base64.b64decode(envelope.message.data, validate=True)
        payload = json.loads(raw)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedMessageError(str(e)) from e
    if not isinstance(payload, dict):
        raise MalformedMessageError("payload is not a JSON object")
    return payload


async def dispatch_in_background(domain: str, order_id: str, request_id: str | None) -> None:
    """Dispatch a freshly taken-in order after the push is acknowledged."""
    result = await get_dispatch_service(request_id=request_id).dispatch(domain, order_id)
    logger.info(
        "Background dispatch finished",
        domain=domain,
        order_id=order_id,
        outcome=result.outcome.value,
        error_code=result.error_code,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "/{topic}",
    response_model=EventResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Receive Pub/Sub push",
    description="Handle a push delivery for one of the service's topics.",
)
async def receive_push(
    topic: str,
    envelope: PubSubEnvelope,
    request: Request,
    background_tasks: BackgroundTasks,
    intake: Annotated[IntakeService, Depends(get_intake)],
    completion: Annotated[CompletionService, Depends(get_completion)],
    merchants: Annotated[MerchantService, Depends(get_merchants)],
) -> EventResponse:
    """Route a push message to its handler.

    Raises:
        HTTPException: 404 for an unknown topic.
    """
    if topic not in (TOPIC_ORDER_COMPLETE, TOPIC_FULFILLED, TOPIC_SHOP_UPDATE):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error_code": "UNKNOWN_TOPIC", "message": f"Unknown topic: {topic}"},
        )

    log = logger.bind(topic=topic, message_id=envelope.message.message_id)

    try:
        payload = decode_message(envelope)
    except MalformedMessageError as e:
        log.warning("Malformed push message", error=str(e))
        return EventResponse(status="skipped", reason="MALFORMED_MESSAGE")

    if topic == TOPIC_ORDER_COMPLETE:
        result = await intake.intake(payload)
        if not result.success or result.record is None:
            return EventResponse(
                status="skipped",
                reason=result.error_code,
                order_id=str(payload.get("id") or "") or None,
            )
        if settings.dispatch_on_create:
            background_tasks.add_task(
                dispatch_in_background,
                result.record.domain,
                result.record.id,
                _request_id(request),
            )
        return EventResponse(status="processed", order_id=result.record.id)

    if topic == TOPIC_FULFILLED:
        result = await completion.complete(payload)
        order_id = result.record.id if result.record else None
        if not result.success:
            return EventResponse(status="skipped", reason=result.error_code, order_id=order_id)
        return EventResponse(status="processed", order_id=order_id)

    updated = await merchants.shop_update(payload)
    return EventResponse(
        status="processed" if updated else "skipped",
        reason=None if updated else "NO_CUSTOM_DOMAIN",
    )
