"""Merchant API endpoints.

Provides endpoints for an installed merchant:
- GET /stores/{domain}/merchant - merchant document (without token)
- DELETE /stores/{domain}/merchant - remove the merchant on uninstall
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response, status

from podbridge.api.schemas import ErrorResponse
from podbridge.application.merchant_service import MerchantService, get_merchant_service

router = APIRouter(prefix="/stores/{domain}/merchant", tags=["Merchants"])


def get_service(request: Request) -> MerchantService:
    """Get merchant service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_merchant_service(request_id=request_id)


@router.get(
    "",
    response_model=dict[str, Any],
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Get merchant",
    description="Get the merchant document of an installed shop.",
)
async def get_merchant(
    domain: str,
    service: Annotated[MerchantService, Depends(get_service)],
) -> dict[str, Any]:
    """Get a merchant by ``myshopify_domain``.

    Raises:
        MerchantNotFoundError: If the shop is not installed.
    """
    merchant = await service.get_merchant(domain)
    return merchant.to_public_dict()


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Delete merchant",
    description="Remove the merchant document when the app is uninstalled.",
)
async def delete_merchant(
    domain: str,
    service: Annotated[MerchantService, Depends(get_service)],
) -> Response:
    await service.delete_merchant(domain)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
