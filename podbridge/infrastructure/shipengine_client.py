"""ShipEngine rates client.

Quotes a shipping rate for a parcel sent from the POD warehouse.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import httpx
import structlog

from podbridge.infrastructure.config import settings

logger = structlog.get_logger()

GRAMS_TO_OUNCES = Decimal("0.03527396195")


class ShipEngineClientError(Exception):
    """Error from a ShipEngine API call."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass
class ShippingRate:
    """A single carrier quote."""

    service_type: str
    amount: Decimal
    currency: str

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "ShippingRate":
        """Create from API response data."""
        shipping_amount = data.get("shipping_amount") or {}
        return cls(
            service_type=data.get("service_type", ""),
            amount=Decimal(str(shipping_amount.get("amount", 0))),
            currency=shipping_amount.get("currency", "usd"),
        )


def grams_to_ounces(grams: int | float | Decimal) -> Decimal:
    """Convert grams to ounces."""
    return Decimal(str(grams)) * GRAMS_TO_OUNCES


def select_rate(rates: list[ShippingRate], preferred_service: str | None = None) -> ShippingRate | None:
    """Pick the preferred service if quoted, otherwise the cheapest rate."""
    if not rates:
        return None
    preferred_service = preferred_service or settings.shipengine_preferred_service
    for rate in rates:
        if rate.service_type == preferred_service:
            return rate
    return min(rates, key=lambda r: r.amount)


def ship_from_address() -> dict[str, str]:
    """Warehouse address in ShipEngine format."""
    return {
        "name": settings.ship_from_name,
        "phone": settings.ship_from_phone,
        "company_name": settings.ship_from_company,
        "address_line1": settings.ship_from_address,
        "city_locality": settings.ship_from_city,
        "state_province": settings.ship_from_state,
        "postal_code": settings.ship_from_postal_code,
        "country_code": settings.ship_from_country,
    }


class ShipEngineClient:
    """HTTP client for the ShipEngine rates API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.shipengine_api_key
        self.base_url = base_url or settings.shipengine_url
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    "API-Key": self.api_key,
                    "Content-Type": "application/json",
                },
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_rates(self, ship_to: dict[str, Any], weight_ounces: Decimal) -> list[ShippingRate]:
        """Quote rates for a parcel.

        Args:
            ship_to: Destination in ShipEngine address format.
            weight_ounces: Parcel weight in ounces.

        Returns:
            Every quoted rate.

        Raises:
            ShipEngineClientError: On transport errors or non-2xx responses.
        """
        payload = {
            "rate_options": {"carrier_ids": list(settings.shipengine_carrier_ids)},
            "shipment": {
                "validate_address": "no_validation",
                "ship_to": ship_to,
                "ship_from": ship_from_address(),
                "packages": [{"weight": {"value": float(weight_ounces), "unit": "ounce"}}],
            },
        }

        try:
            client = await self._get_client()
            response = await client.post("/rates", json=payload)
        except httpx.RequestError as e:
            logger.error("ShipEngine request failed", error=str(e))
            raise ShipEngineClientError(f"Request failed: {e}") from e

        if response.status_code >= 300:
            raise ShipEngineClientError(
                f"Rate request failed: {response.text}", response.status_code
            )

        body = response.json()
        rate_response = body.get("rate_response") or {}
        return [ShippingRate.from_api_response(r) for r in rate_response.get("rates", [])]

    async def quote(self, ship_to: dict[str, Any], weight_grams: int | float) -> Decimal:
        """Quote the rate to charge for a parcel.

        Returns:
            The selected rate amount.

        Raises:
            ShipEngineClientError: If the request fails or no rate is quoted.
        """
        rates = await self.get_rates(ship_to, grams_to_ounces(weight_grams))
        rate = select_rate(rates)
        if rate is None:
            raise ShipEngineClientError("No rates returned")
        logger.debug("Shipping rate selected", service=rate.service_type, amount=str(rate.amount))
        return rate.amount


_shipengine_client: ShipEngineClient | None = None


def get_shipengine_client() -> ShipEngineClient:
    """Get the shared ShipEngine client.

    Returns:
        ShipEngineClient instance.
    """
    global _shipengine_client
    if _shipengine_client is None:
        _shipengine_client = ShipEngineClient()
    return _shipengine_client


async def close_shipengine_client() -> None:
    """Close and drop the shared client."""
    global _shipengine_client
    if _shipengine_client is not None:
        await _shipengine_client.close()
        _shipengine_client = None
