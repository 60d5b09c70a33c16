"""Merchant application service.

Merchant lookup, uninstall and shop-update handling.
"""

from typing import Any

import structlog

from podbridge.domain.entities import MerchantRecord
from podbridge.domain.exceptions import MerchantNotFoundError
from podbridge.infrastructure.repositories import MerchantRepository

logger = structlog.get_logger()


class MerchantService:
    """Application service for merchant documents."""

    def __init__(
        self,
        merchant_repo: MerchantRepository | None = None,
        request_id: str | None = None,
    ) -> None:
        self.merchant_repo = merchant_repo or MerchantRepository()
        self.request_id = request_id

    async def get_merchant(self, domain: str) -> MerchantRecord:
        """Get a merchant by ``myshopify_domain``.

        Raises:
            MerchantNotFoundError: If the merchant is not installed.
        """
        merchant = await self.merchant_repo.get(domain)
        if merchant is None:
            raise MerchantNotFoundError(domain)
        return merchant

    async def delete_merchant(self, domain: str) -> None:
        """Remove a merchant on uninstall.

        Raises:
            MerchantNotFoundError: If the merchant is not installed.
        """
        if not await self.merchant_repo.delete(domain):
            raise MerchantNotFoundError(domain)
        logger.info("Merchant deleted", domain=domain, request_id=self.request_id)

    async def shop_update(self, shop: dict[str, Any]) -> bool:
        """Handle a shop update from Shopify.

        When the shop's primary domain differs from its ``myshopify_domain``,
        records it as the custom domain and maps it so orders placed on the
        custom domain resolve to the merchant.

        Args:
            shop: Shopify shop payload.

        Returns:
            True if a custom domain was recorded.
        """
        myshopify_domain = shop.get("myshopify_domain") or ""
        domain = shop.get("domain") or ""
        if not myshopify_domain or not domain:
            logger.warning("Shop update without domains", shop_id=shop.get("id"))
            return False

        if myshopify_domain == domain:
            return False

        if not await self.merchant_repo.update(myshopify_domain, {"custom_domain": domain}):
            logger.warning("Shop update for unknown merchant", domain=myshopify_domain)
            return False

        await self.merchant_repo.map_domain(domain, myshopify_domain, custom_domain=domain)
        logger.info(
            "Custom domain mapped",
            domain=myshopify_domain,
            custom_domain=domain,
            request_id=self.request_id,
        )
        return True


def get_merchant_service(request_id: str | None = None) -> MerchantService:
    """Get merchant service instance.

    Args:
        request_id: Request ID for correlation.

    Returns:
        MerchantService instance.
    """
    return MerchantService(request_id=request_id)
