"""Application services (use cases)."""

from podbridge.application.analytics_service import AnalyticsService
from podbridge.application.billing_service import UsageDecision, UsageGate, calculate_total_cost
from podbridge.application.completion_service import (
    CompletionResult,
    CompletionService,
    get_completion_service,
)
from podbridge.application.dispatch_service import (
    DispatchOutcome,
    DispatchResult,
    DispatchService,
    get_dispatch_service,
)
from podbridge.application.intake_service import IntakeResult, IntakeService, get_intake_service
from podbridge.application.merchant_service import MerchantService, get_merchant_service
from podbridge.application.order_service import (
    DeleteOrdersResult,
    OrderPage,
    OrderService,
    get_order_service,
)

__all__ = [
    "AnalyticsService",
    "CompletionResult",
    "CompletionService",
    "DeleteOrdersResult",
    "DispatchOutcome",
    "DispatchResult",
    "DispatchService",
    "IntakeResult",
    "IntakeService",
    "MerchantService",
    "OrderPage",
    "OrderService",
    "UsageDecision",
    "UsageGate",
    "calculate_total_cost",
    "get_completion_service",
    "get_dispatch_service",
    "get_intake_service",
    "get_merchant_service",
    "get_order_service",
]
