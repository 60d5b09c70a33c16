"""Domain layer - Entities, state machine, domain exceptions.

- **Entities**: Order, merchant, product and analytics documents
- **State Machine**: Order fulfillment progression (FulfillmentStatus)
- **Exceptions**: Domain-specific errors and invariant violations

Example usage:
    from podbridge.domain import FulfillmentStatus, OrderRecord

    record = OrderRecord.from_document(doc)
    record.transition_to(FulfillmentStatus.BILLING, reason="capacity reached")
"""

# Entities
from podbridge.domain.entities import (
    Address,
    AnalyticsAggregate,
    AnalyticsOrderEntry,
    Customer,
    LineItem,
    MerchantOrder,
    MerchantRecord,
    OrderRecord,
    PodLineItem,
    ProductRecord,
    StatusChange,
    VariantMapping,
    color_sku_code,
    to_decimal,
)

# Exceptions
from podbridge.domain.exceptions import (
    DomainError,
    InvalidStateTransitionError,
    MerchantNotFoundError,
    OrderError,
    OrderNotCancellableError,
    OrderNotFoundError,
    ProductMappingError,
)

# State Machines
from podbridge.domain.state_machines import (
    FulfillmentStatus,
    validate_fulfillment_transition,
)

__all__ = [
    # Entities
    "Address",
    "AnalyticsAggregate",
    "AnalyticsOrderEntry",
    "Customer",
    "LineItem",
    "MerchantOrder",
    "MerchantRecord",
    "OrderRecord",
    "PodLineItem",
    "ProductRecord",
    "StatusChange",
    "VariantMapping",
    "color_sku_code",
    "to_decimal",
    # Exceptions
    "DomainError",
    "InvalidStateTransitionError",
    "MerchantNotFoundError",
    "OrderError",
    "OrderNotCancellableError",
    "OrderNotFoundError",
    "ProductMappingError",
    # State Machines
    "FulfillmentStatus",
    "validate_fulfillment_transition",
]
