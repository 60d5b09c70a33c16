"""State machine for order fulfillment.

Defines the valid transitions of an order record as it moves through
billing, POD dispatch and fulfillment.
"""

from enum import Enum

from podbridge.domain.exceptions import InvalidStateTransitionError


# ============================================================================
# Fulfillment State Machine
# ============================================================================


class FulfillmentStatus(str, Enum):
    """Order fulfillment lifecycle states.

    State diagram:
        DEACTIVE ──────────────────┬────────────────────► CANCELLED
          │        │               │                        ▲
          │        │ blocked       │                        │
          │        ▼               │                        │
          │      BILLING ──────────┼────────────────────────┤
          │        │  (re-checked) │                        │
          │ pod    │ pod order     │                        │
          ▼        ▼               │                        │
        PENDING ───────────────────┴────────────────────────┘
          │
          │ shipped with a resolved fulfillment
          ▼
        ACTIVE
    """

    DEACTIVE = "DEACTIVE"
    BILLING = "BILLING"
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"

    def can_transition_to(self, target: "FulfillmentStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _FULFILLMENT_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["FulfillmentStatus"]:
        """Get list of valid target states.

        Returns:
            List of states that can be transitioned to.
        """
        return list(_FULFILLMENT_TRANSITIONS.get(self, set()))

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state.

        Returns:
            True if no further transitions are possible.
        """
        return len(_FULFILLMENT_TRANSITIONS.get(self, set())) == 0

    def is_cancellable(self) -> bool:
        """Check if the order can still be cancelled."""
        return FulfillmentStatus.CANCELLED in _FULFILLMENT_TRANSITIONS.get(self, set())

    def is_dispatchable(self) -> bool:
        """Check if the order may be (re)submitted to the POD partner."""
        return self in {FulfillmentStatus.DEACTIVE, FulfillmentStatus.BILLING}


# Fulfillment state transitions
_FULFILLMENT_TRANSITIONS: dict[FulfillmentStatus, set[FulfillmentStatus]] = {
    FulfillmentStatus.DEACTIVE: {
        FulfillmentStatus.BILLING,
        FulfillmentStatus.PENDING,
        FulfillmentStatus.CANCELLED,
    },
    FulfillmentStatus.BILLING: {
        FulfillmentStatus.BILLING,  # usage gate re-evaluated and still blocked
        FulfillmentStatus.PENDING,
        FulfillmentStatus.CANCELLED,
    },
    FulfillmentStatus.PENDING: {FulfillmentStatus.ACTIVE, FulfillmentStatus.CANCELLED},
    FulfillmentStatus.ACTIVE: set(),  # Terminal state
    FulfillmentStatus.CANCELLED: set(),  # Terminal state
}


# ============================================================================
# State Machine Helpers
# ============================================================================


def validate_fulfillment_transition(
    order_id: str,
    current_status: FulfillmentStatus,
    target_status: FulfillmentStatus,
) -> None:
    """Validate and raise if a fulfillment state transition is invalid.

    Args:
        order_id: Order identifier for error message.
        current_status: Current fulfillment status.
        target_status: Target fulfillment status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="Order",
            entity_id=order_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )
