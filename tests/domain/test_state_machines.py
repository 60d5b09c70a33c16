"""Tests for the fulfillment state machine."""

import pytest

from podbridge.domain import FulfillmentStatus
from podbridge.domain.exceptions import InvalidStateTransitionError
from podbridge.domain.state_machines import validate_fulfillment_transition


class TestFulfillmentStatus:
    """Tests for FulfillmentStatus state machine."""

    def test_deactive_can_be_billed_or_dispatched(self) -> None:
        """DEACTIVE can move to BILLING or PENDING."""
        assert FulfillmentStatus.DEACTIVE.can_transition_to(FulfillmentStatus.BILLING)
        assert FulfillmentStatus.DEACTIVE.can_transition_to(FulfillmentStatus.PENDING)

    def test_deactive_cannot_skip_to_active(self) -> None:
        """DEACTIVE cannot transition directly to ACTIVE."""
        assert not FulfillmentStatus.DEACTIVE.can_transition_to(FulfillmentStatus.ACTIVE)

    def test_billing_is_not_terminal(self) -> None:
        """BILLING can be re-evaluated into PENDING."""
        assert not FulfillmentStatus.BILLING.is_terminal()
        assert FulfillmentStatus.BILLING.can_transition_to(FulfillmentStatus.PENDING)
        assert FulfillmentStatus.BILLING.can_transition_to(FulfillmentStatus.BILLING)

    def test_pending_completes_or_cancels(self) -> None:
        """PENDING can become ACTIVE or CANCELLED."""
        assert FulfillmentStatus.PENDING.can_transition_to(FulfillmentStatus.ACTIVE)
        assert FulfillmentStatus.PENDING.can_transition_to(FulfillmentStatus.CANCELLED)
        assert not FulfillmentStatus.PENDING.can_transition_to(FulfillmentStatus.BILLING)

    def test_active_and_cancelled_are_terminal(self) -> None:
        """ACTIVE and CANCELLED are terminal states."""
        assert FulfillmentStatus.ACTIVE.is_terminal()
        assert FulfillmentStatus.CANCELLED.is_terminal()
        assert FulfillmentStatus.ACTIVE.allowed_transitions() == []

    def test_cancellable_states(self) -> None:
        """Every non-terminal state can be cancelled."""
        assert FulfillmentStatus.DEACTIVE.is_cancellable()
        assert FulfillmentStatus.BILLING.is_cancellable()
        assert FulfillmentStatus.PENDING.is_cancellable()
        assert not FulfillmentStatus.ACTIVE.is_cancellable()
        assert not FulfillmentStatus.CANCELLED.is_cancellable()

    def test_dispatchable_states(self) -> None:
        """Only DEACTIVE and BILLING orders may be dispatched."""
        assert FulfillmentStatus.DEACTIVE.is_dispatchable()
        assert FulfillmentStatus.BILLING.is_dispatchable()
        assert not FulfillmentStatus.PENDING.is_dispatchable()
        assert not FulfillmentStatus.ACTIVE.is_dispatchable()


class TestValidateFulfillmentTransition:
    """Tests for validate_fulfillment_transition."""

    def test_valid_transition_passes(self) -> None:
        validate_fulfillment_transition("1001", FulfillmentStatus.PENDING, FulfillmentStatus.ACTIVE)

    def test_invalid_transition_raises(self) -> None:
        """Invalid transition raises with the allowed targets."""
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            validate_fulfillment_transition(
                "1001", FulfillmentStatus.ACTIVE, FulfillmentStatus.PENDING
            )

        error = exc_info.value
        assert error.details["entity_id"] == "1001"
        assert error.details["current_state"] == "ACTIVE"
        assert error.details["target_state"] == "PENDING"
        assert error.details["allowed_transitions"] == []
