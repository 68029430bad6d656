"""Unit tests for the delivery status state machine."""
import pytest
from emailflow.db.models.delivery import (
    DeliveryStatus,
    EmailDelivery,
    STATUS_RANK,
    can_transition,
    make_active_key,
)

S = DeliveryStatus


class TestCanTransition:
    """Tests for can_transition."""

    @pytest.mark.parametrize("current,target", [
        (S.QUEUED, S.SENT),
        (S.SENT, S.DELIVERED),
        (S.SENT, S.OPENED),
        (S.DELIVERED, S.OPENED),
        (S.OPENED, S.CLICKED),
        (S.DELIVERED, S.CLICKED),
    ])
    def test_forward_progression_allowed(self, current, target):
        """Progression statuses may move forward, skipping steps."""
        assert can_transition(current, target) is True

    @pytest.mark.parametrize("current,target", [
        (S.CLICKED, S.DELIVERED),
        (S.CLICKED, S.OPENED),
        (S.OPENED, S.DELIVERED),
        (S.DELIVERED, S.SENT),
    ])
    def test_backward_progression_rejected(self, current, target):
        """A late event never lowers the rank."""
        assert can_transition(current, target) is False

    def test_same_status_allowed(self):
        """Re-applying the current status is a no-op transition."""
        for status in S:
            assert can_transition(status, status) is True

    @pytest.mark.parametrize("terminal", [S.BOUNCED, S.COMPLAINED, S.FAILED])
    def test_terminal_accepts_nothing_else(self, terminal):
        """Terminal records accept no other status."""
        for target in S:
            if target != terminal:
                assert can_transition(terminal, target) is False

    def test_bounce_only_before_delivery(self):
        """Bounced applies only from queued or sent."""
        assert can_transition(S.QUEUED, S.BOUNCED) is True
        assert can_transition(S.SENT, S.BOUNCED) is True
        assert can_transition(S.DELIVERED, S.BOUNCED) is False
        assert can_transition(S.CLICKED, S.BOUNCED) is False

    def test_complaint_from_sent_onward(self):
        """Complained applies from sent or any later progression status."""
        assert can_transition(S.QUEUED, S.COMPLAINED) is False
        for current in (S.SENT, S.DELIVERED, S.OPENED, S.CLICKED):
            assert can_transition(current, S.COMPLAINED) is True

    def test_rank_order(self):
        """Progression ranks follow queued < sent < delivered < opened < clicked."""
        ordered = [S.QUEUED, S.SENT, S.DELIVERED, S.OPENED, S.CLICKED]
        assert [STATUS_RANK[s] for s in ordered] == sorted(STATUS_RANK[s] for s in ordered)


class TestEmailDelivery:
    """Tests for EmailDelivery helpers."""

    def test_active_key_format(self):
        """Active key joins email and contact ids."""
        assert make_active_key(3, 17) == "3:17"

    def test_mark_failed_releases_pair(self):
        """Failing a delivery clears its active key."""
        delivery = EmailDelivery(email_id=1, contact_id=2, status=S.QUEUED, active_key="1:2")
        delivery.mark_failed("boom")
        assert delivery.status == S.FAILED
        assert delivery.error_message == "boom"
        assert delivery.active_key is None
