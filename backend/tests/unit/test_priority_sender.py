"""Unit tests for the priority sender and per-contact dispatch."""
from datetime import datetime, timedelta
from types import SimpleNamespace
import pytest
from emailflow.services import sending
from emailflow.services.pipelines import priority_sender
from emailflow.core.exceptions import InvalidEmailError
from emailflow.db.models.delivery import DeliveryStatus, EmailDelivery
from emailflow.db.models.email import EmailType
from emailflow.db.models.error_log import ErrorLog
from emailflow.db.models.job_run import JobRun, JobStatus
from emailflow.services.adapters.messaging.mock import MockMessagingAdapter
from emailflow.services.pipelines.priority_sender import (
    priority_tag,
    run_priority_sender,
    select_priority_emails,
)
from emailflow.services.sending import claim_delivery, contacts_with_tag, send_email_to_tag

NOW = datetime(2024, 6, 1, 12, 0, 0)


class ExplodingAdapter(MockMessagingAdapter):
    """Raises for selected contacts."""

    def __init__(self, explode_for):
        super().__init__()
        self.explode_for = set(explode_for)

    def send_email(self, contact_id, subject, body_html, body_text=None):
        if contact_id in self.explode_for:
            raise RuntimeError("connection reset")
        return super().send_email(contact_id, subject, body_html, body_text)


@pytest.fixture
def sleeps(monkeypatch):
    """Record inter-send sleeps instead of waiting."""
    calls = []
    fake_time = SimpleNamespace(sleep=calls.append)
    monkeypatch.setattr(priority_sender, "time", fake_time)
    monkeypatch.setattr(sending, "time", fake_time)
    return calls


def _live_deliveries(db_session, email):
    return db_session.query(EmailDelivery).filter(
        EmailDelivery.email_id == email.email_id,
        EmailDelivery.status != DeliveryStatus.FAILED
    ).all()


class TestSelectPriorityEmails:
    """Tests for priority email selection."""

    def test_window_rules(self, db_session, make_email):
        """Future start or past end excludes; missing bounds are open."""
        open_ended = make_email()
        in_window = make_email(start_date=NOW - timedelta(days=1), end_date=NOW + timedelta(days=1))
        make_email(start_date=NOW + timedelta(minutes=1))
        make_email(end_date=NOW - timedelta(minutes=1))

        selected = select_priority_emails(db_session, NOW)
        assert [e.email_id for e in selected] == [open_ended.email_id, in_window.email_id]

    def test_requires_content_type_and_active(self, db_session, make_email):
        """Only active priority emails with subject and body are selected."""
        make_email(subject="")
        make_email(body_html=None)
        make_email(type=EmailType.TEMPLATE)
        make_email(is_active=False)
        ok = make_email()

        assert [e.email_id for e in select_priority_emails(db_session, NOW)] == [ok.email_id]


class TestContactsWithTag:
    """Tests for tag audience lookup."""

    def test_exact_tag_match(self, db_session, make_contact):
        tagged = make_contact(tags=["priority_email_1", "vip"])
        make_contact(tags=["priority_email_10"])
        make_contact(tags=["priorityXemail_1"])
        make_contact(tags=[])

        assert [c.contact_id for c in contacts_with_tag(db_session, "priority_email_1")] == [tagged.contact_id]


class TestRunPrioritySender:
    """Tests for run_priority_sender."""

    def test_sends_to_tagged_contacts(self, db_session, make_email, make_contact):
        email = make_email()
        tag = priority_tag(email.email_id)
        alice = make_contact(tags=[tag], name="Alice")
        make_contact(tags=["other"])
        adapter = MockMessagingAdapter()

        counters = run_priority_sender(db_session, adapter, now=NOW, send_delay=0)

        assert counters == {"emails_processed": 1, "sent": 1, "skipped": 0, "errors": 0}
        assert len(adapter.sent_emails) == 1
        sent = adapter.sent_emails[0]
        assert sent["contact_id"] == alice.ghl_id
        assert sent["subject"] == "Hello Alice"
        assert sent["body_text"] == "Hi Alice"

        delivery = db_session.query(EmailDelivery).one()
        assert delivery.status == DeliveryStatus.SENT
        assert delivery.ghl_message_id == sent["message_id"]
        assert delivery.sent_at is not None

    def test_running_twice_sends_once(self, db_session, make_email, make_contact):
        """A second run finds every pair claimed and sends nothing."""
        email = make_email()
        tag = priority_tag(email.email_id)
        for _ in range(3):
            make_contact(tags=[tag])
        adapter = MockMessagingAdapter()

        first = run_priority_sender(db_session, adapter, now=NOW, send_delay=0)
        second = run_priority_sender(db_session, adapter, now=NOW, send_delay=0)

        assert first["sent"] == 3
        assert second["sent"] == 0
        assert second["skipped"] == 3
        assert len(adapter.sent_emails) == 3
        assert len(_live_deliveries(db_session, email)) == 3

    def test_contact_without_ghl_id_skipped(self, db_session, make_email, make_contact):
        email = make_email()
        make_contact(tags=[priority_tag(email.email_id)], ghl_id=None)
        adapter = MockMessagingAdapter()

        counters = run_priority_sender(db_session, adapter, now=NOW, send_delay=0)

        assert counters["skipped"] == 1
        assert adapter.sent_emails == []
        assert db_session.query(EmailDelivery).count() == 0

    def test_send_failure_marks_failed_and_continues(self, db_session, make_email, make_contact):
        email = make_email()
        tag = priority_tag(email.email_id)
        bad = make_contact(tags=[tag])
        good = make_contact(tags=[tag])
        adapter = MockMessagingAdapter(fail_for=[bad.ghl_id])

        counters = run_priority_sender(db_session, adapter, now=NOW, send_delay=0)

        assert counters["sent"] == 1
        assert counters["errors"] == 1
        failed = db_session.query(EmailDelivery).filter(EmailDelivery.contact_id == bad.contact_id).one()
        assert failed.status == DeliveryStatus.FAILED
        assert failed.error_message == "Mock send failure"
        assert failed.active_key is None
        sent = db_session.query(EmailDelivery).filter(EmailDelivery.contact_id == good.contact_id).one()
        assert sent.status == DeliveryStatus.SENT

    def test_missing_message_id_is_failure(self, db_session, make_email, make_contact):
        email = make_email()
        contact = make_contact(tags=[priority_tag(email.email_id)])
        adapter = MockMessagingAdapter(omit_message_id_for=[contact.ghl_id])

        counters = run_priority_sender(db_session, adapter, now=NOW, send_delay=0)

        assert counters["errors"] == 1
        delivery = db_session.query(EmailDelivery).one()
        assert delivery.status == DeliveryStatus.FAILED
        assert delivery.ghl_message_id is None

    def test_failed_delivery_allows_resend(self, db_session, make_email, make_contact):
        email = make_email()
        contact = make_contact(tags=[priority_tag(email.email_id)])

        run_priority_sender(db_session, MockMessagingAdapter(fail_for=[contact.ghl_id]), now=NOW, send_delay=0)
        counters = run_priority_sender(db_session, MockMessagingAdapter(), now=NOW, send_delay=0)

        assert counters["sent"] == 1
        statuses = sorted(d.status.value for d in db_session.query(EmailDelivery).all())
        assert statuses == ["failed", "sent"]

    def test_adapter_exception_recorded_and_continues(self, db_session, make_email, make_contact):
        email = make_email()
        tag = priority_tag(email.email_id)
        boom = make_contact(tags=[tag])
        fine = make_contact(tags=[tag])
        adapter = ExplodingAdapter(explode_for=[boom.ghl_id])

        counters = run_priority_sender(db_session, adapter, now=NOW, send_delay=0)

        assert counters["errors"] == 1
        assert counters["sent"] == 1
        assert [s["contact_id"] for s in adapter.sent_emails] == [fine.ghl_id]
        failed = db_session.query(EmailDelivery).filter(EmailDelivery.contact_id == boom.contact_id).one()
        assert failed.status == DeliveryStatus.FAILED
        error = db_session.query(ErrorLog).one()
        assert error.context == "priority_sender"
        assert error.error_message == "connection reset"
        assert error.payload == {"email_id": email.email_id, "contact_id": boom.contact_id}
        assert "RuntimeError" in error.stack_trace

    def test_records_job_run(self, db_session, make_email, make_contact):
        email = make_email()
        make_contact(tags=[priority_tag(email.email_id)])

        run_priority_sender(db_session, MockMessagingAdapter(), now=NOW, send_delay=0, triggered_by="tester")

        run = db_session.query(JobRun).one()
        assert run.pipeline_name == "priority_sender"
        assert run.status == JobStatus.COMPLETED
        assert run.triggered_by == "tester"
        assert run.counters["sent"] == 1
        assert run.ended_at >= run.started_at

    def test_no_emails(self, db_session):
        counters = run_priority_sender(db_session, MockMessagingAdapter(), now=NOW, send_delay=0)
        assert counters == {"emails_processed": 0, "sent": 0, "skipped": 0, "errors": 0}


class TestClaimDelivery:
    """Tests for the (email, contact) claim."""

    def test_queued_record_is_reused(self, db_session, make_email, make_contact):
        """An interrupted send left in queued is resumed, not duplicated."""
        email = make_email()
        contact = make_contact()
        first = claim_delivery(db_session, email, contact)
        second = claim_delivery(db_session, email, contact)

        assert second is not None
        assert second.delivery_id == first.delivery_id
        assert db_session.query(EmailDelivery).count() == 1

    def test_sent_record_blocks_claim(self, db_session, make_email, make_contact, make_delivery):
        email = make_email()
        contact = make_contact()
        make_delivery(email, contact, status=DeliveryStatus.OPENED)

        assert claim_delivery(db_session, email, contact) is None

    def test_queued_leftover_is_sent_by_next_run(self, db_session, make_email, make_contact):
        email = make_email()
        contact = make_contact(tags=[priority_tag(email.email_id)])
        claim_delivery(db_session, email, contact)
        adapter = MockMessagingAdapter()

        counters = run_priority_sender(db_session, adapter, now=NOW, send_delay=0)

        assert counters["sent"] == 1
        delivery = db_session.query(EmailDelivery).one()
        assert delivery.status == DeliveryStatus.SENT


class TestSendEmailToTag:
    """Tests for manual tag sends."""

    def test_sends_variant_content(self, db_session, make_email, make_variant, make_contact):
        email = make_email(type=EmailType.EXPERIMENT)
        variant = make_variant(email, "B", subject="Variant subject for {{name}}")
        contact = make_contact(tags=["launch"], name="Bob")
        make_contact(tags=["launch"], ghl_id=None)
        adapter = MockMessagingAdapter()

        result = send_email_to_tag(db_session, adapter, email, "launch", variant=variant, send_delay=0)

        assert result["sent"] == 1
        assert result["skipped"] == 1
        assert result["failed"] == 0
        assert adapter.sent_emails[0]["subject"] == "Variant subject for Bob"
        delivery = db_session.query(EmailDelivery).one()
        assert delivery.variant_id == variant.variant_id
        assert delivery.contact_id == contact.contact_id

    def test_rejects_email_without_content(self, db_session, make_email):
        email = make_email(subject=None)
        with pytest.raises(InvalidEmailError):
            send_email_to_tag(db_session, MockMessagingAdapter(), email, "launch", send_delay=0)


class TestSendDelay:
    """The configured delay follows every attempted send and no skip."""

    def _contacts(self, email, tag, make_contact, make_delivery):
        sent = make_contact(tags=[tag])
        failing = make_contact(tags=[tag])
        make_contact(tags=[tag], ghl_id=None)
        already = make_contact(tags=[tag])
        make_delivery(email, already, status=DeliveryStatus.SENT)
        return sent, failing

    def test_priority_sender_sleeps_after_attempts_only(self, db_session, make_email, make_contact, make_delivery, sleeps):
        email = make_email()
        sent, failing = self._contacts(email, priority_tag(email.email_id), make_contact, make_delivery)
        adapter = MockMessagingAdapter(fail_for=[failing.ghl_id])

        counters = run_priority_sender(db_session, adapter, now=NOW, send_delay=0.2)

        assert counters == {"emails_processed": 1, "sent": 1, "skipped": 2, "errors": 1}
        assert sleeps == [0.2, 0.2]

    def test_adapter_exception_still_sleeps(self, db_session, make_email, make_contact, sleeps):
        email = make_email()
        contact = make_contact(tags=[priority_tag(email.email_id)])

        run_priority_sender(db_session, ExplodingAdapter([contact.ghl_id]), now=NOW, send_delay=0.2)

        assert sleeps == [0.2]

    def test_zero_delay_never_sleeps(self, db_session, make_email, make_contact, sleeps):
        email = make_email()
        make_contact(tags=[priority_tag(email.email_id)])

        run_priority_sender(db_session, MockMessagingAdapter(), now=NOW, send_delay=0)

        assert sleeps == []

    def test_tag_send_sleeps_after_attempts_only(self, db_session, make_email, make_contact, make_delivery, sleeps):
        email = make_email()
        sent, failing = self._contacts(email, "launch", make_contact, make_delivery)
        adapter = MockMessagingAdapter(fail_for=[failing.ghl_id])

        result = send_email_to_tag(db_session, adapter, email, "launch", send_delay=0.5)

        assert (result["sent"], result["skipped"], result["failed"]) == (1, 2, 1)
        assert sleeps == [0.5, 0.5]
        skipped = sorted(r["reason"] for r in result["results"] if r["status"] == "skipped")
        assert skipped == ["already_sent", "missing_ghl_id"]
