import pytest
from datetime import timedelta

from models.delivery import DeliveryStatus, MISSING_CONTACT, PROVIDER_NOT_CONFIGURED
from models.queue_entry import QueueFilter, QueueStatus
from models.template import Channel
from models.workflow import StepDefinition
from conftest import T0, TENANT_ID
from utils.errors import ConflictError, NotFoundError


@pytest.fixture
def enrolled(services, add_client):
    """One client enrolled in a three-step sms workflow at T0 (0h, 24h, 48h)."""
    def _enroll(phone="+15550001", email=None, first_name="Sarah", last_name="Johnson", channel=Channel.SMS):
        client_id = add_client(first_name=first_name, last_name=last_name, phone=phone, email=email)
        workflow = services.workflows.create(TENANT_ID, f"Flow {client_id[:6]}", "manual", [
            StepDefinition(delay_hours=h, channel=channel, template_name=f"Step {h}") for h in (0, 24, 48)
        ])
        services.scheduler.enroll(TENANT_ID, client_id, workflow.id)
        return client_id
    return _enroll


def _first_ready(services):
    return services.queue.list_split(TENANT_ID, QueueFilter.READY)["ready"][0]


def test_read_filters_split_by_time(services, enrolled, clock):
    enrolled()
    clock.advance(hours=1)

    ready = services.queue.list_entries(TENANT_ID, QueueFilter.READY)
    upcoming = services.queue.list_entries(TENANT_ID, QueueFilter.UPCOMING)
    everything = services.queue.list_entries(TENANT_ID, QueueFilter.ALL)

    assert [i.template_name for i in ready] == ["Step 0"]
    assert [i.template_name for i in upcoming] == ["Step 24", "Step 48"]
    assert [i.scheduled_for for i in everything] == [T0, T0 + timedelta(hours=24), T0 + timedelta(hours=48)]


def test_read_default_is_all_pending_and_split(services, enrolled, clock):
    enrolled()
    clock.advance(hours=30)
    split = services.queue.list_split(TENANT_ID)
    assert len(split["ready"]) == 2
    assert len(split["upcoming"]) == 1
    item = split["ready"][0]
    assert item.client_name == "Sarah Johnson"
    assert item.client_initials == "SJ"


def test_read_display_fallbacks(services, enrolled):
    enrolled(first_name=None, last_name=None)
    item = services.queue.list_entries(TENANT_ID)[0]
    assert item.client_name == "Client"
    assert item.client_initials == "??"


def test_read_is_capped_at_page_size(services, enrolled):
    services.queue.page_size = 4
    enrolled()
    enrolled()
    assert len(services.queue.list_entries(TENANT_ID)) == 4


def test_send_delivers_and_logs(services, enrolled, sms_sender, backend, clock):
    client_id = enrolled()
    item = _first_ready(services)
    clock.advance(minutes=5)

    result = services.queue.send(TENANT_ID, item.id)

    assert result.sent is True
    assert result.status == QueueStatus.SENT
    assert sms_sender.sent == [{"to": "+15550001", "body": "Step 0", "subject": None}]
    row = next(r for r in backend.rows("workflow_queue") if r["id"] == item.id)
    assert row["status"] == "sent"
    assert row["acted_at"] == clock.now
    log = backend.rows("message_log")
    assert len(log) == 1
    assert log[0]["client_id"] == client_id
    assert log[0]["source"] == "workflow"
    assert log[0]["recipient_phone"] == "+15550001"


def test_send_email_uses_template_name_as_subject(services, enrolled, email_sender):
    enrolled(phone=None, email="sarah@example.com", channel=Channel.EMAIL)
    services.queue.send(TENANT_ID, _first_ready(services).id)
    assert email_sender.sent[0]["subject"] == "Step 0"


def test_send_without_contact_still_marks_sent(services, enrolled, sms_sender, backend):
    enrolled(phone=None)
    result = services.queue.send(TENANT_ID, _first_ready(services).id)

    assert result.status == QueueStatus.SENT
    assert result.sent is False
    assert result.outcome.status == DeliveryStatus.SKIPPED
    assert result.outcome.reason == MISSING_CONTACT
    assert sms_sender.sent == []
    assert backend.rows("message_log") == []


def test_send_provider_failure_still_marks_sent(services, enrolled, sms_sender, backend):
    enrolled()
    sms_sender.fail_for = {"+15550001"}
    result = services.queue.send(TENANT_ID, _first_ready(services).id)

    assert result.status == QueueStatus.SENT
    assert result.outcome.status == DeliveryStatus.FAILED
    assert "Simulated failure" in result.outcome.error
    assert backend.rows("message_log") == []


def test_send_unconfigured_provider_is_noop(services, enrolled, sms_sender):
    enrolled()
    sms_sender.configured = False
    result = services.queue.send(TENANT_ID, _first_ready(services).id)
    assert result.outcome.reason == PROVIDER_NOT_CONFIGURED
    assert result.status == QueueStatus.SENT


def test_strict_status_records_real_outcome(services, enrolled, sms_sender, backend):
    services.queue.strict_status = True
    enrolled(phone=None)
    enrolled(phone="+15550002")
    sms_sender.fail_for = {"+15550002"}

    ready = services.queue.list_entries(TENANT_ID, QueueFilter.READY)
    statuses = {services.queue.send(TENANT_ID, item.id).status for item in ready}
    assert statuses == {QueueStatus.SKIPPED, QueueStatus.SEND_FAILED}


def test_entry_is_acted_on_once(services, enrolled):
    enrolled()
    item = _first_ready(services)
    services.queue.send(TENANT_ID, item.id)
    with pytest.raises(ConflictError):
        services.queue.send(TENANT_ID, item.id)
    with pytest.raises(ConflictError):
        services.queue.skip(TENANT_ID, item.id)


@pytest.mark.parametrize("strict", [False, True])
def test_overlapping_send_delivers_once(services, enrolled, sms_sender, backend, strict):
    services.queue.strict_status = strict
    enrolled()
    item = _first_ready(services)
    deliver = sms_sender.send
    overlapping = []

    def send_while_another_send_runs(to, body, subject=None):
        with pytest.raises(ConflictError):
            services.queue.send(TENANT_ID, item.id)
        overlapping.append(to)
        return deliver(to, body, subject)

    sms_sender.send = send_while_another_send_runs
    result = services.queue.send(TENANT_ID, item.id)

    assert result.status == QueueStatus.SENT
    assert overlapping == ["+15550001"]
    assert len(sms_sender.sent) == 1
    assert len(backend.rows("message_log")) == 1
    row = next(r for r in backend.rows("workflow_queue") if r["id"] == item.id)
    assert row["status"] == "sent"


def test_strict_status_holds_entry_while_sending(services, enrolled, sms_sender, backend):
    services.queue.strict_status = True
    enrolled()
    item = _first_ready(services)
    seen = []
    deliver = sms_sender.send

    def record_status(to, body, subject=None):
        seen.append(next(r["status"] for r in backend.rows("workflow_queue") if r["id"] == item.id))
        return deliver(to, body, subject)

    sms_sender.send = record_status
    services.queue.send(TENANT_ID, item.id)
    assert seen == ["sending"]


def test_skip(services, enrolled, sms_sender, backend, clock):
    enrolled()
    item = _first_ready(services)
    entry = services.queue.skip(TENANT_ID, item.id)
    assert entry.status == QueueStatus.SKIPPED
    assert entry.acted_at == clock.now
    assert sms_sender.sent == []


def test_unknown_or_foreign_entry(services, enrolled):
    enrolled()
    item = _first_ready(services)
    with pytest.raises(NotFoundError):
        services.queue.send(TENANT_ID, "missing")
    with pytest.raises(NotFoundError):
        services.queue.send("tenant-2", item.id)
