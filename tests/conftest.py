import os

# Keep test runs from writing a log file into the working tree.
os.environ.setdefault("LOG_FILE", "")

import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient

from api_clients.memory_backend import MemoryBackend
from config import Settings
from models.template import Channel
from senders.mock_senders import MockEmailSender, MockSMSSender
from service_factory import build_services

TENANT_ID = "tenant-1"
T0 = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def backend():
    backend = MemoryBackend()
    backend.insert("tenants", [{"id": TENANT_ID, "name": "Golden Touch", "phone": "(555) 010-0100"}])
    return backend


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def sms_sender():
    return MockSMSSender()


@pytest.fixture
def email_sender():
    return MockEmailSender()


@pytest.fixture
def settings():
    return Settings(store_backend="memory", sms_provider="mock", email_provider="mock", log_file=None)


@pytest.fixture
def services(settings, backend, sms_sender, email_sender, sleeps, clock):
    return build_services(
        settings=settings,
        backend=backend,
        senders={Channel.SMS: sms_sender, Channel.EMAIL: email_sender},
        sleep=sleeps.append,
        clock=clock,
    )


@pytest.fixture
def add_client(backend):
    def _add(first_name="Sarah", last_name="Johnson", email=None, phone=None, tenant_id=TENANT_ID, **extra):
        row = {
            "tenant_id": tenant_id,
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
            "phone": phone,
            **extra,
        }
        return backend.insert("clients", [row])[0]["id"]
    return _add


@pytest.fixture
def add_waiver(backend):
    def _add(client_id, sms_consent, created_at=T0):
        backend.insert("waivers", [{"client_id": client_id, "sms_consent": sms_consent, "created_at": created_at}])
    return _add


@pytest.fixture
def add_tag(backend):
    def _add(name, tenant_id=TENANT_ID):
        return backend.insert("client_tags", [{"tenant_id": tenant_id, "name": name}])[0]["id"]
    return _add


@pytest.fixture
def tag_client(backend):
    def _tag(client_id, *tag_ids):
        backend.insert("client_tag_assignments", [{"client_id": client_id, "tag_id": t} for t in tag_ids])
    return _tag


@pytest.fixture
def api(services):
    from app import app, get_services

    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()
