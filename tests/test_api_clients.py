import pytest
import requests
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from api_clients.base_client import asc, build_backend, desc, eq, gt, in_, lte
from api_clients.broadcast_client import BroadcastClient
from api_clients.log_client import LogClient
from api_clients.memory_backend import MemoryBackend
from api_clients.rest_backend import RestBackend
from config import Settings
from models.broadcast import Broadcast, BroadcastStatus, TargetType
from models.message_log import MessageLogEntry
from models.queue_entry import QueueStatus
from models.template import Channel
from utils.errors import StoreError


# --- REST backend ---

@pytest.fixture
def rest():
    with patch("api_clients.rest_backend.requests.Session") as MockSession:
        backend = RestBackend("https://proj.supabase.co/", "service-key")
        backend.session = MockSession.return_value
        response = MagicMock(content=b"[]")
        response.json.return_value = [{"id": "r1"}]
        backend.session.request.return_value = response
        yield backend


def test_rest_select_builds_postgrest_query(rest):
    when = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)
    rows = rest.select(
        "workflow_queue",
        filters=[eq("status", QueueStatus.PENDING), lte("scheduled_for", when), in_("id", ["a", "b,c"])],
        order=[asc("scheduled_for"), desc("created_at")],
        limit=20,
    )
    assert rows == [{"id": "r1"}]
    method, url = rest.session.request.call_args[0]
    params = rest.session.request.call_args[1]["params"]
    assert method == "GET"
    assert url == "https://proj.supabase.co/rest/v1/workflow_queue"
    assert ("status", "eq.pending") in params
    assert ("scheduled_for", "lte.2025-03-03T09:00:00+00:00") in params
    assert ("id", 'in.(a,"b,c")') in params
    assert ("order", "scheduled_for.asc,created_at.desc") in params
    assert ("limit", "20") in params


def test_rest_empty_in_short_circuits(rest):
    assert rest.select("clients", filters=[in_("id", [])]) == []
    rest.session.request.assert_not_called()


def test_rest_update_returns_representation(rest):
    rest.update("broadcasts", {"status": "sending"}, filters=[eq("id", "b1"), eq("status", "draft")])
    kwargs = rest.session.request.call_args[1]
    assert kwargs["headers"] == {"Prefer": "return=representation"}
    assert kwargs["data"] == '{"status": "sending"}'
    assert ("status", "eq.draft") in kwargs["params"]


def test_rest_refuses_unfiltered_writes(rest):
    with pytest.raises(ValueError):
        rest.update("broadcasts", {"status": "sending"})
    with pytest.raises(ValueError):
        rest.delete("broadcasts")


def test_rest_http_error_becomes_store_error(rest):
    rest.session.request.side_effect = requests.ConnectionError("down")
    with pytest.raises(StoreError):
        rest.select("clients")


def test_build_backend():
    assert isinstance(build_backend(Settings(store_backend="memory")), MemoryBackend)
    with pytest.raises(ValueError, match="SUPABASE_URL"):
        build_backend(Settings(store_backend="rest"))


# --- Memory backend ---

def test_memory_filters_and_ordering():
    backend = MemoryBackend({"items": [
        {"id": "1", "n": 3, "tag": None},
        {"id": "2", "n": 1, "tag": "x"},
        {"id": "3", "n": 2, "tag": "y"},
    ]})
    assert [r["id"] for r in backend.select("items", order=[asc("n")])] == ["2", "3", "1"]
    assert [r["id"] for r in backend.select("items", filters=[gt("n", 1)], order=[desc("n")])] == ["1", "3"]
    assert [r["id"] for r in backend.select("items", filters=[("tag", "is", None)])] == ["1"]
    assert backend.delete("items", [in_("id", ["1", "2"])]) == 2


def test_broadcast_claim_only_wins_once():
    client = BroadcastClient(MemoryBackend())
    broadcast = client.create(Broadcast(
        tenant_id="t1", name="Promo", channel=Channel.SMS, target_type=TargetType.ALL, custom_body="hi",
    ))
    first = client.claim_for_sending("t1", broadcast.id)
    assert first.status == BroadcastStatus.SENDING
    assert client.claim_for_sending("t1", broadcast.id) is None


def test_log_append_is_best_effort():
    backend = MagicMock()
    backend.insert.side_effect = StoreError("insert message_log failed")
    entry = MessageLogEntry(tenant_id="t1", client_id="c1", channel=Channel.SMS, body="hi", source="workflow")
    assert LogClient(backend).append(entry) is None
