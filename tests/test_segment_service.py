import pytest

from conftest import TENANT_ID
from utils.errors import ConflictError, NotFoundError


def test_tag_names_are_unique_per_tenant(services):
    services.segments.create_tag(TENANT_ID, "VIP")
    with pytest.raises(ConflictError):
        services.segments.create_tag(TENANT_ID, " VIP ")
    services.segments.create_tag("tenant-2", "VIP")


def test_assign_tag_is_idempotent(services, backend, add_client):
    client_id = add_client()
    tag = services.segments.create_tag(TENANT_ID, "VIP")
    services.segments.assign_tag(TENANT_ID, client_id, tag.id)
    services.segments.assign_tag(TENANT_ID, client_id, tag.id)
    assert len(backend.rows("client_tag_assignments")) == 1

    assert services.segments.remove_tag(TENANT_ID, client_id, tag.id) is True
    assert backend.rows("client_tag_assignments") == []


def test_assign_unknown_tag_or_client(services, add_client):
    tag = services.segments.create_tag(TENANT_ID, "VIP")
    with pytest.raises(NotFoundError):
        services.segments.assign_tag(TENANT_ID, "ghost", tag.id)
    with pytest.raises(NotFoundError):
        services.segments.assign_tag(TENANT_ID, add_client(), "ghost")


def test_segment_match_count_uses_and_semantics(services, add_client):
    a = services.segments.create_tag(TENANT_ID, "A")
    b = services.segments.create_tag(TENANT_ID, "B")
    both, only_a = add_client(), add_client()
    for tag in (a, b):
        services.segments.assign_tag(TENANT_ID, both, tag.id)
    services.segments.assign_tag(TENANT_ID, only_a, a.id)

    segment = services.segments.create_segment(TENANT_ID, "A and B", [a.id, b.id])
    assert segment.filter_criteria.tag_ids == [a.id, b.id]
    assert services.segments.match_count(segment) == 1

    widened = services.segments.update_segment(TENANT_ID, segment.id, tag_ids=[a.id])
    assert services.segments.match_count(widened) == 2

    services.segments.delete_segment(TENANT_ID, segment.id)
    with pytest.raises(NotFoundError):
        services.segments.get_segment(TENANT_ID, segment.id)


def test_tag_listing_counts_usage(services, add_client):
    vip = services.segments.create_tag(TENANT_ID, "VIP")
    services.segments.create_tag(TENANT_ID, "Referral")
    for _ in range(2):
        services.segments.assign_tag(TENANT_ID, add_client(), vip.id)

    tags = services.segments.list_tags(TENANT_ID)
    assert [(t.name, t.usage_count) for t in tags] == [("Referral", 0), ("VIP", 2)]


def test_client_tags_lists_assignments_with_tag(services, add_client):
    client_id = add_client()
    vip = services.segments.create_tag(TENANT_ID, "VIP")
    services.segments.create_tag(TENANT_ID, "Referral")
    services.segments.assign_tag(TENANT_ID, client_id, vip.id)

    assigned = services.segments.client_tags(TENANT_ID, client_id)
    assert [a.tag.name for a in assigned] == ["VIP"]
    assert assigned[0].assigned_at is not None
    with pytest.raises(NotFoundError):
        services.segments.client_tags(TENANT_ID, "ghost")
