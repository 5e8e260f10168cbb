from api_clients.crm_client import CrmClient
from executor.audience_resolver import AudienceResolver
from conftest import TENANT_ID


def _resolver(backend):
    return AudienceResolver(CrmClient(backend))


def test_all_targets_every_client_of_the_tenant(backend, add_client):
    ids = {add_client(first_name=f"C{i}") for i in range(4)}
    add_client(first_name="Other", tenant_id="tenant-2")

    audience = _resolver(backend).resolve(TENANT_ID, "all", None)
    assert {c.id for c in audience} == ids


def test_missing_target_id_means_all(backend, add_client):
    add_client()
    add_client()
    assert len(_resolver(backend).resolve(TENANT_ID, "tag", None)) == 2


def test_tag_target(backend, add_client, add_tag, tag_client):
    vip = add_tag("VIP")
    tagged = add_client(first_name="Tagged")
    add_client(first_name="Plain")
    tag_client(tagged, vip)

    audience = _resolver(backend).resolve(TENANT_ID, "tag", vip)
    assert [c.id for c in audience] == [tagged]


def test_unused_tag_gives_empty_audience(backend, add_client, add_tag):
    add_client()
    empty = add_tag("Nobody")
    assert _resolver(backend).resolve(TENANT_ID, "tag", empty) == []


def test_segment_requires_every_tag(backend, add_client, add_tag, tag_client):
    a, b, c = add_tag("A"), add_tag("B"), add_tag("C")
    only_a = add_client(first_name="OnlyA")
    a_and_b = add_client(first_name="AB")
    a_b_c = add_client(first_name="ABC")
    tag_client(only_a, a)
    tag_client(a_and_b, a, b)
    tag_client(a_b_c, a, b, c)
    segment = backend.insert("client_segments", [{
        "tenant_id": TENANT_ID, "name": "A and B", "filter_criteria": {"tagIds": [a, b]},
    }])[0]

    audience = _resolver(backend).resolve(TENANT_ID, "segment", segment["id"])
    assert {cl.id for cl in audience} == {a_and_b, a_b_c}


def test_duplicate_assignment_does_not_inflate_count(backend, add_client, add_tag, tag_client):
    a, b = add_tag("A"), add_tag("B")
    client = add_client()
    # Same tag held twice still covers only one of the two required tags.
    tag_client(client, a, a)

    resolver = _resolver(backend)
    assert resolver.segment_match_count(TENANT_ID, [a, b]) == 0


def test_segment_without_tags_degrades_to_all(backend, add_client):
    add_client()
    add_client()
    segment = backend.insert("client_segments", [{
        "tenant_id": TENANT_ID, "name": "Everyone", "filter_criteria": {"tagIds": []},
    }])[0]
    assert len(_resolver(backend).resolve(TENANT_ID, "segment", segment["id"])) == 2


def test_unknown_segment_gives_empty_audience(backend, add_client):
    add_client()
    assert _resolver(backend).resolve(TENANT_ID, "segment", "missing") == []
