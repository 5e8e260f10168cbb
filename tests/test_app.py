from conftest import TENANT_ID


def test_health_check(api):
    response = api.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_workflow_crud(api):
    created = api.post("/api/workflows", json={
        "tenant_id": TENANT_ID,
        "name": "Birthday",
        "trigger_type": "birthday",
        "steps": [{"delay_hours": 0, "template_name": "Happy Birthday"}, {"delay_hours": 48}],
    })
    assert created.status_code == 201
    workflow = created.json()
    assert [s["step_order"] for s in workflow["steps"]] == [1, 2]

    patched = api.patch("/api/workflows", json={"tenant_id": TENANT_ID, "id": workflow["id"], "is_active": False})
    assert patched.json()["is_active"] is False

    listed = api.get("/api/workflows", params={"tenant_id": TENANT_ID}).json()
    assert [w["name"] for w in listed] == ["Birthday"]

    deleted = api.delete("/api/workflows", params={"tenant_id": TENANT_ID, "id": workflow["id"]})
    assert deleted.json() == {"success": True}
    assert api.get("/api/workflows", params={"tenant_id": TENANT_ID}).json() == []


def test_trigger_then_send_from_queue(api, add_client, sms_sender):
    client_id = add_client(phone="+15550001")
    triggered = api.post("/api/workflows/trigger", json={
        "tenant_id": TENANT_ID, "client_id": client_id, "trigger_type": "event_purchase",
    })
    assert triggered.json()["queued"] == 4

    queue = api.get("/api/clients/workflow-queue", params={"tenant_id": TENANT_ID}).json()
    assert len(queue["ready"]) == 1
    assert len(queue["upcoming"]) == 3
    assert queue["ready"][0]["client_initials"] == "SJ"

    ready_id = queue["ready"][0]["id"]
    sent = api.post("/api/clients/workflow-queue", json={"tenant_id": TENANT_ID, "queue_id": ready_id})
    assert sent.status_code == 200
    assert sent.json()["sent"] is True
    assert sent.json()["outcome"] == {"status": "sent"}
    assert len(sms_sender.sent) == 1

    again = api.post("/api/clients/workflow-queue", json={"tenant_id": TENANT_ID, "queue_id": ready_id})
    assert again.status_code == 409
    assert "error" in again.json()

    upcoming_id = queue["upcoming"][0]["id"]
    skipped = api.patch("/api/clients/workflow-queue", json={"tenant_id": TENANT_ID, "queue_id": upcoming_id})
    assert skipped.json()["status"] == "skipped"


def test_queue_status_filter(api, add_client):
    client_id = add_client()
    api.post("/api/workflows/trigger", json={
        "tenant_id": TENANT_ID, "client_id": client_id, "trigger_type": "event_purchase",
    })
    upcoming = api.get("/api/clients/workflow-queue", params={"tenant_id": TENANT_ID, "status": "upcoming"}).json()
    assert upcoming["ready"] == []
    assert len(upcoming["upcoming"]) == 3
    bad = api.get("/api/clients/workflow-queue", params={"tenant_id": TENANT_ID, "status": "later"})
    assert bad.status_code == 422


def test_enroll_conflict(api, add_client):
    client_id = add_client()
    workflows = api.get("/api/workflows", params={"tenant_id": TENANT_ID}).json()
    assert workflows == []
    workflow = api.post("/api/workflows", json={
        "tenant_id": TENANT_ID, "name": "Drip", "trigger_type": "manual", "steps": [{}, {"delay_hours": 24}],
    }).json()

    body = {"tenant_id": TENANT_ID, "workflow_id": workflow["id"]}
    first = api.post(f"/api/clients/{client_id}/enroll-workflow", json=body)
    assert first.status_code == 200
    assert first.json()["steps_created"] == 2
    second = api.post(f"/api/clients/{client_id}/enroll-workflow", json=body)
    assert second.status_code == 409
    assert second.json() == {"error": "Client is already enrolled in this workflow"}

    missing = api.post(f"/api/clients/{client_id}/enroll-workflow", json={"tenant_id": TENANT_ID, "workflow_id": "nope"})
    assert missing.status_code == 404


def test_templates_routes(api):
    listed = api.get("/api/templates", params={"tenant_id": TENANT_ID, "channel": "email"}).json()
    assert len(listed) == 3

    created = api.post("/api/templates", json={
        "tenant_id": TENANT_ID, "name": "Promo", "channel": "sms", "body": "Hi {{client_name}}",
    })
    assert created.status_code == 201
    template_id = created.json()["id"]

    patched = api.patch(f"/api/templates/{template_id}", json={"tenant_id": TENANT_ID, "subject": None, "body": "Yo"})
    assert patched.json()["body"] == "Yo"

    default_id = listed[0]["id"]
    assert api.delete(f"/api/templates/{default_id}", params={"tenant_id": TENANT_ID}).status_code == 409
    assert api.delete(f"/api/templates/{template_id}", params={"tenant_id": TENANT_ID}).status_code == 200
    assert api.get(f"/api/templates/{template_id}", params={"tenant_id": TENANT_ID}).status_code == 404

    preview = api.post("/api/templates/preview", json={"body": "Hi {{client_name}}", "variables": {"client_name": "Jo"}})
    assert preview.json() == {"rendered": "Hi Jo", "missing": []}
    partial = api.post("/api/templates/preview", json={"body": "Hi {{client_name}} at {{business_name}}"})
    assert partial.json()["missing"] == ["client_name", "business_name"]
    assert api.post("/api/templates/preview", json={}).status_code == 400


def test_broadcast_flow(api, add_client, add_waiver, email_sender):
    add_client(first_name="Jo", email="jo@example.com")
    add_client(first_name="Al", email=None)

    created = api.post("/api/broadcasts", json={
        "tenant_id": TENANT_ID, "name": "News", "channel": "email", "target_type": "all",
        "custom_subject": "News for {{client_first_name}}", "custom_body": "Hello {{client_first_name}}",
    })
    assert created.status_code == 201
    broadcast_id = created.json()["id"]
    assert created.json()["status"] == "draft"

    preview = api.get(f"/api/broadcasts/{broadcast_id}/preview", params={"tenant_id": TENANT_ID}).json()
    assert preview["sendable"] == 1
    assert preview["missingContact"] == 1
    assert preview["sampleSubject"] == "News for Jo"

    summary = api.post(f"/api/broadcasts/{broadcast_id}/send", params={"tenant_id": TENANT_ID}).json()
    assert summary == {"status": "completed", "total": 2, "sent": 1, "failed": 0, "skipped": 1}
    assert email_sender.sent[0]["subject"] == "News for Jo"

    resend = api.post(f"/api/broadcasts/{broadcast_id}/send", params={"tenant_id": TENANT_ID})
    assert resend.status_code == 409

    messages = api.get(f"/api/broadcasts/{broadcast_id}/messages", params={"tenant_id": TENANT_ID}).json()
    assert sorted(m["status"] for m in messages) == ["sent", "skipped"]

    listed = api.get("/api/broadcasts", params={"tenant_id": TENANT_ID}).json()
    assert listed[0]["sent_count"] == 1


def test_broadcast_create_requires_body(api):
    response = api.post("/api/broadcasts", json={
        "tenant_id": TENANT_ID, "name": "Empty", "channel": "sms", "target_type": "all",
    })
    assert response.status_code == 400


def test_tags_and_segments(api, add_client):
    client_id = add_client()
    tag = api.post("/api/tags", json={"tenant_id": TENANT_ID, "name": "VIP"}).json()
    assert api.post("/api/tags", json={"tenant_id": TENANT_ID, "name": "VIP"}).status_code == 409

    assigned = api.post(f"/api/clients/{client_id}/tags", json={"tenant_id": TENANT_ID, "tag_id": tag["id"]})
    assert assigned.status_code == 200

    segment = api.post("/api/segments", json={
        "tenant_id": TENANT_ID, "name": "VIPs", "filter_criteria": {"tagIds": [tag["id"]]},
    })
    assert segment.status_code == 201
    segment_id = segment.json()["id"]
    assert segment.json()["filter_criteria"] == {"tagIds": [tag["id"]]}

    fetched = api.get(f"/api/segments/{segment_id}", params={"tenant_id": TENANT_ID}).json()
    assert fetched["match_count"] == 1

    api.delete(f"/api/clients/{client_id}/tags", params={"tenant_id": TENANT_ID, "tag_id": tag["id"]})
    fetched = api.get(f"/api/segments/{segment_id}", params={"tenant_id": TENANT_ID}).json()
    assert fetched["match_count"] == 0

    renamed = api.patch(f"/api/segments/{segment_id}", json={"tenant_id": TENANT_ID, "name": "Top"})
    assert renamed.json()["name"] == "Top"
    assert api.delete(f"/api/segments/{segment_id}", params={"tenant_id": TENANT_ID}).json() == {"success": True}
    assert [t["name"] for t in api.get("/api/tags", params={"tenant_id": TENANT_ID}).json()] == ["VIP"]


def test_template_variables_route(api):
    data = api.get("/api/templates/variables").json()
    assert [v["key"] for v in data["variables"]] == [
        "client_name", "client_first_name", "business_name", "business_phone",
    ]
    assert data["sample"]["client_first_name"] == "Sarah"


def test_client_tags_route(api, add_client, add_tag, tag_client):
    client_id = add_client()
    vip = add_tag("VIP")
    add_tag("Girls Night")
    tag_client(client_id, vip)

    assigned = api.get(f"/api/clients/{client_id}/tags", params={"tenant_id": TENANT_ID}).json()
    assert [a["tag"]["name"] for a in assigned] == ["VIP"]

    tags = api.get("/api/tags", params={"tenant_id": TENANT_ID}).json()
    assert {t["name"]: t["usage_count"] for t in tags} == {"Girls Night": 0, "VIP": 1}
    assert api.get("/api/clients/missing/tags", params={"tenant_id": TENANT_ID}).status_code == 404


def test_send_message_route(api, add_client, sms_sender, backend):
    client_id = add_client(first_name="Jo", phone="+15550001")
    response = api.post("/api/clients/send-message", json={
        "tenant_id": TENANT_ID, "client_id": client_id, "channel": "sms",
        "message": "Hi {{client_first_name}}, call {{business_phone}}",
    })
    assert response.status_code == 200
    assert response.json()["sent"] is True
    assert sms_sender.sent == [{"to": "+15550001", "body": "Hi Jo, call (555) 010-0100", "subject": None}]
    assert backend.rows("message_log")[0]["source"] == "manual"

    no_email = api.post("/api/clients/send-message", json={
        "tenant_id": TENANT_ID, "client_id": client_id, "channel": "email", "message": "Hi",
    })
    assert no_email.status_code == 400
    assert no_email.json() == {"error": "Client has no email address"}
