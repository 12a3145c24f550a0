from __future__ import annotations

import json
from uuid import uuid4


def _create(client, **overrides) -> dict:
    payload = {"title": "Dentist", "duration": 45, "date": "2026-10-18"}
    payload.update(overrides)
    response = client.post("/tasks", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_and_list_tasks(client) -> None:
    created = _create(client, location="12 Oak Ave", urgency="high")

    assert created["is_location_sensitive"] is True
    assert created["status"] == "active"

    listed = client.get("/tasks", params={"day": "2026-10-18"}).json()
    assert [task["id"] for task in listed] == [created["id"]]
    assert client.get("/tasks", params={"day": "2026-10-19"}).json() == []


def test_home_location_is_not_location_sensitive(client) -> None:
    assert _create(client, location="Home")["is_location_sensitive"] is False


def test_invalid_busy_range_is_rejected(client) -> None:
    response = client.post(
        "/tasks",
        json={
            "title": "Shift",
            "time_sensitivity": "busy_from_to",
            "time_range_start": "2026-10-18T17:00:00",
            "time_range_end": "2026-10-18T09:00:00",
        },
    )
    assert response.status_code == 422


def test_update_merges_fields(client) -> None:
    created = _create(client)

    response = client.put(f"/tasks/{created['id']}", json={"title": "Dentist checkup"})

    assert response.status_code == 200
    assert response.json()["title"] == "Dentist checkup"
    assert response.json()["duration"] == 45


def test_missing_task_returns_404(client) -> None:
    missing = uuid4()
    response = client.put(f"/tasks/{missing}", json={"title": "x"})
    assert response.status_code == 404
    assert response.json()["error"] == "NotFoundError"
    assert client.delete(f"/tasks/{missing}").status_code == 404
    assert client.post(f"/tasks/{missing}/complete").status_code == 404


def test_reschedule_and_complete_flow(client) -> None:
    created = _create(client)

    queued = client.post(f"/tasks/{created['id']}/reschedule", json={"reason": "Feeling ill"})
    assert queued.status_code == 200
    assert queued.json()["kind"] == "manual"
    assert queued.json()["task"]["status"] == "queued"

    queue = client.get("/reschedule-queue").json()
    assert [entry["task"]["id"] for entry in queue] == [created["id"]]

    completed = client.post(f"/tasks/{created['id']}/complete")
    assert completed.json()["status"] == "completed"
    assert client.get("/reschedule-queue").json() == []


def test_delete_task(client) -> None:
    created = _create(client)
    assert client.delete(f"/tasks/{created['id']}").status_code == 204
    assert client.get("/tasks").json() == []


def test_day_view_splits_scheduled_and_unscheduled(client) -> None:
    _create(client, title="Loose end")
    _create(client, title="Call", time_sensitivity="starts_at", exact_time="2026-10-18T15:00:00")
    _create(client, title="Meeting", time_sensitivity="starts_at", exact_time="2026-10-18T09:00:00", duration=30)

    view = client.get("/days/2026-10-18").json()

    assert [task["title"] for task in view["scheduled"]] == ["Meeting", "Call"]
    assert [task["title"] for task in view["unscheduled"]] == ["Loose end"]


def test_expand_text_returns_drafts(client, fake_llm) -> None:
    fake_llm.queue(json.dumps([{"title": "Buy stamps", "location": "Post Office"}]))

    response = client.post(
        "/tasks/expand",
        json={"text": "buy stamps", "date": "2026-10-18"},
        headers={"X-Request-Id": "expand-1"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["request_id"] == "expand-1"
    assert body["tasks"][0]["title"] == "Buy stamps"
    assert client.get("/tasks").json() == []


def test_groups_crud(client) -> None:
    group = client.post("/groups", json={"name": "Errands"}).json()
    _create(client, title="Post office", group_id=group["id"])

    renamed = client.patch(f"/groups/{group['id']}", json={"name": "Town errands"})
    assert renamed.json()["name"] == "Town errands"
    assert [task["title"] for task in renamed.json()["tasks"]] == ["Post office"]

    assert client.delete(f"/groups/{group['id']}").status_code == 204
    assert client.get("/groups").json() == []
    assert client.patch(f"/groups/{group['id']}", json={"name": "x"}).status_code == 404
