from __future__ import annotations

from uuid import uuid4


def _template(client, **overrides) -> dict:
    payload = {
        "title": "Team standup",
        "duration": 15,
        "time_sensitivity": "starts_at",
        "exact_time": "09:30:00",
        "interval": "weekly",
        "selected_weekdays": [0, 2, 4],
    }
    payload.update(overrides)
    response = client.post("/recurring-tasks", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_list_update_delete(client) -> None:
    created = _template(client)
    assert client.get("/recurring-tasks").json()[0]["id"] == created["id"]

    updated = client.put(
        f"/recurring-tasks/{created['id']}",
        json={"title": "Standup", "interval": "daily"},
    )
    assert updated.status_code == 200
    assert updated.json()["interval"] == "daily"

    assert client.delete(f"/recurring-tasks/{created['id']}").status_code == 204
    assert client.put(f"/recurring-tasks/{created['id']}", json={"title": "x", "interval": "daily"}).status_code == 404


def test_invalid_weekday_is_rejected(client) -> None:
    response = client.post("/recurring-tasks", json={"title": "Bad", "interval": "weekly", "selected_weekdays": [7]})
    assert response.status_code == 422


def test_expand_creates_dated_instances(client, container) -> None:
    created = _template(client)

    response = client.post(f"/recurring-tasks/{created['id']}/expand", json={"start": "2026-10-18"})

    assert response.status_code == 200
    body = response.json()
    assert body["created"] == 60
    assert body["first_date"] == "2026-10-19"
    instances = container.task_store.all_tasks()
    assert len(instances) == 60
    assert all(task.parent_recurring_id is not None for task in instances)


def test_expand_unknown_template_is_404(client) -> None:
    response = client.post(f"/recurring-tasks/{uuid4()}/expand", json={})
    assert response.status_code == 404
