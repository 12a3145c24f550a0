from __future__ import annotations

import json
from datetime import date, datetime

from dayplanner.models import PlannedTask, QueueKind, Task, TimeSensitivity
from dayplanner.services.task_store import CONFLICT_REASON

DAY = date(2026, 10, 18)


def _plan_reply(task_id: str) -> str:
    return json.dumps(
        [
            {"id": None, "title": "Travel to Dentist", "start_time": "9:30 AM", "end_time": "10:00 AM"},
            {"id": task_id, "title": "Dentist", "start_time": "10:00 AM", "end_time": "10:45 AM"},
        ]
    )


def test_generate_and_accept_plan(client, container, fake_llm) -> None:
    task = container.task_store.add_task(Task(title="Dentist", duration=45, date=DAY, location="12 Oak Ave"))
    fake_llm.queue(_plan_reply(str(task.id)))

    proposal = client.post("/plans/generate", json={"day": "2026-10-18", "transport_mode": "drive"})
    assert proposal.status_code == 200, proposal.text
    body = proposal.json()
    assert [entry["title"] for entry in body["entries"]] == ["Travel to Dentist", "Dentist"]

    fetched = client.get(f"/plans/requests/{body['request_id']}")
    assert fetched.json()["entries"] == body["entries"]

    accepted = client.post(f"/plans/{body['request_id']}/accept", json={})
    assert accepted.status_code == 200
    assert accepted.json()["updated_task_ids"] == [str(task.id)]

    plan = client.get("/plans/2026-10-18").json()
    assert [entry["title"] for entry in plan["entries"]] == ["Travel to Dentist"]
    assert client.get("/plans").json() == ["2026-10-18"]
    assert container.task_store.get_task(task.id).exact_time == datetime(2026, 10, 18, 10, 0)


def test_accept_with_edited_entries(client, container, fake_llm) -> None:
    task = container.task_store.add_task(Task(title="Dentist", duration=45, date=DAY))
    fake_llm.queue(_plan_reply(str(task.id)))
    request_id = client.post("/plans/generate", json={"day": "2026-10-18"}).json()["request_id"]

    edited = [{"id": str(task.id), "title": "Dentist", "start_time": "14:00", "end_time": "14:45"}]
    response = client.post(f"/plans/{request_id}/accept", json={"entries": edited})

    assert response.status_code == 200
    assert response.json()["plan_only"] == []
    assert container.task_store.get_task(task.id).exact_time == datetime(2026, 10, 18, 14, 0)


def test_stale_accept_returns_409(client, container, fake_llm) -> None:
    task = container.task_store.add_task(Task(title="Dentist", duration=45, date=DAY))
    fake_llm.queue(_plan_reply(str(task.id)))
    fake_llm.queue(_plan_reply(str(task.id)))

    first = client.post("/plans/generate", json={"day": "2026-10-18"}).json()["request_id"]
    client.post(f"/plans/{first}/regenerate", json={"notes": "later please"})

    response = client.post(f"/plans/{first}/accept", json={})
    assert response.status_code == 409
    assert response.json()["error"] == "StaleRequestError"


def test_unparseable_plan_returns_502_with_raw_text(client, fake_llm) -> None:
    fake_llm.queue("I am unable to plan today.")

    response = client.post("/plans/generate", json={"day": "2026-10-18"})

    assert response.status_code == 502
    assert response.json()["details"]["raw"] == "I am unable to plan today."


def test_unknown_plan_request_is_404(client) -> None:
    response = client.post("/plans/00000000-0000-0000-0000-000000000000/accept", json={})
    assert response.status_code == 404


def test_complete_and_clear_plan_entries(client, container) -> None:
    entry = PlannedTask(title="Free Time", start_time="3:00 PM", end_time="4:00 PM", date=DAY)
    container.plan_store.save_plan(DAY, [entry])

    done = client.post(f"/plans/2026-10-18/entries/{entry.id}/complete")
    assert done.json()["is_completed"] is True

    assert client.delete("/plans/2026-10-18").status_code == 204
    assert client.delete("/plans/2026-10-18").status_code == 404


def _starts_at(title: str, hour: int, minute: int = 0) -> Task:
    return Task(
        title=title,
        duration=60,
        date=DAY,
        time_sensitivity=TimeSensitivity.STARTS_AT,
        exact_time=datetime(2026, 10, 18, hour, minute),
    )


def test_scan_and_optimize_reschedule_queue(client, container, fake_llm) -> None:
    first = container.task_store.add_task(_starts_at("Call", 9))
    second = container.task_store.add_task(_starts_at("Meeting", 9, 30))

    scanned = client.post("/reschedule-queue/scan").json()
    assert {entry["task"]["id"] for entry in scanned} == {str(first.id), str(second.id)}
    assert {entry["reason"] for entry in scanned} == {CONFLICT_REASON}

    fake_llm.queue([{"id": str(second.id), "title": "Meeting", "start_time": "10:00 AM", "end_time": "11:00 AM"}])
    proposal = client.post("/reschedule-queue/optimize", json={"task_ids": [str(second.id)]})
    assert proposal.status_code == 200
    assert proposal.json()["kind"] == "reschedule"
    assert f"id: {first.id}" not in fake_llm.requests[0].prompt

    accepted = client.post(f"/plans/{proposal.json()['request_id']}/accept", json={})
    assert accepted.status_code == 200
    assert container.task_store.queue_kind_of(second.id) is None
    assert container.task_store.get_task(second.id).exact_time == datetime(2026, 10, 18, 10, 0)
    assert container.task_store.queue_kind_of(first.id) == QueueKind.AUTOMATIC

    assert client.delete(f"/reschedule-queue/{first.id}").status_code == 204
    assert client.get("/reschedule-queue").json() == []
    assert client.delete(f"/reschedule-queue/{first.id}").status_code == 404


def test_busy_task_duration_carries_into_generated_plan(client, fake_llm) -> None:
    created = client.post(
        "/tasks",
        json={
            "title": "Standup",
            "date": "2026-10-18",
            "time_sensitivity": "busy_from_to",
            "time_range_start": "2026-10-18T14:00:00",
            "time_range_end": "2026-10-18T14:30:00",
        },
    )
    assert created.status_code == 201, created.text
    task = created.json()
    assert task["duration"] == 30

    fake_llm.queue([{"id": task["id"], "title": "Standup", "start_time": "2:00 PM", "end_time": "2:30 PM"}])
    proposal = client.post("/plans/generate", json={"day": "2026-10-18"})

    assert proposal.status_code == 200, proposal.text
    assert [entry["duration"] for entry in proposal.json()["entries"]] == [30]


def test_failed_regenerate_keeps_previous_proposal(client, container, fake_llm) -> None:
    task = container.task_store.add_task(Task(title="Dentist", duration=45, date=DAY))
    fake_llm.queue(_plan_reply(str(task.id)))
    fake_llm.queue("Sorry, no plan this time.")

    first = client.post("/plans/generate", json={"day": "2026-10-18"}).json()["request_id"]
    assert client.post(f"/plans/{first}/regenerate", json={}).status_code == 502

    assert client.post(f"/plans/{first}/accept", json={}).status_code == 200
