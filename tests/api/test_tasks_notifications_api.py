"""Tasks and notifications - both scoped to the current user."""

from datetime import datetime, timedelta, timezone

from tests.factories import make_customer


def _due(days=2):
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


async def _task(client, headers, **body):
    res = await client.post(
        "/tasks", json={"title": "Call back about visa", "due_date": _due(), **body}, headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()


# ==============================================================================
# Tasks
# ==============================================================================


async def test_task_creation_notifies_owner(client, test_db, users, headers):
    customer = await make_customer(test_db)
    task = await _task(client, headers["sales"], related_customer_id=customer.id, priority="high")
    assert task["is_completed"] is False

    res = await client.get("/notifications", headers=headers["sales"])
    notes = res.json()
    assert [n["type"] for n in notes] == ["task_created"]
    assert notes[0]["link"] == f"/customers/{customer.id}?tab=tasks"


async def test_task_for_unknown_customer_returns_404(client, users, headers):
    res = await client.post(
        "/tasks", json={"title": "x", "due_date": _due(), "related_customer_id": 4242},
        headers=headers["sales"],
    )
    assert res.status_code == 404


async def test_tasks_are_private_to_owner(client, users, headers):
    task = await _task(client, headers["sales"])

    res = await client.get(f"/tasks/{task['id']}", headers=headers["sales2"])
    assert res.status_code == 404

    res = await client.get("/tasks", headers=headers["sales2"])
    assert res.json()["total"] == 0


async def test_complete_filter_and_delete(client, users, headers):
    soon = await _task(client, headers["sales"], title="Soon", due_date=_due(1))
    await _task(client, headers["sales"], title="Later", due_date=_due(5))

    res = await client.patch(
        f"/tasks/{soon['id']}", json={"is_completed": True}, headers=headers["sales"],
    )
    assert res.json()["is_completed"] is True

    res = await client.get("/tasks", params={"is_completed": "false"}, headers=headers["sales"])
    assert [t["title"] for t in res.json()["data"]] == ["Later"]

    res = await client.delete(f"/tasks/{soon['id']}", headers=headers["sales"])
    assert res.status_code == 204
    res = await client.get("/tasks", headers=headers["sales"])
    assert res.json()["total"] == 1


# ==============================================================================
# Notifications
# ==============================================================================


async def test_unread_count_and_mark_read(client, users, headers):
    for title in ("One", "Two", "Three"):
        await _task(client, headers["sales"], title=title)

    res = await client.get("/notifications/unread-count", headers=headers["sales"])
    assert res.json() == {"count": 3}

    first = (await client.get("/notifications", headers=headers["sales"])).json()[0]
    res = await client.patch(f"/notifications/{first['id']}/read", headers=headers["sales"])
    assert res.json()["is_read"] is True

    res = await client.get("/notifications", params={"unread_only": "true"}, headers=headers["sales"])
    assert len(res.json()) == 2

    res = await client.post("/notifications/mark-all-read", headers=headers["sales"])
    assert res.json() == {"updated": 2}
    res = await client.get("/notifications/unread-count", headers=headers["sales"])
    assert res.json() == {"count": 0}


async def test_notifications_of_others_are_hidden(client, users, headers):
    await _task(client, headers["sales"])
    note = (await client.get("/notifications", headers=headers["sales"])).json()[0]

    res = await client.patch(f"/notifications/{note['id']}/read", headers=headers["sales2"])
    assert res.status_code == 404
    res = await client.delete(f"/notifications/{note['id']}", headers=headers["sales2"])
    assert res.status_code == 404

    res = await client.delete(f"/notifications/{note['id']}", headers=headers["sales"])
    assert res.status_code == 204

    res = await client.get("/notifications", headers=headers["sales"])
    assert res.json() == []


async def test_filter_by_type_and_clear_read(client, users, headers):
    await _task(client, headers["sales"], title="Call back")
    await _task(client, headers["sales"], title="Send visa docs")
    await _task(client, headers["sales2"], title="Not mine")

    res = await client.get("/notifications", params={"type": "task_created"}, headers=headers["sales"])
    assert len(res.json()) == 2
    res = await client.get("/notifications", params={"type": "trip_departure"}, headers=headers["sales"])
    assert res.json() == []

    first = (await client.get("/notifications", headers=headers["sales"])).json()[0]
    await client.patch(f"/notifications/{first['id']}/read", headers=headers["sales"])

    res = await client.delete("/notifications/read", headers=headers["sales"])
    assert res.json() == {"deleted": 1}
    res = await client.get("/notifications", headers=headers["sales"])
    assert [n["is_read"] for n in res.json()] == [False]
    res = await client.get("/notifications", headers=headers["sales2"])
    assert len(res.json()) == 1
