from datetime import date, timedelta

import database


def _day(offset: int) -> str:
    return (date.today() + timedelta(days=offset)).isoformat()


def _create(client, headers, **fields):
    body = {"title": "Write report", "due_date": _day(3), "status": "pending"}
    body.update(fields)
    return client.post("/api/tasks", json=body, headers=headers)


def test_create_and_fetch_task(client, make_user):
    headers = make_user()
    r = _create(client, headers, title="  Write report  ", description="quarterly")
    assert r.status_code == 201
    task = r.json()["task"]
    assert task["title"] == "Write report"
    assert task["user_id"] == "alice@example.com"
    assert task["subtasks"] == []
    assert task["progress"] == 0
    assert task["links"]["edit"] == f"/tasks/alice-smith-alice?taskId={task['id']}&action=edit"

    r = client.get(f"/api/tasks/{task['id']}", headers=headers)
    assert r.status_code == 200
    assert r.json()["task"]["description"] == "quarterly"


def test_create_rejects_short_title(client, make_user):
    headers = make_user()
    r = _create(client, headers, title="ab")
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Validation failed: title:")


def test_create_rejects_past_due_date(client, make_user):
    headers = make_user()
    r = _create(client, headers, due_date=_day(-1))
    assert r.status_code == 400
    assert "Due date cannot be in the past" in r.json()["detail"]


def test_create_accepts_today_and_rejects_bad_format(client, make_user):
    headers = make_user()
    assert _create(client, headers, due_date=_day(0)).status_code == 201
    assert _create(client, headers, due_date="12/01/2030").status_code == 400
    assert _create(client, headers, status="done").status_code == 400


def test_tasks_require_session(client):
    assert client.get("/api/tasks").status_code == 401
    assert client.post("/api/tasks", json={"title": "Write report", "due_date": _day(1)}).status_code == 401


def test_list_is_scoped_to_owner_and_newest_first(client, make_user):
    alice = make_user()
    bob = make_user(email="bob@example.com", name="Bob Stone")
    _create(client, alice, title="First task")
    _create(client, alice, title="Second task")
    _create(client, bob, title="Bob task")

    titles = [t["title"] for t in client.get("/api/tasks", headers=alice).json()["tasks"]]
    assert titles == ["Second task", "First task"]


def test_other_users_task_is_not_found(client, make_user):
    alice = make_user()
    bob = make_user(email="bob@example.com", name="Bob Stone")
    task_id = _create(client, alice).json()["task"]["id"]

    assert client.get(f"/api/tasks/{task_id}", headers=bob).status_code == 404
    assert client.put(f"/api/tasks/{task_id}", json={"status": "completed"}, headers=bob).status_code == 404
    assert client.delete(f"/api/tasks/{task_id}", headers=bob).status_code == 404
    assert client.get("/api/tasks/not-an-id", headers=alice).status_code == 404


def test_update_allows_past_due_date_and_keeps_explicit_status(client, make_user):
    headers = make_user()
    task_id = _create(client, headers).json()["task"]["id"]

    r = client.put(f"/api/tasks/{task_id}", json={"due_date": _day(-5), "status": "inprogress"}, headers=headers)
    assert r.status_code == 200
    task = r.json()["task"]
    assert task["due_date"] == _day(-5)
    assert task["status"] == "inprogress"
    assert task["title"] == "Write report"


def test_update_validates_fields(client, make_user):
    headers = make_user()
    task_id = _create(client, headers).json()["task"]["id"]
    assert client.put(f"/api/tasks/{task_id}", json={"title": "x"}, headers=headers).status_code == 400


def test_delete_task(client, make_user):
    headers = make_user()
    task_id = _create(client, headers).json()["task"]["id"]
    r = client.delete(f"/api/tasks/{task_id}", headers=headers)
    assert r.status_code == 200
    assert client.get(f"/api/tasks/{task_id}", headers=headers).status_code == 404


def test_subtask_operations_derive_status(client, make_user):
    headers = make_user()
    task_id = _create(client, headers, status="completed").json()["task"]["id"]

    r = client.post(f"/api/tasks/{task_id}/subtasks", json={"title": "Outline"}, headers=headers)
    assert r.status_code == 201
    task = r.json()["task"]
    assert task["status"] == "pending"
    first = task["subtasks"][0]["id"]

    r = client.post(
        f"/api/tasks/{task_id}/subtasks",
        json={"title": "Draft", "due_date": _day(1), "due_time": "09:30"},
        headers=headers,
    )
    task = r.json()["task"]
    second = task["subtasks"][1]
    assert second["due_time"] == "09:30"

    task = client.patch(f"/api/tasks/{task_id}/subtasks/{first}", headers=headers).json()["task"]
    assert task["status"] == "inprogress"
    assert task["progress"] == 50

    task = client.patch(f"/api/tasks/{task_id}/subtasks/{second['id']}", headers=headers).json()["task"]
    assert task["status"] == "completed"
    assert task["progress"] == 100

    task = client.delete(f"/api/tasks/{task_id}/subtasks/{second['id']}", headers=headers).json()["task"]
    assert [st["id"] for st in task["subtasks"]] == [first]
    assert task["status"] == "completed"

    task = client.delete(f"/api/tasks/{task_id}/subtasks/{first}", headers=headers).json()["task"]
    assert task["subtasks"] == []
    assert task["status"] == "pending"


def test_toggling_every_subtask_back_returns_to_pending(client, make_user):
    headers = make_user()
    subtasks = [{"id": str(i), "title": f"Step {i}", "completed": False} for i in range(3)]
    task_id = _create(client, headers, subtasks=subtasks).json()["task"]["id"]

    for st in subtasks:
        task = client.patch(f"/api/tasks/{task_id}/subtasks/{st['id']}", headers=headers).json()["task"]
    assert task["status"] == "completed"
    for st in subtasks:
        task = client.patch(f"/api/tasks/{task_id}/subtasks/{st['id']}", headers=headers).json()["task"]
    assert task["status"] == "pending"


def test_unknown_subtask_is_not_found(client, make_user):
    headers = make_user()
    task_id = _create(client, headers).json()["task"]["id"]
    assert client.patch(f"/api/tasks/{task_id}/subtasks/nope", headers=headers).status_code == 404
    assert client.delete(f"/api/tasks/{task_id}/subtasks/nope", headers=headers).status_code == 404
    r = client.post(f"/api/tasks/{task_id}/subtasks", json={"title": "x"}, headers=headers)
    assert r.status_code == 400


def test_subtasks_are_stored_inline(client, make_user):
    headers = make_user()
    task_id = _create(client, headers).json()["task"]["id"]
    client.post(f"/api/tasks/{task_id}/subtasks", json={"title": "Outline"}, headers=headers)
    assert database.db.list_collection_names().count("subtasks") == 0
    task = database.db["tasks"].find_one({"title": "Write report"})
    assert task["subtasks"][0]["title"] == "Outline"
