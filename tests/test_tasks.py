# tests/test_tasks.py

from datetime import datetime, timedelta

import pytest

from taskboard import crud, errors, schemas


# ============================================================
# HELPERS
# ============================================================

def _build_task_create(
    title="Test Task",
    description="Test description",
    priority="medium",
    due_date=None,
    **extra,
):
    return schemas.TaskCreate(
        title=title,
        description=description,
        priority=priority,
        due_date=due_date,
        **extra,
    )


def _ts(value):
    return datetime.fromisoformat(value)


# ============================================================
# 1. STORE (crud directly)
# ============================================================

def test_create_task_crud_applies_defaults(db_session):
    task = crud.create_task(db_session, {"title": "Buy milk"})
    assert task.id == 1
    assert task.description == ""
    assert task.priority == "medium"
    assert task.project == "default"
    assert task.section is None
    assert task.labels == []
    assert task.subtasks == []
    assert task.reminders == []
    assert task.completed is False
    assert task.is_recurring is False
    assert task.created_at == task.updated_at


@pytest.mark.parametrize("fields", [{}, {"title": ""}, {"title": "   "}, {"title": None}])
def test_create_task_crud_rejects_missing_title(db_session, fields):
    with pytest.raises(errors.ValidationError):
        crud.create_task(db_session, fields)
    assert crud.get_tasks(db_session) == []


def test_create_task_assigns_increasing_ids(db_session):
    first = crud.create_task(db_session, _build_task_create(title="One"))
    second = crud.create_task(db_session, _build_task_create(title="Two"))
    assert second.id == first.id + 1
    assert [t.title for t in crud.get_tasks(db_session)] == ["One", "Two"]


def test_create_task_numbers_embedded_subtasks(db_session):
    task = crud.create_task(
        db_session,
        _build_task_create(subtasks=[{"title": "a"}, {"title": "b", "completed": True}]),
    )
    assert [s["id"] for s in task.subtasks] == [1, 2]
    assert [s["completed"] for s in task.subtasks] == [False, True]
    assert all(s["created_at"] for s in task.subtasks)


def test_create_task_dedupes_labels(db_session):
    task = crud.create_task(db_session, _build_task_create(labels=["Home", " Home", "Email", ""]))
    assert task.labels == ["Home", "Email"]


def test_get_task_crud(db_session):
    created = crud.create_task(db_session, _build_task_create(title="Find me"))
    assert crud.get_task(db_session, created.id).title == "Find me"


def test_get_task_crud_unknown_id(db_session):
    with pytest.raises(errors.NotFound):
        crud.get_task(db_session, 42)


def test_update_task_crud_merges_fields(db_session):
    created = crud.create_task(db_session, _build_task_create(labels=["Home"]))
    created_at = created.created_at
    updated = crud.update_task(db_session, created.id, {"title": "Updated", "priority": "high"})
    assert updated.id == created.id
    assert updated.title == "Updated"
    assert updated.priority == "high"
    assert updated.labels == ["Home"]
    assert updated.description == "Test description"
    assert updated.updated_at >= created_at


def test_update_task_crud_ignores_id(db_session):
    created = crud.create_task(db_session, _build_task_create())
    updated = crud.update_task(db_session, created.id, {"id": 99, "title": "Still me"})
    assert updated.id == created.id
    with pytest.raises(errors.NotFound):
        crud.get_task(db_session, 99)


def test_update_task_crud_advances_updated_at(db_session):
    created = crud.create_task(db_session, _build_task_create())
    previous = created.updated_at
    for title in ("a", "b", "c"):
        task = crud.update_task(db_session, created.id, {"title": title})
        assert task.updated_at >= previous
        assert task.updated_at >= task.created_at
        previous = task.updated_at


def test_update_task_crud_can_clear_due_date(db_session):
    created = crud.create_task(db_session, _build_task_create(due_date=datetime(2024, 5, 1, 9, 0)))
    updated = crud.update_task(db_session, created.id, {"dueDate": None})
    assert updated.due_date is None


def test_update_task_crud_legacy_reminders_use_stored_due_date(db_session):
    created = crud.create_task(db_session, _build_task_create(due_date=datetime(2024, 5, 1, 10, 0)))
    updated = crud.update_task(db_session, created.id, {
        "reminders": [{"date": "2024-05-01T08:00:00", "method": "email"}],
    })
    assert updated.due_date == datetime(2024, 5, 1, 10, 0)
    assert updated.reminders == [{"value": 120, "unit": "minutes"}]


def test_update_task_crud_legacy_reminders_without_any_due_date(db_session):
    created = crud.create_task(db_session, _build_task_create())
    with pytest.raises(errors.ValidationError):
        crud.update_task(db_session, created.id, {
            "reminders": [{"date": "2024-05-01T08:00:00", "method": "email"}],
        })


def test_update_task_crud_rejects_null_title(db_session):
    created = crud.create_task(db_session, _build_task_create())
    with pytest.raises(errors.ValidationError):
        crud.update_task(db_session, created.id, {"title": None})


def test_update_task_crud_unknown_id(db_session):
    with pytest.raises(errors.NotFound):
        crud.update_task(db_session, 7, {"title": "nope"})


def test_delete_task_crud_returns_removed_task(db_session):
    keep = crud.create_task(db_session, _build_task_create(title="Keep"))
    drop = crud.create_task(db_session, _build_task_create(title="Drop", subtasks=[{"title": "x"}]))
    removed = crud.delete_task(db_session, drop.id)
    assert removed.title == "Drop"
    assert [t.id for t in crud.get_tasks(db_session)] == [keep.id]


def test_delete_task_crud_unknown_id_leaves_store_untouched(db_session):
    crud.create_task(db_session, _build_task_create(title="One"))
    crud.create_task(db_session, _build_task_create(title="Two"))
    with pytest.raises(errors.NotFound):
        crud.delete_task(db_session, 99)
    assert [t.title for t in crud.get_tasks(db_session)] == ["One", "Two"]


def test_set_completed_keeps_subtasks_and_labels(db_session):
    created = crud.create_task(
        db_session,
        _build_task_create(labels=["Home"], subtasks=[{"title": "step"}]),
    )
    subtasks = list(created.subtasks)
    done = crud.set_completed(db_session, created.id, True)
    assert done.completed is True
    assert done.labels == ["Home"]
    assert done.subtasks == subtasks

    reopened = crud.set_completed(db_session, created.id, False)
    assert reopened.completed is False


def test_add_subtask_crud(db_session):
    created = crud.create_task(db_session, _build_task_create())
    crud.add_subtask(db_session, created.id, {"title": "first"})
    task = crud.add_subtask(db_session, created.id, schemas.SubtaskCreate(title="second"))
    assert [(s["id"], s["title"], s["completed"]) for s in task.subtasks] == [
        (1, "first", False),
        (2, "second", False),
    ]


def test_add_subtask_crud_unknown_task(db_session):
    with pytest.raises(errors.NotFound):
        crud.add_subtask(db_session, 3, {"title": "orphan"})


def test_filters_by_project_label_priority(db_session):
    crud.create_task(db_session, _build_task_create(title="A", project="Work", labels=["Email"]))
    crud.create_task(db_session, _build_task_create(title="B", project="Home", priority="urgent"))
    crud.create_task(db_session, _build_task_create(title="C", project="Work", labels=["Home"]))

    assert [t.title for t in crud.get_tasks_by_project(db_session, "Work")] == ["A", "C"]
    assert [t.title for t in crud.get_tasks_by_label(db_session, "Home")] == ["C"]
    assert [t.title for t in crud.get_tasks_by_priority(db_session, "urgent")] == ["B"]
    with pytest.raises(errors.ValidationError):
        crud.get_tasks_by_priority(db_session, "critical")


def test_projects_and_labels(db_session):
    crud.create_task(db_session, _build_task_create(project="Garden", labels=["Outdoor"]))
    assert crud.create_project(db_session, "Errands") == "Errands"
    assert crud.create_project(db_session, " Errands ") == "Errands"
    assert crud.create_label(db_session, {"name": "Later"}) == "Later"

    projects = crud.list_projects(db_session)
    assert projects[:3] == ["Work", "Personal", "Shopping"]
    assert projects.count("Errands") == 1
    assert "Garden" in projects

    labels = crud.list_labels(db_session)
    assert "Later" in labels and "Outdoor" in labels and "Important" in labels

    with pytest.raises(errors.ValidationError):
        crud.create_label(db_session, "   ")


# ============================================================
# 2. API (TestClient)
# ============================================================

def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_create_task_api_defaults(client):
    resp = client.post("/api/tasks", json={"title": "Buy milk"})
    assert resp.status_code == 201
    body = resp.json()
    assert body["id"] == 1
    assert body["priority"] == "medium"
    assert body["project"] == "default"
    assert body["completed"] is False
    assert body["isRecurring"] is False
    assert body["labels"] == [] and body["subtasks"] == [] and body["reminders"] == []
    assert _ts(body["updatedAt"]) >= _ts(body["createdAt"])


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"title": ""},
        {"title": "  "},
        {"title": "x", "priority": "asap"},
        {"title": "x", "reminders": 5},
        {"title": "x", "reminders": True},
        {"title": "x", "dueDate": "2024-03-10T09:00:00", "reminders": [{"value": 1000000, "unit": "days"}]},
        {"title": "x", "reminders": [{"value": 367, "unit": "days"}]},
    ],
)
def test_create_task_api_validation(client, payload):
    resp = client.post("/api/tasks", json=payload)
    assert resp.status_code == 400
    assert "error" in resp.json()
    assert client.get("/api/tasks").json() == []


def test_create_task_api_converts_legacy_reminders(client):
    resp = client.post("/api/tasks", json={
        "title": "Dentist",
        "dueDate": "2024-05-01T10:00:00",
        "reminders": [
            {"date": "2024-05-01T09:30:00", "method": "email"},
            {"value": 1, "unit": "days"},
        ],
    })
    assert resp.status_code == 201
    assert resp.json()["reminders"] == [
        {"value": 30, "unit": "minutes"},
        {"value": 1, "unit": "days"},
    ]


def test_create_task_api_legacy_reminder_needs_due_date(client):
    resp = client.post("/api/tasks", json={
        "title": "Dentist",
        "reminders": [{"date": "2024-05-01T09:30:00", "method": "notification"}],
    })
    assert resp.status_code == 400


def test_update_task_api_converts_legacy_reminders_against_stored_due_date(client):
    uid = client.post("/api/tasks", json={"title": "Dentist", "dueDate": "2024-05-01T10:00:00"}).json()["id"]

    resp = client.put(f"/api/tasks/{uid}", json={
        "reminders": [{"date": "2024-04-30T10:00:00", "method": "notification"}],
    })

    assert resp.status_code == 200
    assert resp.json()["reminders"] == [{"value": 1440, "unit": "minutes"}]


def test_update_task_api_rejects_non_object_body(client):
    uid = client.post("/api/tasks", json={"title": "Dentist"}).json()["id"]
    resp = client.put(f"/api/tasks/{uid}", json=["title"])
    assert resp.status_code == 400
    assert "error" in resp.json()


def test_get_task_api(client):
    uid = client.post("/api/tasks", json={"title": "Read"}).json()["id"]
    assert client.get(f"/api/tasks/{uid}").json()["title"] == "Read"

    missing = client.get("/api/tasks/999")
    assert missing.status_code == 404
    assert missing.json() == {"error": "Task not found"}


@pytest.mark.parametrize("bad_id", ["abc", "1.5", "NaN"])
def test_malformed_ids_are_rejected(client, bad_id):
    client.post("/api/tasks", json={"title": "Read"})
    assert client.get(f"/api/tasks/{bad_id}").status_code == 400
    assert client.put(f"/api/tasks/{bad_id}", json={"title": "x"}).status_code == 400
    assert client.delete(f"/api/tasks/{bad_id}").status_code == 400
    assert client.patch(f"/api/tasks/{bad_id}/complete").status_code == 400
    assert len(client.get("/api/tasks").json()) == 1


def test_update_and_delete_api(client):
    new = client.post("/api/tasks", json={"title": "Original", "labels": ["Home"]}).json()
    uid = new["id"]

    upd = client.put(f"/api/tasks/{uid}", json={"id": 500, "title": "Updated API", "section": "Later"})
    assert upd.status_code == 200
    body = upd.json()
    assert body["id"] == uid
    assert body["title"] == "Updated API"
    assert body["section"] == "Later"
    assert body["labels"] == ["Home"]
    assert _ts(body["updatedAt"]) >= _ts(new["updatedAt"])

    assert client.put("/api/tasks/999", json={"title": "x"}).status_code == 404
    assert client.put(f"/api/tasks/{uid}", json={"title": ""}).status_code == 400

    del_res = client.delete(f"/api/tasks/{uid}")
    assert del_res.status_code == 200
    assert del_res.json() == {"message": "Task deleted successfully"}
    assert client.get(f"/api/tasks/{uid}").status_code == 404
    assert client.delete(f"/api/tasks/{uid}").status_code == 404


def test_complete_task_api(client):
    uid = client.post("/api/tasks", json={"title": "To complete"}).json()["id"]

    complete = client.patch(f"/api/tasks/{uid}/complete")
    assert complete.status_code == 200
    assert complete.json()["completed"] is True

    reopen = client.patch(f"/api/tasks/{uid}/complete", json={"completed": False})
    assert reopen.json()["completed"] is False

    assert client.patch("/api/tasks/999/complete").status_code == 404
    # The server never synthesizes recurrences on its own.
    assert len(client.get("/api/tasks").json()) == 1


def test_add_subtask_api(client):
    uid = client.post("/api/tasks", json={"title": "Parent"}).json()["id"]

    resp = client.post(f"/api/tasks/{uid}/subtasks", json={"title": "Child"})
    assert resp.status_code == 201
    subtasks = resp.json()["subtasks"]
    assert len(subtasks) == 1
    assert subtasks[0]["id"] == 1
    assert subtasks[0]["completed"] is False
    assert "createdAt" in subtasks[0]

    assert client.post(f"/api/tasks/{uid}/subtasks", json={"title": ""}).status_code == 400
    assert client.post("/api/tasks/999/subtasks", json={"title": "x"}).status_code == 404


def test_filter_api(client):
    client.post("/api/tasks", json={"title": "A", "project": "Work", "labels": ["Email"]})
    client.post("/api/tasks", json={"title": "B", "project": "Home", "priority": "high"})

    assert [t["title"] for t in client.get("/api/tasks/filter/project/Work").json()] == ["A"]
    assert [t["title"] for t in client.get("/api/tasks/filter/label/Email").json()] == ["A"]
    assert [t["title"] for t in client.get("/api/tasks/filter/priority/high").json()] == ["B"]

    bad_type = client.get("/api/tasks/filter/colour/red")
    assert bad_type.status_code == 400
    assert bad_type.json() == {"error": "Invalid filter type"}
    assert client.get("/api/tasks/filter/priority/extreme").status_code == 400


def test_list_api_with_view_and_sort(client):
    tomorrow = (datetime.now() + timedelta(days=1)).replace(microsecond=0)
    client.post("/api/tasks", json={"title": "Later", "priority": "low"})
    client.post("/api/tasks", json={"title": "Soon", "priority": "urgent", "dueDate": tomorrow.isoformat()})
    client.post("/api/tasks", json={"title": "Mid", "priority": "high"})

    by_priority = client.get("/api/tasks", params={"sort": "priority"}).json()
    assert [t["title"] for t in by_priority] == ["Soon", "Mid", "Later"]

    important = client.get("/api/tasks", params={"view": "important", "sort": "title"}).json()
    assert [t["title"] for t in important] == ["Mid", "Soon"]

    upcoming = client.get("/api/tasks", params={"view": "upcoming"}).json()
    assert [t["title"] for t in upcoming] == ["Soon"]


def test_search_api(client):
    client.post("/api/tasks", json={"title": "Call plumber", "labels": ["Home"]})
    client.post("/api/tasks", json={"title": "Write report", "description": "quarterly numbers"})

    assert [t["title"] for t in client.get("/api/tasks/search", params={"q": "QUARTERLY"}).json()] == [
        "Write report"
    ]
    assert [t["title"] for t in client.get("/api/tasks/search", params={"q": "home"}).json()] == [
        "Call plumber"
    ]


def test_projects_and_labels_api(client):
    created = client.post("/api/projects", json={"name": "Garden"})
    assert created.status_code == 201
    assert created.json() == {"name": "Garden"}
    assert "Garden" in client.get("/api/projects").json()

    label = client.post("/api/labels", json={"name": "Someday"})
    assert label.status_code == 201
    assert "Someday" in client.get("/api/labels").json()

    assert client.post("/api/labels", json={"name": ""}).status_code == 400


def test_unknown_route_uses_error_body(client):
    resp = client.get("/api/nothing-here")
    assert resp.status_code == 404
    assert "error" in resp.json()
