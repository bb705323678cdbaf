"""
Taskboard - Project Tracking API
Tests - Task API.

Covers:
    - Task CRUD + validation error bodies
    - Filtering, search, pagination, ordering
    - Move (PATCH) incl. no-op and invalid status
    - Kanban board endpoint
    - Attachments add / remove
    - End-to-end ledger scenario
"""

import pytest

from taskboard.models import db as _db
from taskboard.models.task import Task, TaskAttachment, TaskHistoryEntry


def _create_task(api, assignee, reporter, **kw):
    payload = {
        "title": "Fix bug",
        "description": "Login button does nothing",
        "assignee_id": assignee.id,
        "reporter_id": reporter.id,
    }
    payload.update(kw)
    res = api.post("/api/v1/tasks", json=payload)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def _create_sprint(api, **kw):
    payload = {"name": "S1", "start_date": "2024-01-01", "end_date": "2024-01-14"}
    payload.update(kw)
    res = api.post("/api/v1/sprints", json=payload)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


# ═════════════════════════════════════════════════════════════════════════════
# CRUD
# ═════════════════════════════════════════════════════════════════════════════

class TestTaskCrud:
    def test_create_defaults(self, api, developer, reporter):
        data = _create_task(api, developer, reporter)
        assert data["status"] == "TO_DO"
        assert data["priority"] == "MEDIUM"
        assert data["version"] == 1
        assert data["assignee"]["username"] == "dev"
        assert data["reporter"]["id"] == reporter.id
        assert data["sprint"] is None
        assert data["attachments"] == []
        assert len(data["history"]) == 1
        assert data["history"][0]["comment"] == "Task created"
        assert data["history"][0]["updated_by_id"] == reporter.id

    def test_create_missing_title(self, api, developer, reporter):
        res = api.post("/api/v1/tasks", json={"assignee_id": developer.id, "reporter_id": reporter.id})
        assert res.status_code == 400
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert "title" in body["details"]

    def test_create_invalid_status(self, api, developer, reporter):
        res = api.post("/api/v1/tasks", json={
            "title": "x", "assignee_id": developer.id, "reporter_id": reporter.id, "status": "WIP",
        })
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_STATUS"

    def test_create_invalid_priority(self, api, developer, reporter):
        res = api.post("/api/v1/tasks", json={
            "title": "x", "assignee_id": developer.id, "reporter_id": reporter.id, "priority": "P0",
        })
        assert res.status_code == 400

    def test_create_unknown_sprint(self, api, developer, reporter):
        res = api.post("/api/v1/tasks", json={
            "title": "x", "assignee_id": developer.id, "reporter_id": reporter.id, "sprint_id": 42,
        })
        assert res.status_code == 400
        assert Task.query.count() == 0

    def test_create_non_object_body(self, api):
        res = api.post("/api/v1/tasks", json=["title"])
        assert res.status_code == 400

    def test_create_wrong_content_type(self, api):
        res = api.post("/api/v1/tasks", data="title=x", content_type="text/plain")
        assert res.status_code == 415

    def test_get(self, api, developer, reporter):
        task = _create_task(api, developer, reporter)
        res = api.get(f"/api/v1/tasks/{task['id']}")
        assert res.status_code == 200
        assert res.get_json()["title"] == "Fix bug"
        assert len(res.get_json()["history"]) == 1

    def test_get_404(self, api):
        res = api.get("/api/v1/tasks/9999")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_update_fields(self, api, developer, reporter, manager):
        task = _create_task(api, developer, reporter)
        res = api.put(f"/api/v1/tasks/{task['id']}", json={
            "title": "Fix login bug", "priority": "URGENT", "assignee_id": manager.id,
        })
        assert res.status_code == 200
        data = res.get_json()
        assert data["title"] == "Fix login bug"
        assert data["priority"] == "URGENT"
        assert data["assignee_id"] == manager.id
        assert data["version"] == 2
        assert len(data["history"]) == 1
        assert data["updated_at"] > task["updated_at"]

    def test_update_rejects_status_change(self, api, developer, reporter):
        task = _create_task(api, developer, reporter)
        res = api.put(f"/api/v1/tasks/{task['id']}", json={"status": "DONE"})
        assert res.status_code == 400
        assert _db.session.get(Task, task["id"]).status == "TO_DO"

    def test_update_rejects_reporter_change(self, api, developer, reporter):
        task = _create_task(api, developer, reporter)
        res = api.put(f"/api/v1/tasks/{task['id']}", json={"reporter_id": developer.id})
        assert res.status_code == 400

    def test_update_unknown_sprint_404(self, api, developer, reporter):
        task = _create_task(api, developer, reporter)
        res = api.put(f"/api/v1/tasks/{task['id']}", json={"sprint_id": 555})
        assert res.status_code == 404

    def test_update_assigns_and_clears_sprint(self, api, developer, reporter):
        sprint = _create_sprint(api)
        task = _create_task(api, developer, reporter)
        res = api.put(f"/api/v1/tasks/{task['id']}", json={"sprint_id": sprint["id"]})
        assert res.get_json()["sprint"]["name"] == "S1"
        res = api.put(f"/api/v1/tasks/{task['id']}", json={"sprint_id": None})
        assert res.status_code == 200
        assert res.get_json()["sprint_id"] is None
        assert len(res.get_json()["history"]) == 1

    def test_update_404(self, api):
        res = api.put("/api/v1/tasks/9999", json={"title": "x"})
        assert res.status_code == 404

    @pytest.mark.parametrize("field,value", [
        ("title", 123),
        ("title", ["Fix bug"]),
        ("description", {"text": "x"}),
        ("priority", ["HIGH"]),
        ("priority", 3),
        ("status", ["TO_DO"]),
    ])
    def test_create_wrong_typed_field(self, api, developer, reporter, field, value):
        payload = {"title": "Fix bug", "assignee_id": developer.id, "reporter_id": reporter.id}
        payload[field] = value
        res = api.post("/api/v1/tasks", json=payload)
        assert res.status_code == 400
        assert res.get_json()["code"] in ("ERR_VALIDATION_INVALID", "ERR_VALIDATION_STATUS")
        assert Task.query.count() == 0

    @pytest.mark.parametrize("field,value", [
        ("title", 42),
        ("description", ["x"]),
        ("priority", ["HIGH"]),
    ])
    def test_update_wrong_typed_field(self, api, developer, reporter, field, value):
        task = _create_task(api, developer, reporter)
        res = api.put(f"/api/v1/tasks/{task['id']}", json={field: value})
        assert res.status_code == 400
        assert field in res.get_json()["details"]
        t = _db.session.get(Task, task["id"])
        assert t.title == "Fix bug"
        assert t.priority == "MEDIUM"
        assert t.version == 1

    def test_delete(self, api, developer, reporter):
        task = _create_task(api, developer, reporter)
        res = api.delete(f"/api/v1/tasks/{task['id']}")
        assert res.status_code == 200
        assert api.get(f"/api/v1/tasks/{task['id']}").status_code == 404
        assert TaskHistoryEntry.query.count() == 0

    def test_delete_404(self, api):
        assert api.delete("/api/v1/tasks/9999").status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# LIST / FILTER
# ═════════════════════════════════════════════════════════════════════════════

class TestTaskList:
    def test_filters(self, api, developer, reporter, manager):
        sprint = _create_sprint(api)
        _create_task(api, developer, reporter, title="Alpha", priority="HIGH", sprint_id=sprint["id"])
        _create_task(api, manager, reporter, title="Beta", description="payment flow")
        _create_task(api, developer, developer, title="Gamma", status="DONE")

        def titles(query):
            res = api.get(f"/api/v1/tasks{query}")
            assert res.status_code == 200
            return sorted(t["title"] for t in res.get_json()["items"])

        assert titles("") == ["Alpha", "Beta", "Gamma"]
        assert titles("?status=DONE") == ["Gamma"]
        assert titles("?priority=HIGH") == ["Alpha"]
        assert titles(f"?assignee_id={developer.id}") == ["Alpha", "Gamma"]
        assert titles(f"?reporter_id={developer.id}") == ["Gamma"]
        assert titles(f"?sprint_id={sprint['id']}") == ["Alpha"]
        assert titles("?sprint_id=0") == ["Beta", "Gamma"]
        assert titles("?search=PAYMENT") == ["Beta"]
        assert titles("?search=alp") == ["Alpha"]

    def test_invalid_status_filter(self, api):
        res = api.get("/api/v1/tasks?status=NOPE")
        assert res.status_code == 400

    def test_invalid_id_filter(self, api):
        res = api.get("/api/v1/tasks?assignee_id=abc")
        assert res.status_code == 400

    def test_most_recently_updated_first(self, api, developer, reporter):
        first = _create_task(api, developer, reporter, title="First")
        _create_task(api, developer, reporter, title="Second")
        api.put(f"/api/v1/tasks/{first['id']}", json={"description": "touched"})
        items = api.get("/api/v1/tasks").get_json()["items"]
        assert [t["title"] for t in items] == ["First", "Second"]

    def test_pagination(self, api, developer, reporter):
        for i in range(5):
            _create_task(api, developer, reporter, title=f"T{i}")
        res = api.get("/api/v1/tasks?limit=2&offset=1")
        data = res.get_json()
        assert data["total"] == 5
        assert len(data["items"]) == 2
        assert (data["limit"], data["offset"]) == (2, 1)

    def test_pagination_bounds(self, api, developer, reporter):
        for i in range(3):
            _create_task(api, developer, reporter, title=f"T{i}")
        data = api.get("/api/v1/tasks?limit=0&offset=-4").get_json()
        assert (data["limit"], data["offset"]) == (1, 0)
        assert len(data["items"]) == 1
        data = api.get("/api/v1/tasks?limit=abc").get_json()
        assert data["limit"] == 200
        assert len(data["items"]) == 3


# ═════════════════════════════════════════════════════════════════════════════
# MOVE
# ═════════════════════════════════════════════════════════════════════════════

class TestTaskMove:
    def test_move(self, api, developer, reporter):
        task = _create_task(api, developer, reporter)
        res = api.patch(f"/api/v1/tasks/{task['id']}/move", json={"status": "IN_PROGRESS"})
        assert res.status_code == 200
        data = res.get_json()
        assert data["changed"] is True
        assert data["status"] == "IN_PROGRESS"
        assert data["history"][-1]["comment"] == "Status changed to IN_PROGRESS"
        assert data["history"][-1]["updated_by_id"] == developer.id

    def test_move_requires_status(self, api, developer, reporter):
        task = _create_task(api, developer, reporter)
        res = api.patch(f"/api/v1/tasks/{task['id']}/move", json={})
        assert res.status_code == 400

    def test_move_invalid_status(self, api, developer, reporter):
        task = _create_task(api, developer, reporter)
        res = api.patch(f"/api/v1/tasks/{task['id']}/move", json={"status": "CLOSED"})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_STATUS"
        t = _db.session.get(Task, task["id"])
        assert t.status == "TO_DO"
        assert len(t.history) == 1

    def test_move_non_string_comment(self, api, developer, reporter):
        task = _create_task(api, developer, reporter)
        res = api.patch(f"/api/v1/tasks/{task['id']}/move", json={"status": "DONE", "comment": 7})
        assert res.status_code == 400
        assert "comment" in res.get_json()["details"]
        assert len(_db.session.get(Task, task["id"]).history) == 1

    def test_move_404(self, api):
        res = api.patch("/api/v1/tasks/9999/move", json={"status": "DONE"})
        assert res.status_code == 404

    def test_move_forbidden_by_workflow_policy(self, app, api, developer, reporter):
        app.config["TASK_TRANSITION_POLICY"] = "workflow"
        task = _create_task(api, developer, reporter)
        res = api.patch(f"/api/v1/tasks/{task['id']}/move", json={"status": "DONE"})
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_CONFLICT_STATE"
        assert body["details"]["allowed"] == ["IN_PROGRESS"]

    def test_end_to_end_ledger(self, api, developer, reporter):
        task = _create_task(api, developer, reporter, title="Fix bug")
        assert task["status"] == "TO_DO"
        assert [(h["status"], h["updated_by_id"], h["comment"]) for h in task["history"]] == [
            ("TO_DO", reporter.id, "Task created"),
        ]

        res = api.patch(f"/api/v1/tasks/{task['id']}/move",
                        json={"status": "IN_PROGRESS", "comment": "starting"})
        data = res.get_json()
        assert data["status"] == "IN_PROGRESS"
        assert len(data["history"]) == 2
        last = data["history"][-1]
        assert (last["status"], last["updated_by_id"], last["comment"]) == (
            "IN_PROGRESS", developer.id, "starting",
        )

        res = api.patch(f"/api/v1/tasks/{task['id']}/move", json={"status": "IN_PROGRESS"})
        data = res.get_json()
        assert res.status_code == 200
        assert data["changed"] is False
        assert len(data["history"]) == 2


# ═════════════════════════════════════════════════════════════════════════════
# BOARD
# ═════════════════════════════════════════════════════════════════════════════

class TestBoard:
    def test_board_buckets(self, api, developer, reporter, manager):
        sprint = _create_sprint(api)
        _create_task(api, developer, reporter, status="TO_DO", sprint_id=sprint["id"])
        _create_task(api, developer, reporter, status="DONE", sprint_id=sprint["id"])
        _create_task(api, manager, reporter, status="REVIEW")

        data = api.get("/api/v1/tasks/board").get_json()
        assert set(data["columns"]) == {"TO_DO", "IN_PROGRESS", "REVIEW", "DONE"}
        assert data["summary"]["total_tasks"] == 3
        assert data["summary"]["by_status"] == {"TO_DO": 1, "IN_PROGRESS": 0, "REVIEW": 1, "DONE": 1}
        assert data["summary"]["completion_pct"] == 33

        data = api.get(f"/api/v1/tasks/board?sprint_id={sprint['id']}").get_json()
        assert data["summary"]["total_tasks"] == 2
        assert data["summary"]["completion_pct"] == 50

        data = api.get(f"/api/v1/tasks/board?assignee_id={manager.id}").get_json()
        assert [t["title"] for t in data["columns"]["REVIEW"]] == ["Fix bug"]

    def test_empty_board(self, api):
        data = api.get("/api/v1/tasks/board").get_json()
        assert all(v == [] for v in data["columns"].values())
        assert data["summary"]["completion_pct"] == 0


# ═════════════════════════════════════════════════════════════════════════════
# ATTACHMENTS
# ═════════════════════════════════════════════════════════════════════════════

class TestAttachments:
    def test_add_and_remove(self, api, developer, reporter):
        task = _create_task(api, developer, reporter)
        res = api.post(f"/api/v1/tasks/{task['id']}/attachments",
                       json={"filename": "screen.png", "path": "uploads/abc-screen.png"})
        assert res.status_code == 201
        data = res.get_json()
        assert len(data["attachments"]) == 1
        att = data["attachments"][0]
        assert att["filename"] == "screen.png"
        assert att["uploaded_by_id"] == developer.id
        assert att["uploaded_at"] is not None
        assert data["version"] == 2

        res = api.delete(f"/api/v1/tasks/{task['id']}/attachments/{att['id']}")
        assert res.status_code == 200
        assert res.get_json()["attachments"] == []
        assert TaskAttachment.query.count() == 0
        assert len(_db.session.get(Task, task["id"]).history) == 1

    def test_unsupported_extension(self, api, developer, reporter):
        task = _create_task(api, developer, reporter)
        res = api.post(f"/api/v1/tasks/{task['id']}/attachments",
                       json={"filename": "run.exe", "path": "uploads/run.exe"})
        assert res.status_code == 400

    def test_missing_path(self, api, developer, reporter):
        task = _create_task(api, developer, reporter)
        res = api.post(f"/api/v1/tasks/{task['id']}/attachments", json={"filename": "a.pdf"})
        assert res.status_code == 400
        assert "path" in res.get_json()["details"]

    def test_non_string_filename(self, api, developer, reporter):
        task = _create_task(api, developer, reporter)
        res = api.post(f"/api/v1/tasks/{task['id']}/attachments", json={"filename": 5, "path": "p/5"})
        assert res.status_code == 400
        assert "filename" in res.get_json()["details"]

    def test_add_to_missing_task(self, api):
        res = api.post("/api/v1/tasks/9999/attachments", json={"filename": "a.pdf", "path": "p"})
        assert res.status_code == 404

    def test_remove_unknown_attachment(self, api, developer, reporter):
        task = _create_task(api, developer, reporter)
        res = api.delete(f"/api/v1/tasks/{task['id']}/attachments/777")
        assert res.status_code == 404
        assert "Attachment" in res.get_json()["error"]

    def test_remove_attachment_of_other_task(self, api, developer, reporter):
        t1 = _create_task(api, developer, reporter)
        t2 = _create_task(api, developer, reporter)
        att = api.post(f"/api/v1/tasks/{t1['id']}/attachments",
                       json={"filename": "a.pdf", "path": "p"}).get_json()["attachments"][0]
        res = api.delete(f"/api/v1/tasks/{t2['id']}/attachments/{att['id']}")
        assert res.status_code == 404
        assert TaskAttachment.query.count() == 1

    @pytest.mark.parametrize("method", ["post", "delete"])
    def test_missing_task_for_attachment_routes(self, api, method):
        url = "/api/v1/tasks/9999/attachments" + ("/1" if method == "delete" else "")
        kw = {"json": {"filename": "a.pdf", "path": "p"}} if method == "post" else {}
        res = getattr(api, method)(url, **kw)
        assert res.status_code == 404
        assert "Task" in res.get_json()["error"]
