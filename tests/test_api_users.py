"""
Taskboard - Project Tracking API
Tests - User API.

Covers:
    - Role-guarded listing
    - /users/me and profile lookup
    - Profile updates (self / ADMIN) and role changes (ADMIN only)
    - Assigned / reported task listings
"""

import pytest

from taskboard.models import db as _db
from taskboard.models.user import User


class TestUserRead:
    @pytest.mark.parametrize("role_fixture", ["admin", "manager"])
    def test_list_allowed(self, api, request, role_fixture, developer):
        user = request.getfixturevalue(role_fixture)
        res = api.get("/api/v1/users", user=user)
        assert res.status_code == 200
        usernames = {u["username"] for u in res.get_json()["items"]}
        assert {"dev", user.username} <= usernames

    @pytest.mark.parametrize("role_fixture", ["developer", "reporter"])
    def test_list_forbidden(self, api, request, role_fixture):
        user = request.getfixturevalue(role_fixture)
        res = api.get("/api/v1/users", user=user)
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_list_filters(self, api, admin, developer, reporter):
        res = api.get("/api/v1/users?role=REPORTER", user=admin)
        assert [u["username"] for u in res.get_json()["items"]] == ["rep"]
        res = api.get("/api/v1/users?search=DE", user=admin)
        assert [u["username"] for u in res.get_json()["items"]] == ["dev"]

    def test_me(self, api, developer):
        res = api.get("/api/v1/users/me")
        assert res.status_code == 200
        assert res.get_json()["id"] == developer.id
        assert res.get_json()["role"] == "DEVELOPER"

    def test_get_user(self, api, reporter):
        res = api.get(f"/api/v1/users/{reporter.id}")
        assert res.get_json()["username"] == "rep"

    def test_get_user_404(self, api):
        assert api.get("/api/v1/users/999").status_code == 404


class TestUserUpdate:
    def test_update_self(self, api, developer):
        res = api.put(f"/api/v1/users/{developer.id}", json={
            "name": "Dev Eloper", "email": "Dev.New@Example.com", "profile_picture": "avatars/dev.png",
        })
        assert res.status_code == 200
        data = res.get_json()
        assert data["name"] == "Dev Eloper"
        assert data["email"] == "Dev.New@example.com"
        assert data["profile_picture"] == "avatars/dev.png"

    def test_update_other_forbidden(self, api, reporter):
        res = api.put(f"/api/v1/users/{reporter.id}", json={"name": "Hacked"})
        assert res.status_code == 403
        assert _db.session.get(User, reporter.id).name == "Rep"

    def test_admin_updates_other(self, api, admin, reporter):
        res = api.put(f"/api/v1/users/{reporter.id}", json={"name": "Reporter"}, user=admin)
        assert res.status_code == 200

    def test_role_change_requires_admin(self, api, developer, admin):
        res = api.put(f"/api/v1/users/{developer.id}", json={"role": "ADMIN"})
        assert res.status_code == 403
        res = api.put(f"/api/v1/users/{developer.id}", json={"role": "MANAGER"}, user=admin)
        assert res.status_code == 200
        assert res.get_json()["role"] == "MANAGER"

    def test_invalid_role(self, api, admin, developer):
        res = api.put(f"/api/v1/users/{developer.id}", json={"role": "OWNER"}, user=admin)
        assert res.status_code == 400

    @pytest.mark.parametrize("field,value", [
        ("role", ["ADMIN"]),
        ("name", 7),
        ("email", ["dev@example.com"]),
        ("profile_picture", {"url": "x"}),
    ])
    def test_wrong_typed_field(self, api, admin, developer, field, value):
        res = api.put(f"/api/v1/users/{developer.id}", json={field: value}, user=admin)
        assert res.status_code == 400
        assert field in res.get_json()["details"]

    def test_invalid_email(self, api, developer):
        res = api.put(f"/api/v1/users/{developer.id}", json={"email": "not-an-email"})
        assert res.status_code == 400

    def test_duplicate_email(self, api, developer, reporter):
        res = api.put(f"/api/v1/users/{developer.id}", json={"email": "rep@example.com"})
        assert res.status_code == 400
        assert "email" in res.get_json()["details"]


class TestUserTasks:
    def test_assigned_and_reported(self, api, developer, reporter):
        api.post("/api/v1/tasks", json={"title": "A", "assignee_id": developer.id, "reporter_id": reporter.id})
        api.post("/api/v1/tasks", json={"title": "B", "assignee_id": reporter.id, "reporter_id": developer.id})

        res = api.get(f"/api/v1/users/{developer.id}/tasks")
        assert [t["title"] for t in res.get_json()["items"]] == ["A"]
        res = api.get(f"/api/v1/users/{developer.id}/reported-tasks")
        assert [t["title"] for t in res.get_json()["items"]] == ["B"]

    def test_unknown_user(self, api):
        assert api.get("/api/v1/users/999/tasks").status_code == 404
        assert api.get("/api/v1/users/999/reported-tasks").status_code == 404
