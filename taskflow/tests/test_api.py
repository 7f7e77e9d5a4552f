"""End-to-end tests through the HTTP API."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from taskflow.crud import UserStore
from taskflow.dependencies.auth import _authenticate
from taskflow.errors import AppError, ErrorKind
from taskflow.main import create_app
from taskflow.models import Role, User

from conftest import register

FUTURE = "2026-03-05T09:00:00Z"


def promote(app, user_id):
    with Session(app.state.engine) as session:
        user = session.get(User, user_id)
        user.role = Role.ADMIN
        session.add(user)
        session.commit()


class TestAuth:
    """Tests for /api/auth."""

    def test_register_returns_user_and_token(self, client):
        response = client.post(
            "/api/auth/register",
            json={"username": "alice", "email": "Alice@TaskFlow.io", "password": "secret123"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "User registered successfully"
        user = body["data"]["user"]
        assert user["username"] == "alice"
        assert user["email"] == "alice@taskflow.io"
        assert user["role"] == "user"
        assert "createdAt" in user
        assert "hashedPassword" not in user and "hashed_password" not in user
        assert body["data"]["token"]

    def test_register_validation_errors(self, client):
        response = client.post(
            "/api/auth/register",
            json={"username": "a!", "email": "not-an-email", "password": "123"},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        fields = {error["field"] for error in body["errors"]}
        assert {"username", "email", "password"} <= fields

    def test_register_password_mismatch_names_the_field(self, client):
        response = client.post(
            "/api/auth/register",
            json={
                "username": "alice",
                "email": "alice@taskflow.io",
                "password": "secret123",
                "confirmPassword": "secret124",
            },
        )
        assert response.status_code == 400
        assert response.json()["errors"] == [{"field": "confirmPassword", "message": "Passwords do not match"}]

    def test_register_duplicate_email(self, client):
        register(client, "alice")
        response = client.post(
            "/api/auth/register",
            json={"username": "other", "email": "alice@taskflow.io", "password": "secret123"},
        )
        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["errors"][0]["field"] == "email"

    def test_login(self, client):
        register(client, "alice")
        response = client.post("/api/auth/login", json={"email": "alice@taskflow.io", "password": "secret123"})
        assert response.status_code == 200
        assert response.json()["data"]["user"]["username"] == "alice"

    @pytest.mark.parametrize(
        "email, password",
        [("alice@taskflow.io", "wrong-password"), ("nobody@taskflow.io", "secret123")],
    )
    def test_login_failures_are_indistinguishable(self, client, email, password):
        register(client, "alice")
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid credentials"}

    def test_me(self, client):
        user, headers = register(client, "alice")
        response = client.get("/api/auth/me", headers=headers)
        assert response.status_code == 200
        assert response.json()["data"]["user"]["id"] == user["id"]

    def test_change_password_flow(self, client):
        _, headers = register(client, "alice")
        response = client.put(
            "/api/auth/password",
            headers=headers,
            json={"currentPassword": "secret123", "newPassword": "betterpass", "confirmPassword": "betterpass"},
        )
        assert response.status_code == 200
        login = client.post("/api/auth/login", json={"email": "alice@taskflow.io", "password": "betterpass"})
        assert login.status_code == 200

    def test_change_password_mismatch(self, client):
        _, headers = register(client, "alice")
        response = client.put(
            "/api/auth/password",
            headers=headers,
            json={"currentPassword": "secret123", "newPassword": "betterpass", "confirmPassword": "other"},
        )
        assert response.status_code == 400
        assert response.json()["errors"] == [{"field": "confirmPassword", "message": "Passwords do not match"}]

    def test_refresh_and_logout(self, client):
        _, headers = register(client, "alice")
        token = client.post("/api/auth/refresh", headers=headers).json()["data"]["token"]
        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert client.post("/api/auth/logout", headers=headers).json()["message"] == "Logout successful"

    def test_availability(self, client):
        register(client, "alice")
        taken = client.get("/api/auth/check-email", params={"email": "alice@taskflow.io"})
        free = client.get("/api/auth/check-username", params={"username": "zed"})
        assert taken.json()["data"] == {"available": False}
        assert free.json()["data"] == {"available": True}


class TestAuthGuard:
    """Tests for the bearer token guard on protected routes."""

    def test_missing_header(self, client):
        response = client.get("/api/tasks")
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Access denied. No valid token provided."}

    def test_wrong_scheme(self, client):
        response = client.get("/api/tasks", headers={"Authorization": "Basic abc"})
        assert response.status_code == 401
        assert response.json()["message"] == "Access denied. No valid token provided."

    def test_empty_bearer_token(self, app):
        with pytest.raises(AppError) as exc_info:
            _authenticate("Bearer ", users=None, tokens=app.state.token_service)
        assert exc_info.value.kind == ErrorKind.UNAUTHENTICATED
        assert exc_info.value.message == "Access denied. No token provided."

    def test_malformed_token(self, client):
        response = client.get("/api/tasks", headers={"Authorization": "Bearer not.a.token"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid token."

    def test_expired_token(self, client, app):
        user, _ = register(client, "alice")
        token = app.state.token_service.issue(user["id"], expires_delta=timedelta(seconds=-1))
        response = client.get("/api/tasks", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["message"] == "Token expired."

    def test_token_for_deleted_user(self, client):
        _, headers = register(client, "alice")
        deleted = client.request("DELETE", "/api/users/account", headers=headers, json={"password": "secret123"})
        assert deleted.status_code == 200

        response = client.get("/api/auth/me", headers=headers)
        assert response.status_code == 401
        assert response.json()["message"] == "Token is not valid. User not found."

    def test_unexpected_failure_is_a_server_error(self, session):
        class BrokenTokens:
            def verify(self, token):
                raise RuntimeError("boom")

        with pytest.raises(AppError) as exc_info:
            _authenticate("Bearer abc", UserStore(session), BrokenTokens())
        assert exc_info.value.kind == ErrorKind.INTERNAL
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Server error during authentication."


class TestTasks:
    """Tests for /api/tasks."""

    def test_create_and_fetch(self, client):
        _, headers = register(client, "alice")
        response = client.post(
            "/api/tasks",
            headers=headers,
            json={"title": "  Pay rent  ", "priority": "high", "dueDate": FUTURE},
        )
        assert response.status_code == 201
        task = response.json()["data"]
        assert task["title"] == "Pay rent"
        assert task["priority"] == "high"
        assert task["category"] == "uncategorized"
        assert task["completed"] is False
        assert task["completedAt"] is None
        assert task["status"] == "due-soon"
        assert task["dueDate"].startswith("2026-03-05T09:00:00")

        fetched = client.get(f"/api/tasks/{task['id']}", headers=headers)
        assert fetched.status_code == 200
        assert fetched.json()["data"]["id"] == task["id"]

    def test_title_is_required(self, client):
        _, headers = register(client, "alice")
        response = client.post("/api/tasks", headers=headers, json={"title": "   "})
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "title"

    def test_past_due_date_is_rejected(self, client):
        _, headers = register(client, "alice")
        response = client.post("/api/tasks", headers=headers, json={"title": "Late", "dueDate": "2020-01-01T00:00:00Z"})
        assert response.status_code == 400
        assert response.json()["errors"] == [{"field": "dueDate", "message": "Due date must be in the future"}]

    def test_pay_rent_scenario(self, client, clock):
        _, headers = register(client, "alice")
        task = client.post("/api/tasks", headers=headers, json={"title": "Pay rent", "priority": "high"}).json()["data"]
        assert task["status"] == "pending"

        due = (clock.now + timedelta(hours=1)).isoformat()
        task = client.put(f"/api/tasks/{task['id']}", headers=headers, json={"dueDate": due}).json()["data"]
        assert task["status"] == "due-soon"

        clock.advance(days=1)
        task = client.get(f"/api/tasks/{task['id']}", headers=headers).json()["data"]
        assert task["status"] == "overdue"

        task = client.put(f"/api/tasks/{task['id']}", headers=headers, json={"completed": True}).json()["data"]
        assert task["status"] == "completed"
        assert task["completedAt"] is not None

    def test_toggle(self, client):
        _, headers = register(client, "alice")
        task = client.post("/api/tasks", headers=headers, json={"title": "Flip"}).json()["data"]

        toggled = client.patch(f"/api/tasks/{task['id']}/toggle", headers=headers).json()["data"]
        assert toggled["completed"] is True
        assert toggled["completedAt"] is not None

        toggled = client.patch(f"/api/tasks/{task['id']}/toggle", headers=headers).json()["data"]
        assert toggled["completed"] is False
        assert toggled["completedAt"] is None

    def test_other_users_tasks_are_not_found(self, client):
        _, alice = register(client, "alice")
        _, bob = register(client, "bob")
        task = client.post("/api/tasks", headers=alice, json={"title": "Private"}).json()["data"]

        for method in ("GET", "PUT", "DELETE"):
            kwargs = {"json": {"title": "Mine now"}} if method == "PUT" else {}
            response = client.request(method, f"/api/tasks/{task['id']}", headers=bob, **kwargs)
            assert response.status_code == 404
            assert response.json() == {"success": False, "message": "Task not found"}

        assert client.get(f"/api/tasks/{task['id']}", headers=alice).json()["data"]["title"] == "Private"

    def test_list_with_filters_and_pagination(self, client):
        _, headers = register(client, "alice")
        for i, priority in enumerate(["low", "high", "medium"]):
            client.post("/api/tasks", headers=headers, json={"title": f"Task {i}", "priority": priority, "category": "work"})
        client.post("/api/tasks", headers=headers, json={"title": "Groceries", "category": "home"})

        response = client.get(
            "/api/tasks",
            headers=headers,
            params={"category": "work", "sortBy": "priority", "sortOrder": "desc", "limit": 2},
        )
        body = response.json()
        assert response.status_code == 200
        assert [t["priority"] for t in body["data"]] == ["high", "medium"]
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}

    def test_list_rejects_unknown_sort_field(self, client):
        _, headers = register(client, "alice")
        response = client.get("/api/tasks", headers=headers, params={"sortBy": "owner"})
        assert response.status_code == 400

    def test_delete(self, client):
        _, headers = register(client, "alice")
        task = client.post("/api/tasks", headers=headers, json={"title": "Temp"}).json()["data"]
        response = client.delete(f"/api/tasks/{task['id']}", headers=headers)
        assert response.json() == {"success": True, "message": "Task deleted successfully"}
        assert client.get(f"/api/tasks/{task['id']}", headers=headers).status_code == 404

    def test_due_soon_overdue_and_stats(self, client, clock):
        _, headers = register(client, "alice")
        for title, offset in [("soon", timedelta(hours=3)), ("late", timedelta(hours=1)), ("far", timedelta(days=30))]:
            due = (clock.now + offset).isoformat()
            client.post("/api/tasks", headers=headers, json={"title": title, "dueDate": due})
        clock.advance(hours=2)

        due_soon = client.get("/api/tasks/due-soon", headers=headers).json()["data"]
        overdue = client.get("/api/tasks/overdue", headers=headers).json()["data"]
        stats = client.get("/api/tasks/stats/overview", headers=headers).json()["data"]

        assert [t["title"] for t in due_soon] == ["soon"]
        assert [t["title"] for t in overdue] == ["late"]
        assert overdue[0]["status"] == "overdue"
        assert stats["total"] == 3
        assert stats["overdue"] == 1
        assert stats["dueThisWeek"] == 1
        assert stats["byPriority"] == {"medium": 3}

    def test_bulk_update(self, client):
        _, headers = register(client, "alice")
        ids = [client.post("/api/tasks", headers=headers, json={"title": f"T{i}"}).json()["data"]["id"] for i in range(2)]
        response = client.patch(
            "/api/tasks/bulk",
            headers=headers,
            json={"taskIds": ids + [9999], "updates": {"completed": True}},
        )
        assert response.json()["data"] == {"modifiedCount": 2}

    def test_suggested_due_date(self, client):
        _, headers = register(client, "alice")
        response = client.get("/api/tasks/suggested-due-date", headers=headers, params={"priority": "high"})
        assert response.json()["data"] == {"priority": "high", "dueDate": "2026-03-03T09:00:00"}


class TestUsers:
    """Tests for /api/users."""

    def test_profile_with_stats(self, client):
        _, headers = register(client, "alice")
        client.post("/api/tasks", headers=headers, json={"title": "Urgent", "priority": "high"})
        data = client.get("/api/users/profile", headers=headers).json()["data"]
        assert data["user"]["username"] == "alice"
        assert data["stats"] == {"totalTasks": 1, "completedTasks": 0, "highPriorityTasks": 1}

    def test_update_profile_conflict(self, client):
        register(client, "alice")
        _, bob = register(client, "bob")
        response = client.put("/api/users/profile", headers=bob, json={"username": "alice"})
        assert response.status_code == 409
        assert response.json()["message"] == "Email or username already taken"

    def test_update_profile_requires_a_field(self, client):
        _, headers = register(client, "alice")
        response = client.put("/api/users/profile", headers=headers, json={})
        assert response.status_code == 400
        assert response.json()["errors"] == [
            {"field": "body", "message": "At least one field (username or email) is required"}
        ]

    def test_delete_account_wrong_password(self, client):
        _, headers = register(client, "alice")
        response = client.request("DELETE", "/api/users/account", headers=headers, json={"password": "nope"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid password"

    def test_export(self, client):
        _, headers = register(client, "alice")
        client.post("/api/tasks", headers=headers, json={"title": "Keep a copy"})
        response = client.get("/api/users/export", headers=headers)
        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="taskflow-export-alice.json"'
        data = response.json()["data"]
        assert data["totalTasks"] == 1
        assert data["tasks"][0]["title"] == "Keep a copy"
        assert data["exportedAt"] == "2026-03-02T09:00:00"

    def test_activity(self, client):
        _, headers = register(client, "alice")
        client.post("/api/tasks", headers=headers, json={"title": "Today"})
        data = client.get("/api/users/activity", headers=headers).json()["data"]
        assert data == [{"date": "2026-03-02", "tasksCreated": 1, "tasksCompleted": 0}]

    def test_search_requires_admin(self, client):
        _, headers = register(client, "alice")
        response = client.get("/api/users/search", headers=headers, params={"q": "ali"})
        assert response.status_code == 403
        assert response.json() == {"success": False, "message": "Admin access required."}

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer garbage"}])
    def test_search_without_identity(self, client, headers):
        response = client.get("/api/users/search", headers=headers)
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Admin access required."}

    def test_search_as_admin(self, client, app):
        admin, headers = register(client, "root_user")
        register(client, "alice")
        promote(app, admin["id"])

        response = client.get("/api/users/search", headers=headers, params={"q": "ALI"})
        assert response.status_code == 200
        body = response.json()
        assert [u["username"] for u in body["data"]] == ["alice"]
        assert body["pagination"]["total"] == 1


class TestRateLimit:
    """Tests for the per-client request limit on /api routes."""

    @pytest.fixture
    def limited_client(self, settings, clock):
        app = create_app(settings.model_copy(update={"rate_limit_max_requests": 2}), clock=clock)
        with TestClient(app) as client:
            yield client

    def test_requests_over_the_limit_get_429(self, limited_client):
        for _ in range(2):
            response = limited_client.get("/api/auth/check-username", params={"username": "zed"})
            assert response.status_code == 200
            assert "ratelimit-remaining" in response.headers

        response = limited_client.get("/api/auth/check-username", params={"username": "zed"})
        assert response.status_code == 429
        assert response.json() == {"success": False, "message": "Too many requests, please try again later."}
        assert int(response.headers["retry-after"]) >= 1

    def test_health_is_not_limited(self, limited_client):
        for _ in range(5):
            assert limited_client.get("/health").status_code == 200

    def test_forwarded_for_header_is_ignored_by_default(self, limited_client):
        statuses = [
            limited_client.get(
                "/api/auth/check-email",
                params={"email": "zed@example.com"},
                headers={"X-Forwarded-For": f"10.0.0.{i}"},
            ).status_code
            for i in range(20)
        ]
        assert statuses[:2] == [200, 200]
        assert set(statuses[2:]) == {429}

    def test_forwarded_for_header_is_used_behind_trusted_proxy(self, settings, clock):
        app = create_app(
            settings.model_copy(update={"rate_limit_max_requests": 2, "trust_proxy": True}),
            clock=clock,
        )
        headers = {"X-Forwarded-For": "10.0.0.1, 172.16.0.1"}
        with TestClient(app) as client:
            for _ in range(2):
                assert client.get("/api/health", headers=headers).status_code == 200
            assert client.get("/api/health", headers=headers).status_code == 429
            other = client.get("/api/health", headers={"X-Forwarded-For": "10.0.0.2"})
            assert other.status_code == 200


class TestMisc:
    def test_health(self, client):
        for path in ("/health", "/api/health"):
            body = client.get(path).json()
            assert body["status"] == "OK"
            assert body["environment"] == "test"
            assert body["uptime"] >= 0
            assert "timestamp" in body

    def test_root(self, client):
        assert client.get("/").json()["success"] is True

    def test_unknown_route(self, client):
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "API endpoint not found"}
