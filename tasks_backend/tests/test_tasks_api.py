from datetime import datetime
from unittest.mock import Mock

from src.api.repositories import TaskRepository


def create_task(client, headers, text="Test Task"):
    res = client.post("/tasks", json={"text": text}, headers=headers)
    assert res.status_code == 200, res.text
    return res.json()


def assert_task_shape(task: dict):
    for key in ["id", "ownerId", "text", "completed", "createdAt"]:
        assert key in task
    assert isinstance(task["id"], str)
    assert isinstance(task["text"], str)
    assert isinstance(task["completed"], bool)
    datetime.fromisoformat(task["createdAt"])


class TestAuthGate:
    def test_missing_header_is_rejected_before_store_access(self, client, app):
        spy = Mock(spec=TaskRepository)
        app.state.tasks = spy

        requests = [
            ("GET", "/tasks", None),
            ("POST", "/tasks", {"text": "x"}),
            ("GET", "/tasks/abc", None),
            ("PUT", "/tasks/abc", {"completed": True}),
            ("DELETE", "/tasks/abc", None),
        ]
        for method, path, body in requests:
            res = client.request(method, path, json=body)
            assert res.status_code == 401
            assert res.json() == {"message": "Unauthorized"}

        assert spy.method_calls == []

    def test_invalid_token(self, client):
        res = client.get("/tasks", headers={"Authorization": "not-a-token"})
        assert res.status_code == 401
        assert res.json() == {"message": "Invalid token"}

    def test_bearer_prefix_is_accepted(self, client, alice):
        headers = {"Authorization": f"Bearer {alice['Authorization']}"}
        res = client.get("/tasks", headers=headers)
        assert res.status_code == 200

    def test_raw_token_is_accepted(self, client, alice):
        res = client.get("/tasks", headers=alice)
        assert res.status_code == 200
        assert res.json() == []


class TestTasksCRUD:
    def test_create_task(self, client, app, alice):
        task = create_task(client, alice, "Buy milk")
        assert_task_shape(task)
        assert task["text"] == "Buy milk"
        assert task["completed"] is False
        assert task["ownerId"] == app.state.users.find_by_username("alice")["id"]

    def test_create_ignores_client_supplied_owner(self, client, app, alice, bob):
        res = client.post(
            "/tasks",
            json={"text": "Mine", "ownerId": "someone-else", "userId": "someone-else"},
            headers=alice,
        )
        assert res.status_code == 200
        assert res.json()["ownerId"] == app.state.users.find_by_username("alice")["id"]

    def test_create_empty_text(self, client, alice):
        for payload in ({"text": "  "}, {"text": ""}, {}):
            res = client.post("/tasks", json=payload, headers=alice)
            assert res.status_code == 400
            assert res.json() == {"message": "Task cannot be empty"}

    def test_get_task_and_not_found(self, client, alice):
        task = create_task(client, alice, "Read book")

        res_get = client.get(f"/tasks/{task['id']}", headers=alice)
        assert res_get.status_code == 200
        assert res_get.json() == task

        res_404 = client.get("/tasks/does-not-exist", headers=alice)
        assert res_404.status_code == 404
        assert res_404.json() == {"message": "Task not found"}

    def test_update_partial(self, client, alice):
        task = create_task(client, alice, "Partial")

        res = client.put(f"/tasks/{task['id']}", json={"completed": True}, headers=alice)
        assert res.status_code == 200
        updated = res.json()
        assert updated["completed"] is True
        # text should remain unchanged
        assert updated["text"] == "Partial"
        assert updated["createdAt"] == task["createdAt"]

        res = client.put(f"/tasks/{task['id']}", json={"text": "Renamed"}, headers=alice)
        assert res.json()["text"] == "Renamed"
        assert res.json()["completed"] is True

    def test_update_explicit_false_is_applied(self, client, alice):
        task = create_task(client, alice, "Toggle")
        client.put(f"/tasks/{task['id']}", json={"completed": True}, headers=alice)

        res = client.put(f"/tasks/{task['id']}", json={"completed": False}, headers=alice)
        assert res.status_code == 200
        assert res.json()["completed"] is False

    def test_update_empty_body_returns_task_unchanged(self, client, alice):
        task = create_task(client, alice, "Same")
        res = client.put(f"/tasks/{task['id']}", json={}, headers=alice)
        assert res.status_code == 200
        assert res.json() == task

    def test_update_blank_text(self, client, alice):
        task = create_task(client, alice, "Keep me")
        res = client.put(f"/tasks/{task['id']}", json={"text": "   "}, headers=alice)
        assert res.status_code == 400
        assert res.json() == {"message": "Task cannot be empty"}
        assert client.get(f"/tasks/{task['id']}", headers=alice).json()["text"] == "Keep me"

    def test_update_not_found(self, client, alice):
        res = client.put("/tasks/123456", json={"text": "Nope"}, headers=alice)
        assert res.status_code == 404
        assert res.json() == {"message": "Task not found"}

    def test_update_bad_type(self, client, alice):
        task = create_task(client, alice)
        res = client.put(f"/tasks/{task['id']}", json={"completed": {"a": 1}}, headers=alice)
        assert res.status_code == 400
        assert res.json()["error"] == "ValidationError"

    def test_delete_is_idempotent(self, client, alice):
        task = create_task(client, alice, "ToDelete")

        for _ in range(2):
            res = client.delete(f"/tasks/{task['id']}", headers=alice)
            assert res.status_code == 200
            assert res.json() == {"message": "Task deleted successfully"}

        assert client.get(f"/tasks/{task['id']}", headers=alice).status_code == 404
        assert client.get("/tasks", headers=alice).json() == []


class TestOwnership:
    def test_tasks_are_invisible_to_other_users(self, client, alice, bob):
        task = create_task(client, alice, "Alice only")

        assert client.get("/tasks", headers=bob).json() == []
        assert client.get(f"/tasks/{task['id']}", headers=bob).status_code == 404

        res_put = client.put(f"/tasks/{task['id']}", json={"completed": True}, headers=bob)
        assert res_put.status_code == 404

        # delete by a non-owner reports success but removes nothing
        res_del = client.delete(f"/tasks/{task['id']}", headers=bob)
        assert res_del.status_code == 200

        still_there = client.get(f"/tasks/{task['id']}", headers=alice).json()
        assert still_there["completed"] is False
        assert [t["id"] for t in client.get("/tasks", headers=alice).json()] == [task["id"]]


class TestListing:
    def test_list_newest_first(self, client, alice):
        created = [create_task(client, alice, f"Task {i}") for i in range(3)]

        res = client.get("/tasks", headers=alice)
        assert res.status_code == 200
        items = res.json()
        assert [t["id"] for t in items] == [t["id"] for t in reversed(created)]

        created_ts = [datetime.fromisoformat(t["createdAt"]) for t in items]
        assert created_ts == sorted(created_ts, reverse=True)
