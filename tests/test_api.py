from datetime import datetime
from http import HTTPStatus

import pytest
from fastapi.testclient import TestClient
from pytest_assume.plugin import assume

from app.helpers.config_models.mail import ConsoleModel
from app.main import create_api
from app.persistence.console import ConsoleMail
from app.persistence.memory import MAX_DEPTH, MemoryStore


def _create(client: TestClient, **body) -> dict:
    res = client.post("/api/tasks", json=body)
    assert res.status_code == HTTPStatus.CREATED, res.text
    return res.json()


def test_list_empty(client: TestClient) -> None:
    res = client.get("/api/tasks")

    assume(res.status_code == HTTPStatus.OK)
    assume(res.json() == [])


def test_create(client: TestClient) -> None:
    task = _create(client, title="Test Task", description="Test Description")

    assume(task["title"] == "Test Task")
    assume(task["description"] == "Test Description")
    assume(task["completed"] is False)
    assume(task["id"])
    assume(task["checklist"] == [])
    assume(task["children"] == [])
    assume(task["email_reminder"] is None)
    assume(task["created_at"] == task["updated_at"])


@pytest.mark.parametrize(
    "body",
    [
        pytest.param({"description": "No title task"}, id="missing"),
        pytest.param({"title": ""}, id="empty"),
        pytest.param(None, id="no_body"),
    ],
)
def test_create_without_title(client: TestClient, body: dict | None) -> None:
    res = client.post("/api/tasks", json=body)

    assume(res.status_code == HTTPStatus.BAD_REQUEST)
    assume(res.json()["error"]["message"] == "Title is required")
    assume(client.get("/api/tasks").json() == [])


def test_create_malformed(client: TestClient) -> None:
    res = client.post(
        "/api/tasks",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assume(res.status_code == HTTPStatus.UNPROCESSABLE_ENTITY)
    assume(res.json()["error"]["message"] == "Validation error")


def test_create_child(client: TestClient) -> None:
    parent = _create(client, title="Parent Task")
    child = _create(client, title="Child Task", parent_id=parent["id"])

    res = client.get(f"/api/tasks/{parent['id']}")
    assume(res.status_code == HTTPStatus.OK)
    assume(len(res.json()["children"]) == 1)
    assume(res.json()["children"][0]["title"] == "Child Task")

    # Found directly, not only through its parent
    res = client.get(f"/api/tasks/{child['id']}")
    assume(res.status_code == HTTPStatus.OK)
    assume(res.json()["title"] == "Child Task")

    # Only the parent is at the root
    assume([task["id"] for task in client.get("/api/tasks").json()] == [parent["id"]])


def test_create_under_missing_parent(client: TestClient) -> None:
    res = client.post("/api/tasks", json={"title": "Orphan", "parent_id": "nope"})

    assume(res.status_code == HTTPStatus.NOT_FOUND)
    assume(res.json()["error"]["message"] == "Parent task not found")
    assume(client.get("/api/tasks").json() == [])


def test_get_missing(client: TestClient) -> None:
    res = client.get("/api/tasks/non-existent-id")

    assume(res.status_code == HTTPStatus.NOT_FOUND)
    assume(res.json()["error"]["message"] == "Task not found")


def test_update(client: TestClient) -> None:
    task = _create(client, title="Original Title", description="Kept")

    res = client.put(
        f"/api/tasks/{task['id']}",
        json={"title": "Updated Title", "completed": True},
    )

    assume(res.status_code == HTTPStatus.OK)
    updated = res.json()
    assume(updated["title"] == "Updated Title")
    assume(updated["completed"] is True)
    assume(updated["description"] == "Kept")
    assume(
        datetime.fromisoformat(updated["updated_at"])
        > datetime.fromisoformat(updated["created_at"])
    )


def test_update_invalid(client: TestClient) -> None:
    task = _create(client, title="Task")

    res = client.put(f"/api/tasks/{task['id']}", json={"title": ""})
    assume(res.status_code == HTTPStatus.BAD_REQUEST)

    res = client.put(f"/api/tasks/{task['id']}", json={"completed": "maybe"})
    assume(res.status_code == HTTPStatus.UNPROCESSABLE_ENTITY)

    assume(client.get(f"/api/tasks/{task['id']}").json() == task)


def test_update_missing(client: TestClient) -> None:
    res = client.put("/api/tasks/non-existent-id", json={"completed": True})

    assert res.status_code == HTTPStatus.NOT_FOUND


def test_delete(client: TestClient) -> None:
    parent = _create(client, title="Task to Delete")
    child = _create(client, title="Child", parent_id=parent["id"])

    res = client.delete(f"/api/tasks/{parent['id']}")
    assume(res.status_code == HTTPStatus.OK)
    assume(res.json() == {"message": "Task deleted successfully"})

    # Subtree is gone too
    assume(client.get(f"/api/tasks/{parent['id']}").status_code == HTTPStatus.NOT_FOUND)
    assume(client.get(f"/api/tasks/{child['id']}").status_code == HTTPStatus.NOT_FOUND)

    # Second call reports not found
    assume(client.delete(f"/api/tasks/{parent['id']}").status_code == HTTPStatus.NOT_FOUND)


def test_checklist(client: TestClient) -> None:
    """
    Test the checklist of a task through the REST API.

    Steps:
    1. Add an item
    2. Complete it
    3. Delete it
    4. Check the task checklist is empty again
    """
    task = _create(client, title="Task with Checklist")

    res = client.post(
        f"/api/tasks/{task['id']}/checklist", json={"text": "Checklist Item 1"}
    )
    assume(res.status_code == HTTPStatus.CREATED)
    item = res.json()
    assume(item["text"] == "Checklist Item 1")
    assume(item["completed"] is False)
    assume(item["id"])

    res = client.put(
        f"/api/tasks/{task['id']}/checklist/{item['id']}", json={"completed": True}
    )
    assume(res.status_code == HTTPStatus.OK)
    assume(res.json()["completed"] is True)
    assume(res.json()["text"] == "Checklist Item 1")

    res = client.delete(f"/api/tasks/{task['id']}/checklist/{item['id']}")
    assume(res.status_code == HTTPStatus.OK)
    assume(res.json() == {"message": "Checklist item deleted successfully"})

    assume(client.get(f"/api/tasks/{task['id']}").json()["checklist"] == [])


def test_checklist_errors(client: TestClient) -> None:
    task = _create(client, title="Task")

    res = client.post(f"/api/tasks/{task['id']}/checklist", json={})
    assume(res.status_code == HTTPStatus.BAD_REQUEST)
    assume(res.json()["error"]["message"] == "Checklist item text is required")

    res = client.post("/api/tasks/nope/checklist", json={"text": "Item"})
    assume(res.status_code == HTTPStatus.NOT_FOUND)

    res = client.put(f"/api/tasks/{task['id']}/checklist/nope", json={"completed": True})
    assume(res.status_code == HTTPStatus.NOT_FOUND)
    assume(res.json()["error"]["message"] == "Checklist item not found")

    res = client.delete(f"/api/tasks/{task['id']}/checklist/nope")
    assume(res.status_code == HTTPStatus.NOT_FOUND)

    res = client.delete("/api/tasks/nope/checklist/nope")
    assume(res.status_code == HTTPStatus.NOT_FOUND)
    assume(res.json()["error"]["message"] == "Task not found")


def test_email(client: TestClient, mail: ConsoleMail) -> None:
    task = _create(client, title="Dentist")

    res = client.post(f"/api/tasks/{task['id']}/email", json={"to": "me@example.com"})

    assume(res.status_code == HTTPStatus.OK)
    assume(res.json() == {"message": "Email sent successfully", "preview_url": None})
    assume(mail.outbox[0].subject == "Reminder: Dentist")
    reminder = client.get(f"/api/tasks/{task['id']}").json()["email_reminder"]
    assume(reminder and reminder["to"] == "me@example.com")


def test_email_errors(client: TestClient) -> None:
    task = _create(client, title="Dentist")

    res = client.post(f"/api/tasks/{task['id']}/email", json={})
    assume(res.status_code == HTTPStatus.BAD_REQUEST)
    assume(res.json()["error"]["message"] == "Email recipient is required")

    res = client.post("/api/tasks/nope/email", json={"to": "me@example.com"})
    assume(res.status_code == HTTPStatus.NOT_FOUND)


def test_email_relay_failure(store: MemoryStore, failing_mail: ConsoleMail) -> None:
    with TestClient(create_api(store=store, mail=failing_mail)) as client:
        task = _create(client, title="Dentist")

        res = client.post(
            f"/api/tasks/{task['id']}/email", json={"to": "me@example.com"}
        )

        assume(res.status_code == HTTPStatus.INTERNAL_SERVER_ERROR)
        assume(res.json()["error"]["message"] == "Failed to send email")
        assume(res.json()["error"]["details"])
        assume(client.get(f"/api/tasks/{task['id']}").json() == task)


def test_instances_are_independent() -> None:
    """
    Test each application owns its store.
    """
    mail = ConsoleMail(ConsoleModel())
    with (
        TestClient(create_api(mail=mail)) as first,
        TestClient(create_api(mail=mail)) as second,
    ):
        _create(first, title="Only here")

        assume(len(first.get("/api/tasks").json()) == 1)
        assume(second.get("/api/tasks").json() == [])


def test_board(client: TestClient) -> None:
    parent = _create(client, title="Groceries & more")
    _create(client, title="Milk", parent_id=parent["id"])
    item = client.post(
        f"/api/tasks/{parent['id']}/checklist", json={"text": "Bread"}
    ).json()
    client.post(f"/api/tasks/{parent['id']}/checklist", json={"text": "Eggs"})
    client.put(
        f"/api/tasks/{parent['id']}/checklist/{item['id']}", json={"completed": True}
    )

    res = client.get("/")

    assume(res.status_code == HTTPStatus.OK)
    assume(res.headers["content-type"].startswith("text/html"))
    assume("Groceries &amp; more" in res.text)
    assume("Milk" in res.text)
    assume("width: 50.0%" in res.text)


def test_board_empty(client: TestClient) -> None:
    res = client.get("/")

    assume(res.status_code == HTTPStatus.OK)
    assume("No tasks yet" in res.text)


def test_health(client: TestClient, store: MemoryStore, failing_mail: ConsoleMail) -> None:
    assume(client.get("/health/liveness").status_code == HTTPStatus.OK)

    res = client.get("/health/readiness")
    assume(res.status_code == HTTPStatus.OK)
    assume(res.json()["status"] == "ok")

    with TestClient(create_api(store=store, mail=failing_mail)) as failing:
        res = failing.get("/health/readiness")
        assume(res.status_code == HTTPStatus.SERVICE_UNAVAILABLE)
        assume(res.json()["status"] == "fail")
        assume(
            {"id": "mail", "status": "fail"} in res.json()["checks"]
        )


def test_unknown_route(client: TestClient) -> None:
    res = client.get("/api/unknown")

    assume(res.status_code == HTTPStatus.NOT_FOUND)
    assume(res.json()["error"]["message"] == "Not Found")


def test_create_child_with_camel_case_parent(client: TestClient) -> None:
    parent = _create(client, title="Groceries")

    child = _create(client, title="Milk", parentId=parent["id"])

    assume([task["id"] for task in client.get("/api/tasks").json()] == [parent["id"]])
    assume(client.get(f"/api/tasks/{parent['id']}").json()["children"][0]["id"] == child["id"])


def test_create_under_missing_camel_case_parent(client: TestClient) -> None:
    res = client.post("/api/tasks", json={"title": "Milk", "parentId": "nope"})

    assume(res.status_code == HTTPStatus.NOT_FOUND)
    assume(res.json()["error"]["message"] == "Parent task not found")
    assume(client.get("/api/tasks").json() == [])


@pytest.mark.parametrize(
    "path, body",
    [
        pytest.param("/api/tasks", {"title": "Milk", "parent": "nope"}, id="create"),
        pytest.param("/api/tasks/{id}", {"titel": "Typo"}, id="update"),
        pytest.param("/api/tasks/{id}/checklist", {"text": "Bread", "done": True}, id="checklist"),
        pytest.param("/api/tasks/{id}/email", {"to": "me@example.com", "cc": "x"}, id="email"),
    ],
)
def test_unknown_fields_rejected(client: TestClient, path: str, body: dict) -> None:
    """
    Test a misspelled field is reported instead of being ignored.
    """
    task = _create(client, title="Task")
    url = path.format(id=task["id"])

    res = client.put(url, json=body) if path == "/api/tasks/{id}" else client.post(url, json=body)

    assume(res.status_code == HTTPStatus.UNPROCESSABLE_ENTITY)
    assume(res.json()["error"]["message"] == "Validation error")
    assume(client.get("/api/tasks").json() == [task])


def test_update_camel_case_reminder(client: TestClient) -> None:
    task = _create(client, title="Task")

    res = client.put(
        f"/api/tasks/{task['id']}",
        json={"emailReminder": {"sentAt": "2024-01-01T00:00:00Z", "to": "me@example.com"}},
    )

    assume(res.status_code == HTTPStatus.OK)
    # Answers stay in snake_case
    assume(res.json()["email_reminder"]["to"] == "me@example.com")
    assume(res.json()["email_reminder"]["sent_at"].startswith("2024-01-01"))


def test_create_nested_too_deep(client: TestClient) -> None:
    """
    Test the nesting depth is capped, and the forest stays readable at the cap.

    Steps:
    1. Create a chain of `MAX_DEPTH` nested tasks
    2. Check one more level is refused
    3. Check the list and the board still render
    """
    parent_id = None
    for i in range(MAX_DEPTH):
        parent_id = _create(client, title=f"Level {i + 1}", parent_id=parent_id)["id"]

    res = client.post("/api/tasks", json={"title": "Too deep", "parent_id": parent_id})
    assume(res.status_code == HTTPStatus.BAD_REQUEST)
    assume(res.json()["error"]["message"] == "Task is nested too deep")

    assume(client.get("/api/tasks").status_code == HTTPStatus.OK)
    assume(client.get("/").status_code == HTTPStatus.OK)
