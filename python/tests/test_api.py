"""Tests for the message board HTTP API.

The app runs with its lifespan over an injected FakeMessageStore, so every
request goes through the mutation engine and the reconciliation loop.
"""

from fastapi.testclient import TestClient

from converse.services.board import DELETE_ERROR_MESSAGE, SEND_ERROR_MESSAGE
from converse.services.reconcile import FETCH_ERROR_MESSAGE
from converse.store.fake import FakeMessageStore
from tests.helpers import data, error_code


def post_message(client: TestClient, content: str, path: str = "/messages") -> dict:
    response = client.post(path, json={"content": content})
    assert response.status_code == 201, response.text
    return data(response)


def board_ids(client: TestClient, **params) -> list[tuple[int, int]]:
    nodes = data(client.get("/messages", params=params))["nodes"]
    return [(node["message"]["id"], node["depth"]) for node in nodes]


class TestCreateMessage:
    """Tests for POST /messages"""

    def test_create_root_message(self, client: TestClient):
        message = post_message(client, "Hello")

        assert message["content"] == "Hello"
        assert message["parent_id"] is None
        assert message["version"] == 1

    def test_created_message_visible_immediately(self, client: TestClient):
        message = post_message(client, "Hello")

        assert board_ids(client) == [(message["id"], 0)]

    def test_empty_content_is_a_no_op(self, client: TestClient, store: FakeMessageStore):
        response = client.post("/messages", json={"content": "   "})

        assert response.status_code == 204
        assert store.ids == []

    def test_missing_content_rejected(self, client: TestClient):
        response = client.post("/messages", json={})

        assert response.status_code == 400
        assert error_code(response) == "E_INVALID_REQUEST"

    def test_malformed_json_rejected(self, client: TestClient):
        response = client.post(
            "/messages", content=b"{not json", headers={"content-type": "application/json"}
        )

        assert response.status_code == 400
        assert error_code(response) == "E_INVALID_REQUEST"

    def test_store_failure_returns_send_error_and_banner(
        self, client: TestClient, store: FakeMessageStore
    ):
        store.fail_on("insert")

        response = client.post("/messages", json={"content": "Hello"})

        assert response.status_code == 503
        assert error_code(response) == "E_STORE_UNAVAILABLE"
        assert response.json()["error"]["message"] == SEND_ERROR_MESSAGE
        assert data(client.get("/messages"))["error"] == SEND_ERROR_MESSAGE


class TestEditAndBranch:
    """Tests for POST /messages/{id}/versions and /branches"""

    def test_edit_creates_next_version(self, client: TestClient):
        hello = post_message(client, "Hello")

        edited = post_message(client, "Hello v2", f"/messages/{hello['id']}/versions")

        assert edited["version"] == 2
        assert edited["parent_id"] is None
        assert board_ids(client) == [(edited["id"], 0), (hello["id"], 0)]

    def test_branch_creates_reply(self, client: TestClient):
        hello = post_message(client, "Hello")

        reply = post_message(client, "Reply A", f"/messages/{hello['id']}/branches")

        assert reply["parent_id"] == hello["id"]
        assert reply["version"] == 1

    def test_unknown_target_is_404(self, client: TestClient):
        response = client.post("/messages/999/versions", json={"content": "x"})

        assert response.status_code == 404
        assert error_code(response) == "E_MESSAGE_NOT_FOUND"

    def test_branch_store_failure_returns_send_error(
        self, client: TestClient, store: FakeMessageStore
    ):
        hello = post_message(client, "Hello")
        store.fail_on("insert")

        response = client.post(f"/messages/{hello['id']}/branches", json={"content": "Reply"})

        assert response.status_code == 503
        assert response.json()["error"]["message"] == SEND_ERROR_MESSAGE

    def test_empty_edit_is_a_no_op(self, client: TestClient, store: FakeMessageStore):
        hello = post_message(client, "Hello")

        response = client.post(f"/messages/{hello['id']}/versions", json={"content": ""})

        assert response.status_code == 204
        assert store.ids == [hello["id"]]


class TestBoard:
    """Tests for GET /messages and GET /messages/{id}/children"""

    def test_empty_board(self, client: TestClient):
        board = data(client.get("/messages"))

        assert board["nodes"] == []
        assert board["error"] is None
        assert board["generation"] >= 1

    def test_replies_hidden_until_expanded(self, client: TestClient):
        hello = post_message(client, "Hello")
        reply = post_message(client, "Reply", f"/messages/{hello['id']}/branches")

        assert board_ids(client) == [(hello["id"], 0)]
        assert board_ids(client, expanded=[hello["id"]]) == [(hello["id"], 0), (reply["id"], 1)]

    def test_node_fields(self, client: TestClient):
        hello = post_message(client, "Hello")

        node = data(client.get("/messages", params={"expanded": [hello["id"]]}))["nodes"][0]

        assert node["branches_visible"] is True
        assert node["relative_date"].endswith("days ago")
        assert node["message"]["content"] == "Hello"

    def test_children_lists_every_version(self, client: TestClient):
        hello = post_message(client, "Hello")
        reply = post_message(client, "Reply", f"/messages/{hello['id']}/branches")
        reply_v2 = post_message(client, "Reply v2", f"/messages/{reply['id']}/versions")

        children = data(client.get(f"/messages/{hello['id']}/children"))

        assert [c["id"] for c in children] == [reply_v2["id"], reply["id"]]

    def test_children_of_unknown_message_is_404(self, client: TestClient):
        response = client.get("/messages/999/children")

        assert response.status_code == 404
        assert error_code(response) == "E_MESSAGE_NOT_FOUND"


class TestDeleteMessage:
    """Tests for DELETE /messages/{id}"""

    def test_delete_requires_confirmation(self, client: TestClient, store: FakeMessageStore):
        hello = post_message(client, "Hello")

        response = client.delete(f"/messages/{hello['id']}")

        assert response.status_code == 409
        assert error_code(response) == "E_CONFIRMATION_REQUIRED"
        assert store.ids == [hello["id"]]

    def test_delete_removes_subtree_only(self, client: TestClient):
        hello = post_message(client, "Hello")
        hello_v2 = post_message(client, "Hello v2", f"/messages/{hello['id']}/versions")
        reply = post_message(client, "Reply A", f"/messages/{hello['id']}/branches")

        response = client.delete(f"/messages/{hello['id']}", params={"confirm": "true"})

        assert response.status_code == 200
        assert data(response) == {"deleted_ids": [reply["id"], hello["id"]]}
        assert board_ids(client) == [(hello_v2["id"], 0)]

    def test_delete_missing_message_succeeds_with_nothing_deleted(self, client: TestClient):
        response = client.delete("/messages/999", params={"confirm": "true"})

        assert response.status_code == 200
        assert data(response) == {"deleted_ids": []}

    def test_store_failure_returns_delete_error_and_banner(
        self, client: TestClient, store: FakeMessageStore
    ):
        hello = post_message(client, "Hello")
        store.fail_on("delete")

        response = client.delete(f"/messages/{hello['id']}", params={"confirm": "true"})

        assert response.status_code == 503
        assert response.json()["error"]["message"] == DELETE_ERROR_MESSAGE
        assert data(client.get("/messages"))["error"] == DELETE_ERROR_MESSAGE
        assert store.ids == [hello["id"]]


class TestRefresh:
    """Tests for POST /messages/refresh"""

    def test_refresh_success(self, client: TestClient):
        response = client.post("/messages/refresh")

        body = data(response)
        assert body["refreshed"] is True
        assert body["error"] is None

    def test_refresh_failure_keeps_board(self, client: TestClient, store: FakeMessageStore):
        hello = post_message(client, "Hello")
        store.fail_on("select")

        body = data(client.post("/messages/refresh"))

        assert body["refreshed"] is False
        assert body["error"] == FETCH_ERROR_MESSAGE
        board = data(client.get("/messages"))
        assert board["error"] == FETCH_ERROR_MESSAGE
        assert [n["message"]["id"] for n in board["nodes"]] == [hello["id"]]


class TestFullScenario:
    """Post, edit, branch and delete over HTTP."""

    def test_conversation(self, client: TestClient):
        hello = post_message(client, "Hello")
        hello_v2 = post_message(client, "Hello v2", f"/messages/{hello['id']}/versions")
        reply = post_message(client, "Reply A", f"/messages/{hello['id']}/branches")

        assert board_ids(client, expanded=[hello["id"]]) == [
            (hello_v2["id"], 0),
            (hello["id"], 0),
            (reply["id"], 1),
        ]

        client.delete(f"/messages/{hello['id']}", params={"confirm": "true"})

        assert board_ids(client, expanded=[hello["id"]]) == [(hello_v2["id"], 0)]
