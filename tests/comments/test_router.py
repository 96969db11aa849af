"""Tests for the comment endpoints under /api/posts/{post_id}/comments."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from src.comments.exceptions import CommentStoreUnavailableError
from src.comments.models import Comment
from src.comments.service import CommentService
from src.comments.store import CommentStore


@pytest.fixture
def post_id(client: TestClient) -> int:
    response = client.post("/api/posts", data={"author": "alice", "content": "hi"})
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def failing_store(client: TestClient) -> MagicMock:
    """Swap the running comment service for one whose store is down."""
    store = MagicMock(spec=CommentStore)
    store.fetch_post_comments = AsyncMock(side_effect=CommentStoreUnavailableError())
    store.post_exists = AsyncMock(return_value=True)
    store.get_comment = AsyncMock(return_value=None)
    store.insert_comment = AsyncMock(side_effect=CommentStoreUnavailableError())
    client.app.state.comment_service = CommentService(store=store)
    return store


@pytest.fixture
def orphaned_store(client: TestClient) -> MagicMock:
    """Swap in a store holding a reply whose parent row is gone."""
    store = MagicMock(spec=CommentStore)
    store.fetch_post_comments = AsyncMock(
        return_value=[
            Comment(1, 1, "alice", "root", None, datetime(2024, 1, 1, tzinfo=UTC)),
            Comment(9, 1, "bob", "lost", 99, datetime(2024, 1, 2, tzinfo=UTC)),
        ]
    )
    client.app.state.comment_service = CommentService(store=store)
    return store


class TestAddCommentEndpoint:
    """Tests for POST /api/posts/{post_id}/comments."""

    def test_missing_author_is_400(self, client: TestClient, post_id: int):
        response = client.post(
            f"/api/posts/{post_id}/comments", json={"author": "", "text": "hi"}
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Text and author are required"

    def test_missing_fields_is_400(self, client: TestClient, post_id: int):
        response = client.post(f"/api/posts/{post_id}/comments", json={})

        assert response.status_code == 400

    def test_unknown_post_is_404(self, client: TestClient):
        response = client.post(
            "/api/posts/9999/comments", json={"author": "bob", "text": "hi"}
        )

        assert response.status_code == 404

    def test_malformed_json_is_400(self, client: TestClient, post_id: int):
        response = client.post(
            f"/api/posts/{post_id}/comments",
            content=b'{"author": "bob",',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid JSON payload"

    def test_created_comment_is_returned(self, client: TestClient, post_id: int):
        response = client.post(
            f"/api/posts/{post_id}/comments", json={"author": "bob", "text": "hi"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Comment added successfully"
        assert data["comment"]["post_id"] == post_id
        assert data["comment"]["author"] == "bob"
        assert data["comment"]["parent_comment_id"] is None
        assert data["comment"]["replies"] == []

    def test_store_failure_is_500(self, client: TestClient, failing_store):
        response = client.post(
            "/api/posts/1/comments", json={"author": "bob", "text": "hi"}
        )

        assert response.status_code == 500
        assert response.json()["message"] == "Server error"


class TestListCommentsEndpoint:
    """Tests for GET /api/posts/{post_id}/comments."""

    def test_no_comments_is_empty_list(self, client: TestClient, post_id: int):
        response = client.get(f"/api/posts/{post_id}/comments")

        assert response.status_code == 200
        assert response.json() == []

    def test_thread_is_nested(self, client: TestClient, post_id: int):
        # Arrange
        url = f"/api/posts/{post_id}/comments"
        root = client.post(url, json={"author": "bob", "text": "root"}).json()
        root_id = root["comment"]["id"]
        reply = client.post(
            url,
            json={"author": "carol", "text": "reply", "parent_comment_id": root_id},
        ).json()
        client.post(
            url,
            json={
                "author": "dave",
                "text": "nested",
                "parent_comment_id": reply["comment"]["id"],
            },
        )

        # Act
        response = client.get(url)

        # Assert
        assert response.status_code == 200
        tree = response.json()
        assert len(tree) == 1
        assert tree[0]["id"] == root_id
        assert tree[0]["replies"][0]["author"] == "carol"
        assert tree[0]["replies"][0]["replies"][0]["text"] == "nested"

    def test_store_failure_is_500(self, client: TestClient, failing_store):
        response = client.get("/api/posts/1/comments")

        assert response.status_code == 500
        assert response.json()["message"] == "Server error"

    def test_orphaned_reply_is_500(self, client: TestClient, orphaned_store):
        response = client.get("/api/posts/1/comments")

        assert response.status_code == 500
        data = response.json()
        assert data["error"] is True
        assert data["message"] == "Server error"
        orphaned_store.fetch_post_comments.assert_awaited_once_with(1)

    def test_non_numeric_post_id_is_422(self, client: TestClient):
        response = client.get("/api/posts/abc/comments")

        assert response.status_code == 422
