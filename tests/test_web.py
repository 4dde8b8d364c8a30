"""
Tests for ModBoard Web Interface
"""

import tempfile
from pathlib import Path

import pytest

from modboard.config import Config
from modboard.core.app import ModBoard


IMAGE = {"name": "cat.png", "type": "image/png", "size": 10, "dataUrl": "data:image/png;base64,AAAA"}
API = "/api/board"


def make_config(engagement="views", require_verification=False, cooldown=0.0) -> Config:
    config = Config()
    temp_dir = tempfile.mkdtemp()
    config.storage.path = str(Path(temp_dir) / "db.json")
    config.storage.backup_path = str(Path(temp_dir) / "backups")
    config.admin.password = "letmein"
    config.admin.token_secret = "test-secret"
    config.crypto.argon2_time_cost = 1
    config.crypto.argon2_memory_kb = 8192
    config.board.engagement = engagement
    config.board.require_verification = require_verification
    config.rate_limits.post_cooldown_seconds = cooldown
    return config


class TestPublicRoutes:
    """Tests for the public board API."""

    def setup_method(self):
        """Set up test fixtures."""
        self.board = ModBoard(make_config())
        self.client = self.board.create_web_app().test_client()

    def _create(self, title="Hello", body="first"):
        response = self.client.post(f"{API}/threads", json={"title": title, "body": body, "tags": ["a"]})
        assert response.status_code == 200
        return response.get_json()["thread"]

    def test_ping(self):
        assert self.client.get(f"{API}/ping").get_json() == {"ok": True}

    def test_healthz(self):
        response = self.client.get("/healthz")
        assert response.status_code == 200
        assert response.data == b"ok"

    def test_create_and_list(self):
        thread = self._create()

        threads = self.client.get(f"{API}/threads").get_json()["threads"]
        assert [t["id"] for t in threads] == [thread["id"]]
        assert threads[0]["postCount"] == 1

    def test_thread_detail(self):
        thread = self._create()
        self.client.post(f"{API}/threads/{thread['id']}/posts", json={"body": "reply", "authorId": "bob"})

        detail = self.client.get(f"{API}/threads/{thread['id']}").get_json()["thread"]
        assert [p["body"] for p in detail["posts"]] == ["first", "reply"]
        assert detail["posts"][1]["authorId"] == "bob"

    def test_unknown_thread_404(self):
        response = self.client.get(f"{API}/threads/nope")

        assert response.status_code == 404
        assert response.get_json() == {"error": "not_found"}

    def test_merge_tags(self):
        thread = self._create()

        response = self.client.patch(f"{API}/threads/{thread['id']}/tags", json={"tags": ["b", "a"]})
        assert response.get_json()["thread"]["tags"] == ["a", "b"]

    def test_view(self):
        thread = self._create()

        response = self.client.post(f"{API}/threads/{thread['id']}/view")
        assert response.get_json() == {"ok": True, "id": thread["id"], "day": 1, "week": 1, "month": 1}

    def test_like_on_views_board(self):
        thread = self._create()

        response = self.client.post(f"{API}/threads/{thread['id']}/like", json={"userId": "bob"})
        assert response.status_code == 400
        assert response.get_json() == {"error": "unsupported"}

    def test_attachment_request(self):
        thread = self._create()
        detail = self.client.get(f"{API}/threads/{thread['id']}").get_json()["thread"]

        response = self.client.post(f"{API}/attachments/request", json={
            "threadId": thread["id"],
            "postId": detail["posts"][0]["id"],
            "requesterId": "bob",
            "file": IMAGE,
        })
        assert response.status_code == 200
        assert response.get_json()["attachment"]["status"] == "pending"

    def test_attachment_bad_type(self):
        thread = self._create()
        detail = self.client.get(f"{API}/threads/{thread['id']}").get_json()["thread"]

        response = self.client.post(f"{API}/attachments/request", json={
            "threadId": thread["id"],
            "postId": detail["posts"][0]["id"],
            "file": dict(IMAGE, type="text/html"),
        })
        assert response.status_code == 400
        assert response.get_json() == {"error": "type"}

    def test_non_json_body(self):
        response = self.client.post(f"{API}/threads", data="not json", content_type="text/plain")

        assert response.status_code == 200
        assert response.get_json()["thread"]["title"] == "(untitled)"

    def test_unknown_route(self):
        response = self.client.get(f"{API}/nowhere")

        assert response.status_code == 404
        assert response.get_json() == {"error": "not_found"}

    def test_wrong_method(self):
        response = self.client.delete(f"{API}/threads")

        assert response.status_code == 405


class TestLikesBoard:
    """Tests for a likes + verification board."""

    def setup_method(self):
        """Set up test fixtures."""
        self.board = ModBoard(make_config(engagement="likes", require_verification=True))
        self.client = self.board.create_web_app().test_client()
        self.thread = self.client.post(f"{API}/threads", json={"title": "t", "body": "b"}).get_json()["thread"]

    def test_like(self):
        url = f"{API}/threads/{self.thread['id']}/like"
        first = self.client.post(url, json={"userId": "bob"}).get_json()
        second = self.client.post(url, json={"userId": "bob"}).get_json()

        assert first["alreadyLiked"] is False
        assert second["alreadyLiked"] is True
        assert second["day"] == 1

    def test_unverified_attachment_403(self):
        detail = self.client.get(f"{API}/threads/{self.thread['id']}").get_json()["thread"]

        response = self.client.post(f"{API}/attachments/request", json={
            "threadId": self.thread["id"],
            "postId": detail["posts"][0]["id"],
            "requesterId": "bob",
            "file": IMAGE,
        })
        assert response.status_code == 403
        assert response.get_json() == {"error": "not_verified"}

    def test_verification_flow(self):
        request_id = self.client.post(
            f"{API}/verify/request", json={"requesterId": "bob", "file": IMAGE}
        ).get_json()["request"]["id"]

        status = self.client.get(f"{API}/verify/status?userId=bob").get_json()
        assert status["verified"] is False
        assert status["pending"] == 1

        token = self.client.post(f"{API}/admin/login", json={"password": "letmein"}).get_json()["token"]
        response = self.client.post(
            f"{API}/admin/verify-requests/review",
            json={"requestId": request_id, "action": "approve"},
            headers={"Authorization": f"Bearer {token}"}
        )
        assert response.get_json()["request"]["verified"] is True

        status = self.client.get(f"{API}/verify/status?userId=bob").get_json()
        assert status["verified"] is True


class TestCooldown:
    """Tests for 429 responses."""

    def test_rate_limited(self):
        board = ModBoard(make_config(cooldown=30))
        client = board.create_web_app().test_client()

        assert client.post(f"{API}/threads", json={"title": "a"}).status_code == 200
        response = client.post(f"{API}/threads", json={"title": "b"})

        assert response.status_code == 429
        assert response.get_json() == {"error": "too_fast"}
        assert 1 <= int(response.headers["Retry-After"]) <= 30


class TestAdminRoutes:
    """Tests for the admin API."""

    def setup_method(self):
        """Set up test fixtures."""
        self.board = ModBoard(make_config())
        self.client = self.board.create_web_app().test_client()
        self.thread = self.client.post(f"{API}/threads", json={"title": "t", "body": "b"}).get_json()["thread"]
        login = self.client.post(f"{API}/admin/login", json={"password": "letmein"})
        self.token = login.get_json()["token"]
        self.headers = {"X-Admin-Token": self.token}

    def test_login_wrong_password(self):
        response = self.client.post(f"{API}/admin/login", json={"password": "wrong"})

        assert response.status_code == 401
        assert response.get_json() == {"error": "invalid"}

    def test_missing_token(self):
        response = self.client.get(f"{API}/admin/threads")

        assert response.status_code == 401
        assert response.get_json() == {"error": "unauthorized"}

    def test_hide_without_token_checks_auth_first(self):
        response = self.client.post(
            f"{API}/admin/threads/{self.thread['id']}/hidden", json={"hidden": "maybe"}
        )
        assert response.status_code == 401

    def test_hide(self):
        url = f"{API}/admin/threads/{self.thread['id']}/hidden"

        response = self.client.post(url, json={"hidden": True}, headers=self.headers)
        assert response.get_json()["thread"] == {"id": self.thread["id"], "hidden": True}
        assert self.client.get(f"{API}/threads/{self.thread['id']}").status_code == 404

        response = self.client.post(url, json={"hidden": "false"}, headers=self.headers)
        assert response.get_json()["thread"]["hidden"] is False

    def test_hide_bad_flag(self):
        response = self.client.post(
            f"{API}/admin/threads/{self.thread['id']}/hidden",
            json={"hidden": "maybe"},
            headers=self.headers
        )
        assert response.status_code == 400

    def test_admin_threads(self):
        threads = self.client.get(f"{API}/admin/threads", headers=self.headers).get_json()["threads"]

        assert threads[0]["id"] == self.thread["id"]
        assert "posts" in threads[0]

    def test_delete_thread(self):
        response = self.client.delete(f"{API}/admin/threads/{self.thread['id']}", headers=self.headers)

        assert response.get_json()["deleted"] == self.thread["id"]
        assert self.client.get(f"{API}/threads").get_json()["threads"] == []

    def test_delete_post(self):
        detail = self.client.get(f"{API}/threads/{self.thread['id']}").get_json()["thread"]
        post_id = detail["posts"][0]["id"]

        response = self.client.delete(
            f"{API}/admin/threads/{self.thread['id']}/posts/{post_id}", headers=self.headers
        )
        assert response.get_json()["attachmentsRemoved"] == 0

    def test_review_attachment(self):
        detail = self.client.get(f"{API}/threads/{self.thread['id']}").get_json()["thread"]
        attachment = self.client.post(f"{API}/attachments/request", json={
            "threadId": self.thread["id"],
            "postId": detail["posts"][0]["id"],
            "file": IMAGE,
        }).get_json()["attachment"]

        queue = self.client.get(f"{API}/admin/attachments", headers=self.headers).get_json()["attachments"]
        assert [a["id"] for a in queue] == [attachment["id"]]

        url = f"{API}/admin/attachments/review"
        body = {"attachmentId": attachment["id"], "action": "approve"}
        first = self.client.post(url, json=body, headers=self.headers)
        second = self.client.post(url, json=body, headers=self.headers)

        assert first.get_json()["attachment"]["status"] == "approved"
        assert second.status_code == 409
        assert second.get_json() == {"error": "already_reviewed"}

    def test_review_unknown_attachment(self):
        response = self.client.post(
            f"{API}/admin/attachments/review",
            json={"attachmentId": "A-missing", "action": "maybe"},
            headers=self.headers
        )
        assert response.status_code == 404

    def test_verify_requests_listing(self):
        response = self.client.get(f"{API}/admin/verify-requests?status=all", headers=self.headers)

        assert response.get_json() == {"requests": []}

    def test_stats(self):
        stats = self.client.get(f"{API}/admin/stats", headers=self.headers).get_json()

        assert stats["threads"] == 1
        assert stats["posts"] == 1
        assert stats["cooldown"] is None

    def test_stats_requires_token(self):
        assert self.client.get(f"{API}/admin/stats").status_code == 401
