"""End-to-end tests through the FastAPI app (HTTP + WebSocket)."""
from datetime import date, timedelta
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from api.main import app

WS_URL = "/api/v1/realtime/ws"


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def register(client, first_name="Alice", last_name="Cook"):
    """Register a fresh user and return auth headers plus the raw token."""
    email = f"{first_name.lower()}-{uuid4().hex[:8]}@itcook.app"
    response = client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": "s3cret-pass", "first_name": first_name, "last_name": last_name},
    )
    assert response.status_code == 201
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}, token, email


def receive_until(ws, event_type, limit=10):
    """Read frames until one of the given type shows up."""
    for _ in range(limit):
        frame = ws.receive_json()
        if frame["type"] == event_type:
            return frame
    pytest.fail(f"{event_type} not received")


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "ok"

    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["realtime"]["connected_clients"] == 0


class TestAuth:
    def test_register_login_me(self, client):
        headers, _, email = register(client)

        me = client.get("/api/v1/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.json()["email"] == email

        login = client.post("/api/v1/auth/login", json={"email": email, "password": "s3cret-pass"})
        assert login.status_code == 200
        assert login.json()["token_type"] == "bearer"

    def test_duplicate_email(self, client):
        _, _, email = register(client)

        response = client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": "another-pass", "first_name": "Eve"},
        )
        assert response.status_code == 409

    def test_wrong_password(self, client):
        _, _, email = register(client)

        response = client.post("/api/v1/auth/login", json={"email": email, "password": "wrong-pass"})
        assert response.status_code == 401

    def test_missing_token(self, client):
        assert client.get("/api/v1/auth/me").status_code == 401
        assert client.get("/api/v1/auth/me", headers={"Authorization": "Bearer junk"}).status_code == 401


class TestFridge:
    def test_add_list_remove(self, client):
        headers, _, _ = register(client)

        created = client.post("/api/v1/fridge", json={"name": "Milk", "category": "dairy"}, headers=headers)
        assert created.status_code == 201
        item_id = created.json()["id"]

        items = client.get("/api/v1/fridge", headers=headers).json()
        assert [item["name"] for item in items] == ["Milk"]

        assert client.delete(f"/api/v1/fridge/{item_id}", headers=headers).status_code == 204
        assert client.delete(f"/api/v1/fridge/{item_id}", headers=headers).status_code == 404

    def test_expiring_notify_reaches_socket(self, client):
        headers, token, _ = register(client)
        soon = (date.today() + timedelta(days=1)).isoformat()
        later = (date.today() + timedelta(days=60)).isoformat()
        client.post("/api/v1/fridge", json={"name": "Yogurt", "expiry_date": soon}, headers=headers)
        client.post("/api/v1/fridge", json={"name": "Honey", "expiry_date": later}, headers=headers)

        expiring = client.get("/api/v1/fridge/expiring", params={"days": 7}, headers=headers).json()
        assert [(item["name"], item["days_left"]) for item in expiring] == [("Yogurt", 1)]

        with client.websocket_connect(f"{WS_URL}?token={token}") as ws:
            result = client.post("/api/v1/fridge/expiring/notify", headers=headers).json()
            assert result["notified"] is True

            frame = receive_until(ws, "ExpiringItems")
            assert frame["data"]["days_left"] == 1
            assert [item["name"] for item in frame["data"]["items"]] == ["Yogurt"]


class TestCommunity:
    def test_post_like_comment(self, client):
        headers, _, _ = register(client)
        other_headers, _, _ = register(client, "Bob", "Baker")

        post = client.post("/api/v1/community/posts", json={"content": "Pancakes!"}, headers=headers)
        assert post.status_code == 201
        post_id = post.json()["id"]

        like = client.post(f"/api/v1/community/posts/{post_id}/like", headers=other_headers).json()
        assert like["total_likes"] == 1
        again = client.post(f"/api/v1/community/posts/{post_id}/like", headers=other_headers).json()
        assert again["total_likes"] == 1

        comment = client.post(
            f"/api/v1/community/posts/{post_id}/comments",
            json={"content": "Recipe please"},
            headers=other_headers,
        )
        assert comment.status_code == 201

        missing = client.post(f"/api/v1/community/posts/{uuid4()}/like", headers=headers)
        assert missing.status_code == 404

    def test_follow(self, client):
        headers, _, _ = register(client)
        me = client.get("/api/v1/auth/me", headers=headers).json()
        other_headers, _, _ = register(client, "Bob", "Baker")

        first = client.post(f"/api/v1/community/users/{me['id']}/follow", headers=other_headers).json()
        assert first == {"followee_id": me["id"], "following": True, "created": True}
        second = client.post(f"/api/v1/community/users/{me['id']}/follow", headers=other_headers).json()
        assert second["created"] is False

        own = client.post(f"/api/v1/community/users/{me['id']}/follow", headers=headers)
        assert own.status_code == 400
        unknown = client.post(f"/api/v1/community/users/{uuid4()}/follow", headers=headers)
        assert unknown.status_code == 404


class TestRealtime:
    def test_rejects_missing_or_bad_token(self, client):
        for url in (WS_URL, f"{WS_URL}?token=not-a-jwt"):
            with pytest.raises(WebSocketDisconnect) as exc_info:
                with client.websocket_connect(url):
                    pass
            assert exc_info.value.code == 1008

    def test_connected_client_shows_in_stats(self, client):
        headers, token, _ = register(client)

        with client.websocket_connect(f"{WS_URL}?token={token}"):
            stats = client.get("/api/v1/realtime/stats", headers=headers).json()
            assert stats["connected_clients"] == 1

            clients = client.get("/api/v1/realtime/clients", headers=headers).json()
            assert [c["display_name"] for c in clients] == ["Alice Cook"]

    def test_new_post_reaches_other_session(self, client):
        headers, _, _ = register(client)
        _, other_token, _ = register(client, "Bob", "Baker")

        with client.websocket_connect(f"{WS_URL}?token={other_token}") as ws:
            client.post("/api/v1/community/posts", json={"content": "Fresh bread"}, headers=headers)

            frame = receive_until(ws, "NewCommunityPost")
            assert frame["data"]["author_name"] == "Alice Cook"
            assert frame["data"]["content"] == "Fresh bread"

    def test_subscribed_post_channel_gets_comments(self, client):
        headers, token, _ = register(client)
        post_id = client.post(
            "/api/v1/community/posts", json={"content": "Soup"}, headers=headers
        ).json()["id"]

        with client.websocket_connect(f"{WS_URL}?token={token}") as ws:
            ws.send_json({"type": "Subscribe", "channels": [f"post:{post_id}"]})
            # The typing echo comes back only after the subscribe was handled
            ws.send_json({"type": "TypingStart", "post_id": post_id})
            receive_until(ws, "SystemNotification")
            client.post(
                f"/api/v1/community/posts/{post_id}/comments",
                json={"content": "Hot!"},
                headers=headers,
            )

            frame = receive_until(ws, "NewComment")
            assert frame["data"]["post_id"] == post_id
            assert frame["data"]["content"] == "Hot!"
