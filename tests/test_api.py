from io import BytesIO

import pytest
from PIL import Image

from conftest import save_profile, signup
from core.errors import BackendUnavailableError
from services import auth_service, discovery_service


class TokenInfoResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        return self.payload


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_signup_login_and_session(client):
    headers, user_id = signup(client, "Ada@Example.com")

    me = client.get("/auth/me", headers=headers)
    assert me.json() == {"state": "authenticated", "user_id": user_id}

    login = client.post("/auth/login", json={"email": "ada@example.com", "password": "secret123"})
    assert login.status_code == 200
    assert login.json()["user_id"] == user_id
    assert login.json()["has_profile"] is False

    wrong = client.post("/auth/login", json={"email": "ada@example.com", "password": "nope"})
    assert wrong.status_code == 401


def test_signup_with_taken_email_is_conflict(client):
    signup(client, "ada@example.com")
    resp = client.post("/auth/signup", json={"email": "ADA@example.com", "password": "other123"})
    assert resp.status_code == 409
    assert "already exists" in resp.json()["detail"]


def test_short_password_is_rejected(client):
    resp = client.post("/auth/signup", json={"email": "bo@example.com", "password": "123"})
    assert resp.status_code == 422


def test_logout_revokes_token(client):
    headers, _ = signup(client, "ada@example.com")
    assert client.post("/auth/logout", headers=headers).status_code == 204
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_google_sign_in_creates_then_reuses_account(client, monkeypatch):
    monkeypatch.setattr(
        auth_service.requests,
        "get",
        lambda *a, **kw: TokenInfoResponse({"email": "gia@example.com", "email_verified": "true", "name": "Gia"}),
    )
    first = client.post("/auth/google", json={"id_token": "tok"})
    second = client.post("/auth/google", json={"id_token": "tok"})
    assert first.status_code == second.status_code == 200
    assert first.json()["user_id"] == second.json()["user_id"]


def test_google_sign_in_for_password_account_is_distinct_conflict(client, monkeypatch):
    signup(client, "ada@example.com")
    monkeypatch.setattr(
        auth_service.requests,
        "get",
        lambda *a, **kw: TokenInfoResponse({"email": "ada@example.com", "email_verified": "true"}),
    )
    resp = client.post("/auth/google", json={"id_token": "tok"})
    assert resp.status_code == 409
    assert "different sign-in method" in resp.json()["detail"]


def test_rejected_google_token_is_unauthorized(client, monkeypatch):
    monkeypatch.setattr(auth_service.requests, "get", lambda *a, **kw: TokenInfoResponse({}, status_code=400))
    assert client.post("/auth/google", json={"id_token": "bad"}).status_code == 401


def test_profile_requires_location_on_first_save(client):
    headers, _ = signup(client, "ada@example.com")
    resp = client.put("/users/me", json={"name": "Ada", "instrument": "Piano"}, headers=headers)
    assert resp.status_code == 400
    assert client.get("/users/me", headers=headers).status_code == 404


def test_profile_rejects_unknown_instrument(client):
    headers, _ = signup(client, "ada@example.com")
    resp = client.put(
        "/users/me",
        json={"instrument": "Kazoo", "location": {"latitude": 1, "longitude": 2}},
        headers=headers,
    )
    assert resp.status_code == 422


def test_profile_save_and_read(client):
    headers, user_id = signup(client, "ada@example.com")
    saved = save_profile(client, headers, name="Ada", instrument="Piano", genres=["Jazz", "Jazz"])
    assert saved["user_id"] == user_id
    assert saved["genres"] == ["Jazz"]
    assert saved["location_name"] == "New York, NY, USA"

    updated = save_profile(client, headers, bio="Stride piano")
    assert updated["created_at"] == saved["created_at"]
    assert updated["bio"] == "Stride piano"

    other_headers, _ = signup(client, "bo@example.com")
    assert client.get(f"/users/{user_id}", headers=other_headers).json()["name"] == "Ada"


def test_hidden_profile_is_not_public(client):
    headers, user_id = signup(client, "ada@example.com")
    save_profile(client, headers, visibility=False)
    other_headers, _ = signup(client, "bo@example.com")
    assert client.get(f"/users/{user_id}", headers=other_headers).status_code == 404
    assert client.get(f"/users/{user_id}", headers=headers).status_code == 200


def test_gallery_upload_and_remove(client, fake_s3):
    headers, _ = signup(client, "ada@example.com")
    save_profile(client, headers)
    buf = BytesIO()
    Image.new("RGB", (2, 2)).save(buf, "PNG")

    added = client.post(
        "/users/me/gallery",
        files={"file": ("pic.png", buf.getvalue(), "image/png")},
        headers=headers,
    )
    assert added.status_code == 201
    url = added.json()["url"]
    assert added.json()["urls"] == [url]

    removed = client.request("DELETE", "/users/me/gallery", json={"url": url}, headers=headers)
    assert removed.status_code == 200
    assert removed.json()["urls"] == []
    assert fake_s3.objects == {}


def test_discovery_request_accept_and_chat(client):
    ada_headers, ada_id = signup(client, "ada@example.com")
    bo_headers, bo_id = signup(client, "bo@example.com")
    save_profile(client, ada_headers, name="Ada", instrument="Piano")
    save_profile(
        client,
        bo_headers,
        name="Bo",
        instrument="Guitar",
        genres=["Blues"],
        location={"latitude": 40.71, "longitude": -74.01},
    )

    found = client.get("/discover", params={"instrument": "Guitar"}, headers=ada_headers).json()
    assert [item["user_id"] for item in found] == [bo_id]
    assert found[0]["requested"] is False
    assert found[0]["distance"] < 1

    assert client.get("/discover", params={"instrument": "Drums"}, headers=ada_headers).json() == []

    sent = client.post(f"/requests/{bo_id}", headers=ada_headers)
    assert sent.status_code == 201
    request_id = sent.json()["id"]
    assert client.post(f"/requests/{bo_id}", headers=ada_headers).status_code == 409
    assert client.get("/discover", headers=ada_headers).json()[0]["requested"] is True

    inbound = client.get("/requests/inbound", headers=bo_headers).json()
    assert [r["id"] for r in inbound] == [request_id]
    assert inbound[0]["requester"]["name"] == "Ada"

    assert client.post(f"/requests/{request_id}/accept", headers=ada_headers).status_code == 403
    accepted = client.post(f"/requests/{request_id}/accept", headers=bo_headers)
    assert accepted.status_code == 200
    chat_id = accepted.json()["chat_id"]
    assert chat_id == "_".join(sorted([ada_id, bo_id]))
    assert client.post(f"/requests/{request_id}/decline", headers=bo_headers).status_code == 409

    matches = client.get("/requests/accepted", headers=ada_headers).json()
    assert matches[0]["other_user"]["user_id"] == bo_id

    assert client.post(f"/chats/{chat_id}/messages", json={"text": "   "}, headers=ada_headers).status_code == 422
    posted = client.post(f"/chats/{chat_id}/messages", json={"text": "Jam Friday?"}, headers=ada_headers)
    assert posted.status_code == 201
    client.post(f"/chats/{chat_id}/messages", json={"text": "Sure"}, headers=bo_headers)

    history = client.get(f"/chats/{chat_id}/messages", headers=bo_headers).json()
    assert [m["text"] for m in history] == ["Jam Friday?", "Sure"]

    chats = client.get("/chats", headers=ada_headers).json()
    assert chats[0]["chat_id"] == chat_id
    assert chats[0]["last_message_text"] == "Sure"
    assert chats[0]["other_user"]["name"] == "Bo"

    outsider_headers, _ = signup(client, "cy@example.com")
    assert client.get(f"/chats/{chat_id}/messages", headers=outsider_headers).status_code == 403


def test_discovery_outage_is_not_an_empty_result(client, monkeypatch):
    headers, _ = signup(client, "ada@example.com")

    async def unavailable(db, limit=None):
        raise BackendUnavailableError("Could not load musicians")

    monkeypatch.setattr(discovery_service, "fetch_candidates", unavailable)
    resp = client.get("/discover", headers=headers)
    assert resp.status_code == 503
    assert resp.json()["detail"] == "Could not load musicians"


def test_chat_socket_pushes_snapshots(client):
    ada_headers, ada_id = signup(client, "ada@example.com")
    bo_headers, bo_id = signup(client, "bo@example.com")
    save_profile(client, ada_headers)
    save_profile(client, bo_headers)
    chat_id = client.post(f"/chats/{bo_id}", headers=ada_headers).json()["chat_id"]
    token = ada_headers["Authorization"].split()[1]

    with client.websocket_connect(f"/chats/{chat_id}/ws?token={token}") as ws:
        assert ws.receive_json() == []
        ws.send_text("hello from the socket")
        snapshot = ws.receive_json()
        assert [(m["sender_id"], m["text"]) for m in snapshot] == [(ada_id, "hello from the socket")]


def test_socket_with_bad_token_is_closed(client):
    from starlette.websockets import WebSocketDisconnect

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/chats/a_b/ws?token=garbage") as ws:
            ws.receive_json()


def test_discovery_socket_replaces_query(client):
    ada_headers, _ = signup(client, "ada@example.com")
    bo_headers, bo_id = signup(client, "bo@example.com")
    save_profile(client, ada_headers)
    save_profile(client, bo_headers, instrument="Drums")
    token = ada_headers["Authorization"].split()[1]

    with client.websocket_connect(f"/discover/ws?token={token}") as ws:
        ws.send_json({"instrument": "Drums"})
        first = ws.receive_json()
        assert first["type"] == "results"
        assert [i["user_id"] for i in first["items"]] == [bo_id]

        ws.send_json({"instrument": "Guitar"})
        assert ws.receive_json() == {"type": "results", "items": []}

        ws.send_json({"radius": -1})
        assert ws.receive_json()["type"] == "error"


def test_discovery_socket_survives_malformed_frames(client):
    headers, _ = signup(client, "ada@example.com")
    bo_headers, bo_id = signup(client, "bo@example.com")
    save_profile(client, headers)
    save_profile(client, bo_headers)
    token = headers["Authorization"].split()[1]

    with client.websocket_connect(f"/discover/ws?token={token}") as ws:
        ws.send_text("not json")
        assert ws.receive_json()["type"] == "error"

        ws.send_json({"radius": 25})
        pushed = ws.receive_json()
        assert pushed["type"] == "results"
        assert [i["user_id"] for i in pushed["items"]] == [bo_id]


def test_discovery_socket_reports_load_failures(client, monkeypatch):
    headers, _ = signup(client, "ada@example.com")
    save_profile(client, headers)
    token = headers["Authorization"].split()[1]

    real_discover = discovery_service.discover
    state = {"fail": True}

    async def flaky(*args, **kwargs):
        if state["fail"]:
            raise RuntimeError("connection reset")
        return await real_discover(*args, **kwargs)

    monkeypatch.setattr(discovery_service, "discover", flaky)

    with client.websocket_connect(f"/discover/ws?token={token}") as ws:
        ws.send_json({})
        assert ws.receive_json() == {"type": "error", "detail": "Could not load musicians"}

        state["fail"] = False
        ws.send_json({})
        assert ws.receive_json() == {"type": "results", "items": []}


def test_chat_history_outage_is_reported(client, monkeypatch):
    from starlette.websockets import WebSocketDisconnect

    from services import chat_service

    ada_headers, _ = signup(client, "ada@example.com")
    bo_headers, bo_id = signup(client, "bo@example.com")
    save_profile(client, ada_headers)
    save_profile(client, bo_headers)
    chat_id = client.post(f"/chats/{bo_id}", headers=ada_headers).json()["chat_id"]
    token = ada_headers["Authorization"].split()[1]

    async def unavailable(db, chat_id, limit=None):
        raise BackendUnavailableError("Could not load messages")

    monkeypatch.setattr(chat_service, "get_messages", unavailable)

    resp = client.get(f"/chats/{chat_id}/messages", headers=ada_headers)
    assert resp.status_code == 503
    assert resp.json()["detail"] == "Could not load messages"

    with client.websocket_connect(f"/chats/{chat_id}/ws?token={token}") as ws:
        with pytest.raises(WebSocketDisconnect) as closed:
            ws.receive_json()
    assert closed.value.code == 1011
    assert closed.value.reason == "Could not load messages"
