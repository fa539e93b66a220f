"""End-to-end tests through the FastAPI app: REST routes and the /ws socket."""
import pytest
from starlette.websockets import WebSocketDisconnect

from unimatch.utils.security import hash_password


def like(client, headers, target_id, is_like=True):
    return client.post(
        "/api/v1/matching/swipe",
        json={"swipedId": target_id, "isLike": is_like},
        headers=headers,
    )


@pytest.fixture
def matched(client, seed_user, auth_headers):
    """Two users who have liked each other; returns (a, b, match_id)."""
    a = seed_user(gender="female", first_name="Asha")
    b = seed_user(gender="male", first_name="Bilal")
    like(client, auth_headers(a), b)
    like(client, auth_headers(b), a)
    match_id = client.get("/api/v1/matching/matches", headers=auth_headers(a)).json()[0]["id"]
    return a, b, match_id


class TestHealth:

    def test_liveness(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_deep(self, client):
        body = client.get("/health/deep").json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["websocket_connections"] == 0

    def test_deep_counts_open_sockets(self, client, seed_user):
        user = seed_user()
        with client.websocket_connect(f"/ws?userId={user}") as ws:
            ws.receive_json()
            assert client.get("/health/deep").json()["websocket_connections"] == 1


class TestShutdownDrain:

    @pytest.mark.asyncio
    async def test_drain_returns_once_idle(self):
        from unimatch.main import InFlightRequests

        assert await InFlightRequests().drain(timeout=0.1) is True

    @pytest.mark.asyncio
    async def test_drain_gives_up_after_timeout(self):
        from unimatch.main import InFlightRequests

        stuck = InFlightRequests()
        stuck.count = 1
        assert await stuck.drain(timeout=0) is False


class TestAuth:

    def test_login_returns_usable_token(self, client, seed_user):
        seed_user(email="login@campus.edu", password_hash=hash_password("s3cret"))

        resp = client.post("/api/v1/auth/login", json={"email": "Login@campus.edu", "password": "s3cret"})

        assert resp.status_code == 200
        token = resp.json()["accessToken"]
        assert resp.json()["tokenType"] == "bearer"
        matches = client.get("/api/v1/matching/matches", headers={"Authorization": f"Bearer {token}"})
        assert matches.status_code == 200

    def test_wrong_password(self, client, seed_user):
        seed_user(email="wrong@campus.edu", password_hash=hash_password("right"))
        resp = client.post("/api/v1/auth/login", json={"email": "wrong@campus.edu", "password": "nope"})
        assert resp.status_code == 401

    def test_missing_and_bad_tokens(self, client):
        assert client.get("/api/v1/matching/matches").status_code == 401
        bad = client.get("/api/v1/matching/matches", headers={"Authorization": "Bearer garbage"})
        assert bad.status_code == 401

    def test_unapproved_and_suspended_users(self, client, seed_user, auth_headers):
        pending = seed_user(is_approved=False)
        suspended = seed_user(is_suspended=True)

        resp = client.get("/api/v1/matching/matches", headers=auth_headers(pending))
        assert resp.status_code == 403
        assert resp.json()["detail"] == "Account pending approval"
        assert client.get("/api/v1/matching/matches", headers=auth_headers(suspended)).status_code == 403


class TestMatching:

    def test_mutual_like_flow(self, client, seed_user, auth_headers):
        a = seed_user(gender="female")
        b = seed_user(gender="male")

        first = like(client, auth_headers(a), b)
        assert first.status_code == 200
        assert first.json()["isMatch"] is False

        second = like(client, auth_headers(b), a)
        assert second.json()["isMatch"] is True

        for viewer, other in ((a, b), (b, a)):
            matches = client.get("/api/v1/matching/matches", headers=auth_headers(viewer)).json()
            assert [m["userId"] for m in matches] == [other]
            assert matches[0]["email"].endswith("@campus.edu")

    def test_repeat_like_does_not_duplicate(self, client, matched, auth_headers):
        a, b, match_id = matched

        again = like(client, auth_headers(a), b)

        assert again.json() == {"isMatch": True, "matchId": match_id}
        assert len(client.get("/api/v1/matching/matches", headers=auth_headers(a)).json()) == 1

    def test_swipe_errors(self, client, seed_user, auth_headers):
        a = seed_user()
        headers = auth_headers(a)

        assert like(client, headers, "no-such-user").status_code == 404
        assert like(client, headers, a).status_code == 400
        malformed = client.post("/api/v1/matching/swipe", json={"swipedId": a}, headers=headers)
        assert malformed.status_code == 422

    def test_new_match_notifies_online_user(self, client, seed_user, auth_headers):
        a = seed_user(gender="female")
        b = seed_user(gender="male")
        like(client, auth_headers(b), a)

        with client.websocket_connect(f"/ws?userId={b}") as ws_b:
            assert ws_b.receive_json()["type"] == "connection"
            like(client, auth_headers(a), b)
            note = ws_b.receive_json()

        assert note["type"] == "notification"
        assert note["kind"] == "new_match"
        assert note["userId"] == a

    def test_block_removes_from_discovery(self, client, seed_user, auth_headers):
        a = seed_user(gender="male")
        b = seed_user(gender="female")

        resp = client.post("/api/v1/matching/block", json={"userId": b}, headers=auth_headers(a))

        assert resp.json() == {"message": "User blocked successfully"}
        nxt = client.get("/api/v1/discover/next", headers=auth_headers(a)).json()
        assert nxt["profile"] is None
        assert nxt["message"] == "No more users to show"


class TestDiscover:

    def test_next_and_list(self, client, seed_user, auth_headers):
        viewer = seed_user(gender="male")
        candidate = seed_user(gender="female", first_name="Zoya", college="NIT Trichy")
        seed_user(gender="male")

        nxt = client.get("/api/v1/discover/next", headers=auth_headers(viewer)).json()
        assert nxt["profile"]["id"] == candidate
        assert nxt["profile"]["firstName"] == "Zoya"

        page = client.get("/api/v1/discover", params={"limit": 5}, headers=auth_headers(viewer)).json()
        assert [p["id"] for p in page] == [candidate]


class TestMessages:

    def test_send_history_and_read_receipts(self, client, matched, auth_headers):
        a, b, match_id = matched

        sent = client.post(
            "/api/v1/messages",
            json={"matchId": match_id, "content": "hello"},
            headers=auth_headers(a),
        )
        assert sent.status_code == 201
        assert sent.json()["senderFirstName"] == "Asha"

        assert client.get("/api/v1/messages/unread/count", headers=auth_headers(b)).json() == {"unreadCount": 1}

        history = client.get(f"/api/v1/messages/match/{match_id}", headers=auth_headers(b)).json()
        assert [m["content"] for m in history] == ["hello"]
        assert client.get("/api/v1/messages/unread/count", headers=auth_headers(b)).json() == {"unreadCount": 0}

        marked = client.put(f"/api/v1/messages/read/{match_id}", headers=auth_headers(b)).json()
        assert marked == {"message": "Messages marked as read", "updated": 0}

    def test_outsider_gets_403_and_unknown_match_404(self, client, matched, seed_user, auth_headers):
        _, _, match_id = matched
        outsider = seed_user()

        assert client.get(f"/api/v1/messages/match/{match_id}", headers=auth_headers(outsider)).status_code == 403
        forbidden_send = client.post(
            "/api/v1/messages",
            json={"matchId": match_id, "content": "hi"},
            headers=auth_headers(outsider),
        )
        assert forbidden_send.status_code == 403
        assert client.get("/api/v1/messages/match/missing", headers=auth_headers(outsider)).status_code == 404

    def test_blank_message_rejected(self, client, matched, auth_headers):
        a, _, match_id = matched
        resp = client.post(
            "/api/v1/messages",
            json={"matchId": match_id, "content": "   "},
            headers=auth_headers(a),
        )
        assert resp.status_code == 400


class TestAdmin:

    def test_deduplicate_requires_admin(self, client, seed_user, auth_headers):
        member = seed_user()
        admin = seed_user(is_admin=True)

        assert client.post("/api/v1/admin/matches/deduplicate", headers=auth_headers(member)).status_code == 403
        report = client.post("/api/v1/admin/matches/deduplicate", headers=auth_headers(admin)).json()
        assert report == {"totalMatches": 0, "duplicatesRemoved": 0, "uniquePairs": 0, "reordered": 0}


class TestWebSocket:

    @pytest.mark.parametrize("query", ["", "?userId=ghost"])
    def test_rejects_missing_or_unknown_user(self, client, query):
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect(f"/ws{query}"):
                pass
        assert exc.value.code == 1008

    def test_rejects_unapproved_user(self, client, seed_user):
        pending = seed_user(is_approved=False)
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect(f"/ws?userId={pending}"):
                pass
        assert exc.value.code == 1008

    def test_admin_flag_requires_admin_account(self, client, seed_user):
        member = seed_user()
        with client.websocket_connect(f"/ws?userId={member}&isAdmin=true") as ws:
            assert ws.receive_json()["isAdmin"] is False

    def test_second_connection_evicts_first(self, client, seed_user):
        user = seed_user()
        with client.websocket_connect(f"/ws?userId={user}") as first:
            first.receive_json()
            with client.websocket_connect(f"/ws?userId={user}") as second:
                second.receive_json()
                with pytest.raises(WebSocketDisconnect):
                    first.receive_json()
                assert client.manager.is_online(user)
                second.send_json({"type": "ping"})
                assert second.receive_json()["type"] == "pong"

    def test_binary_frames_are_handled_like_text(self, client, seed_user):
        user = seed_user()
        with client.websocket_connect(f"/ws?userId={user}") as ws:
            ws.receive_json()
            ws.send_bytes(b'{"type": "ping"}')
            assert ws.receive_json() == {"type": "pong", "userId": user}

            ws.send_bytes(b"\xc3\x28")
            error = ws.receive_json()
            assert error["type"] == "error"
            assert error["code"] == "invalid_frame"

            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_like_match_chat_scenario(self, client, seed_user, auth_headers):
        a = seed_user(gender="female", first_name="Asha")
        b = seed_user(gender="male", first_name="Bilal")

        assert like(client, auth_headers(a), b).json()["isMatch"] is False
        assert like(client, auth_headers(b), a).json()["isMatch"] is True
        match_id = client.get("/api/v1/matching/matches", headers=auth_headers(a)).json()[0]["id"]

        with client.websocket_connect(f"/ws?userId={b}") as ws_b:
            ws_b.receive_json()
            with client.websocket_connect(f"/ws?userId={a}") as ws_a:
                ws_a.receive_json()
                ws_a.send_json({"type": "send_message", "matchId": match_id, "content": "hi"})

                ack = ws_a.receive_json()
                pushed = ws_b.receive_json()

        assert ack["type"] == "message_sent"
        assert pushed["type"] == "new_message"
        assert pushed["message"]["content"] == "hi"
        assert pushed["message"]["id"] == ack["messageId"]

        for viewer in (a, b):
            history = client.get(f"/api/v1/messages/match/{match_id}", headers=auth_headers(viewer)).json()
            assert [(m["content"], m["senderId"]) for m in history] == [("hi", a)]

    def test_outsider_frame_gets_error(self, client, matched, seed_user):
        _, _, match_id = matched
        outsider = seed_user()

        with client.websocket_connect(f"/ws?userId={outsider}") as ws:
            ws.receive_json()
            ws.send_json({"type": "send_message", "matchId": match_id, "content": "hey"})
            error = ws.receive_json()

        assert error == {
            "type": "error",
            "code": "not_a_participant",
            "message": "You are not part of this match.",
            "matchId": match_id,
        }
