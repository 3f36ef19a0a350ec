"""
HTTP surface tests: routing, the access gate and the error-to-status mapping.
"""

import pytest

from gamehub.core.config import SESSION_COOKIE_NAME
from gamehub.core.security import create_access_token
from gamehub.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    QuotaExceededError,
    ResourceExhaustedError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from gamehub.main import status_for_error


class TestErrorMapping:
    @pytest.mark.parametrize(
        "error, status_code",
        [
            (ValidationError("bad"), 400),
            (UnauthorizedError(), 401),
            (ForbiddenError(), 403),
            (NotFoundError("Game", "g1"), 404),
            (ConflictError("dup"), 409),
            (QuotaExceededError("pending_new_game_requests", limit=3), 429),
            (ResourceExhaustedError("superlikes"), 400),
            (InvalidStateError("done"), 400),
            (StorageError("db down"), 500),
        ],
    )
    def test_status_codes(self, error, status_code):
        assert status_for_error(error) == status_code

    def test_error_body_shape(self):
        body = NotFoundError("Game", "g1").to_dict()
        assert body == {
            "error": "not_found",
            "detail": "Game not found: g1",
            "details": {"resource_type": "Game", "identifier": "g1"},
        }


class TestAccessGate:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_missing_token_is_401(self, client):
        response = client.get("/users/me")
        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    def test_invalid_token_is_401(self, client):
        response = client.get("/users/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_token_for_unknown_user_is_401(self, client):
        token = create_access_token("ghost")
        response = client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_bearer_and_cookie_both_work(self, client, user, auth_headers):
        response = client.get("/users/me", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json()["id"] == user.id

        cookie = f"{SESSION_COOKIE_NAME}={create_access_token(user.id)}"
        response = client.get("/users/me", headers={"Cookie": cookie})
        assert response.status_code == 200
        assert response.json()["superlikes_remaining"] == 3

    def test_non_admin_gets_403_on_admin_routes(self, client, user, auth_headers):
        response = client.get("/admin/game-requests", headers=auth_headers(user))
        assert response.status_code == 403

    def test_banned_user_is_403_except_for_appeals(self, client, make_user, auth_headers):
        banned = make_user(is_active=False)
        headers = auth_headers(banned)

        response = client.post("/games/any/react", json={"type": "like"}, headers=headers)
        assert response.status_code == 403

        assert client.get("/users/me", headers=headers).status_code == 200
        response = client.post(
            "/user-requests",
            json={"request_type": "user_unban_appeal", "appeal_text": "Please"},
            headers=headers,
        )
        assert response.status_code == 201

    def test_incomplete_profile_cannot_submit(self, client, make_user, auth_headers):
        fresh = make_user(profile_complete=False)
        response = client.post(
            "/game-requests",
            json={"title": "Pong", "game_url": "http://pong.example"},
            headers=auth_headers(fresh),
        )
        assert response.status_code == 403


class TestProfile:
    def test_first_setup_needs_both_fields(self, client, make_user, auth_headers):
        fresh = make_user(profile_complete=False)
        headers = auth_headers(fresh)

        response = client.patch("/users/me/profile", json={"name": "Neo"}, headers=headers)
        assert response.status_code == 400

        response = client.patch(
            "/users/me/profile",
            json={"name": "Neo", "avatar_url": "https://cdn.example.com/neo.png"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["profile_completed_at"] is not None

    def test_update_and_public_profile(self, client, user, auth_headers):
        response = client.patch("/users/me/profile", json={"name": "Renamed"}, headers=auth_headers(user))
        assert response.status_code == 200

        public = client.get(f"/users/{user.id}").json()
        assert public == {"id": user.id, "name": "Renamed", "avatar_url": None}

    def test_unknown_user_is_404(self, client):
        assert client.get("/users/missing").status_code == 404


class TestGameRequestFlow:
    def test_submit_review_and_react(self, client, user, admin, auth_headers):
        response = client.post(
            "/game-requests",
            json={"title": "Pong", "game_url": "http://pong.example"},
            headers=auth_headers(user),
        )
        assert response.status_code == 201
        request_id = response.json()["id"]

        queue = client.get("/admin/game-requests", headers=auth_headers(admin)).json()
        assert queue["total"] == 1
        assert queue["items"][0]["id"] == request_id

        response = client.post(
            f"/admin/game-requests/{request_id}/approve",
            json={"admin_response": "Welcome"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "approved"
        game_id = body["game_id"]

        again = client.post(f"/admin/game-requests/{request_id}/approve", headers=auth_headers(admin))
        assert again.status_code == 400
        assert again.json()["error"] == "invalid_state"

        game = client.get(f"/games/{game_id}").json()
        assert (game["count_likes"], game["score"]) == (0, 0)

        reaction = client.post(f"/games/{game_id}/react", json={"type": "like"}, headers=auth_headers(user))
        assert reaction.status_code == 200
        assert reaction.json() == {
            "action": "added",
            "reaction": "like",
            "count_likes": 1,
            "count_dislikes": 0,
            "score": 1,
        }
        state = client.get(f"/games/{game_id}/reaction", headers=auth_headers(user)).json()
        assert state == {"game_id": game_id, "reaction": "like", "superliked": False}

        actions = client.get("/admin/actions", headers=auth_headers(admin)).json()
        assert actions["total"] == 1
        assert actions["items"][0]["note"] == "Welcome"

        mine = client.get("/game-requests/my", headers=auth_headers(user)).json()
        assert [item["status"] for item in mine] == ["approved"]

    def test_validation_and_quota_statuses(self, client, user, auth_headers):
        headers = auth_headers(user)
        response = client.post("/game-requests", json={"title": "", "game_url": "http://a.example"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

        for n in range(3):
            response = client.post(
                "/game-requests",
                json={"title": f"Game {n}", "game_url": f"http://{n}.example"},
                headers=headers,
            )
            assert response.status_code == 201

        response = client.post(
            "/game-requests", json={"title": "Fourth", "game_url": "http://4.example"}, headers=headers
        )
        assert response.status_code == 429
        assert response.json()["details"]["limit"] == 3

    def test_malformed_body_is_400(self, client, user, auth_headers):
        response = client.post("/game-requests", json={"tag_ids": "not-a-list"}, headers=auth_headers(user))
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_missing_request_is_404(self, client, admin, auth_headers):
        response = client.post("/admin/game-requests/missing/reject", headers=auth_headers(admin))
        assert response.status_code == 404


class TestCountersOverHttp:
    def test_superlike_conflict_and_exhaustion(self, client, make_user, make_game, auth_headers):
        owner = make_user()
        fan = make_user(superlikes=1)
        first, second = make_game(owner), make_game(owner)

        assert client.post(f"/games/{first.id}/superlike", headers=auth_headers(fan)).status_code == 200
        assert client.post(f"/games/{first.id}/superlike", headers=auth_headers(fan)).status_code == 409

        response = client.post(f"/games/{second.id}/superlike", headers=auth_headers(fan))
        assert response.status_code == 400
        assert response.json()["error"] == "resource_exhausted"

    def test_anonymous_view(self, client, game):
        response = client.post(f"/games/{game.id}/view", json={"fingerprint": "abc"})
        assert response.status_code == 200
        assert response.json() == {"game_id": game.id, "view_count": 1}


class TestAdminModeration:
    def test_deactivate_then_appeal(self, client, user, admin, game, auth_headers):
        response = client.post(
            f"/admin/games/{game.id}/deactivate",
            json={"reason": "Reported"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        gone = client.get(f"/games/{game.id}")
        assert gone.status_code == 400

        appeal = client.post(
            "/game-requests/appeal",
            json={"game_id": game.id, "note": "False report"},
            headers=auth_headers(user),
        )
        assert appeal.status_code == 201
        approve = client.post(
            f"/admin/game-requests/{appeal.json()['id']}/approve", headers=auth_headers(admin)
        )
        assert approve.status_code == 200
        assert client.get(f"/games/{game.id}").status_code == 200

    def test_ban_and_unban(self, client, user, admin, auth_headers):
        response = client.post(
            f"/admin/users/{user.id}/deactivate", json={"reason": "Spam"}, headers=auth_headers(admin)
        )
        assert response.status_code == 200

        appeal = client.post(
            "/user-requests",
            json={"request_type": "user_unban_appeal", "appeal_text": "Sorry"},
            headers=auth_headers(user),
        )
        assert appeal.status_code == 201

        queue = client.get("/admin/user-requests", headers=auth_headers(admin)).json()
        assert queue["total"] == 1

        approve = client.post(
            f"/admin/user-requests/{appeal.json()['id']}/approve", headers=auth_headers(admin)
        )
        assert approve.status_code == 200
        assert client.get("/users/me", headers=auth_headers(user)).json()["is_active"] is True

    def test_self_ban_is_rejected(self, client, admin, auth_headers):
        response = client.post(
            f"/admin/users/{admin.id}/deactivate", json={"reason": "Test"}, headers=auth_headers(admin)
        )
        assert response.status_code == 400


class TestCatalogRoutes:
    def test_list_filters_and_pagination(self, client, user, make_game):
        make_game(user, title="Space Pong", likes=5)
        make_game(user, title="Tetris", likes=1)
        make_game(user, title="Hidden Pong", is_active=False)

        body = client.get("/games", params={"search": "pong"}).json()
        assert body["total"] == 1
        assert body["items"][0]["title"] == "Space Pong"

        body = client.get("/games", params={"min_likes": 2}).json()
        assert [item["title"] for item in body["items"]] == ["Space Pong"]

        body = client.get("/games", params={"limit": 1}).json()
        assert (body["total"], body["total_pages"], len(body["items"])) == (2, 2, 1)

    def test_bad_filters_are_400(self, client):
        assert client.get("/games", params={"limit": 51}).status_code == 400
        assert client.get("/games", params={"created_after": "yesterday"}).status_code == 400

    def test_tags(self, client, admin, user, auth_headers):
        response = client.post("/tags", json={"name": "Arcade"}, headers=auth_headers(admin))
        assert response.status_code == 201
        tag_id = response.json()["id"]

        assert client.post("/tags", json={"name": "Arcade"}, headers=auth_headers(admin)).status_code == 409
        assert client.post("/tags", json={"name": "Nope"}, headers=auth_headers(user)).status_code == 403

        assert [tag["name"] for tag in client.get("/tags").json()] == ["Arcade"]
        assert client.get(f"/tags/{tag_id}/games").json() == []
        assert client.get("/tags/missing/games").status_code == 404
