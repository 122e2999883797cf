"""
ClubShelf Voting Backend — HTTP API Tests
===========================================

What:  The routes, auth dependency and global exception handlers together.
How:   HTTPX AsyncClient over ASGITransport; each request gets its own
       session on the test database.

What we test:
    ✅ A full cycle over HTTP: open → suggest → vote → close → select → complete
    ✅ Error bodies: status code, error code and request_id
    ✅ 401 without / with a bad token, 403 for members, 404 for unknown clubs
    ✅ Request validation errors use the same 400 shape
"""

from uuid import uuid4

import pytest

from app.auth.jwt import create_access_token


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database"] == "connected"


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_missing_token(self, test_client, club):
        response = await test_client.get(f"/api/clubs/{club.club_id}/suggestions")

        assert response.status_code == 401
        assert response.json()["error"] == "not_authenticated"

    @pytest.mark.asyncio
    async def test_invalid_token(self, test_client, club):
        response = await test_client.get(
            f"/api/clubs/{club.club_id}/suggestions",
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_unknown_user(self, test_client, club):
        token = create_access_token(uuid4())
        response = await test_client.get(
            f"/api/clubs/{club.club_id}/voting",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401


class TestVotingFlow:

    @pytest.mark.asyncio
    async def test_full_cycle(self, test_client, club, helpers, auth_headers):
        base = f"/api/clubs/{club.club_id}"
        admin, member = auth_headers(club.admin), auth_headers(club.member)

        response = await test_client.post(
            f"{base}/voting/open", json={"duration_hours": 24}, headers=admin
        )
        assert response.status_code == 200
        assert response.json()["state"] == "OPEN"

        response = await test_client.post(
            f"{base}/suggestions",
            json={"book_id": str(club.books[0].id), "reason": "Everyone keeps recommending it"},
            headers=member,
        )
        assert response.status_code == 201
        suggestion_id = response.json()["id"]

        response = await test_client.post(
            f"{base}/suggestions/{suggestion_id}/vote", headers=member
        )
        assert response.status_code == 201
        assert response.json()["vote_count"] == 1

        response = await test_client.post(
            f"{base}/suggestions/{suggestion_id}/vote", headers=member
        )
        assert response.status_code == 409
        assert response.json()["error"] == "already_voted"
        assert response.json()["request_id"]

        response = await test_client.get(f"{base}/suggestions", headers=member)
        assert response.status_code == 200
        assert [(s["id"], s["vote_count"], s["has_voted"]) for s in response.json()] == [
            (suggestion_id, 1, True)
        ]

        response = await test_client.post(f"{base}/voting/results", headers=admin)
        assert response.status_code == 409
        assert response.json()["error"] == "cycle_not_yet_expired"

        await helpers.expire_cycle(club.club_id)

        response = await test_client.post(f"{base}/voting/results", headers=admin)
        assert response.status_code == 200
        body = response.json()
        assert body["outcome"] == "SINGLE_WINNER"
        assert body["winners"][0]["suggestion_id"] == suggestion_id
        assert body["club"]["voting_cycle_active"] is False

        response = await test_client.post(
            f"{base}/voting/select-winner",
            json={"bookId": str(club.books[0].id)},
            headers=admin,
        )
        assert response.status_code == 200
        assert response.json()["current_book_id"] == str(club.books[0].id)

        response = await test_client.post(
            f"{base}/complete-book",
            json={"status": "COMPLETED", "rating": 5, "discussionNotes": "Loved it"},
            headers=admin,
        )
        assert response.status_code == 200
        assert response.json()["club_book"]["rating"] == 5

        response = await test_client.get(f"{base}/voting", headers=member)
        assert response.json()["state"] == "IDLE"
        assert response.json()["current_book_id"] is None

    @pytest.mark.asyncio
    async def test_open_without_body_uses_default_window(self, test_client, club, auth_headers):
        response = await test_client.post(
            f"/api/clubs/{club.club_id}/voting/open", headers=auth_headers(club.owner)
        )
        assert response.status_code == 200
        assert response.json()["voting_cycle_active"] is True

    @pytest.mark.asyncio
    async def test_retract_vote(self, test_client, club, helpers, auth_headers):
        await helpers.open_cycle(club.club_id, club.admin.id)
        suggestion = await helpers.add_suggestion(club.club_id, club.books[0], club.admin.id)
        await helpers.add_votes(suggestion, [club.member])

        response = await test_client.delete(
            f"/api/clubs/{club.club_id}/suggestions/{suggestion.id}/vote",
            headers=auth_headers(club.member),
        )
        assert response.status_code == 200
        assert response.json()["vote_count"] == 0


class TestErrorResponses:

    @pytest.mark.asyncio
    async def test_member_cannot_open_cycle(self, test_client, club, auth_headers):
        response = await test_client.post(
            f"/api/clubs/{club.club_id}/voting/open", headers=auth_headers(club.member)
        )
        assert response.status_code == 403
        assert response.json()["error"] == "not_authorized"

    @pytest.mark.asyncio
    async def test_outsider_is_not_a_member(self, test_client, club, auth_headers):
        response = await test_client.get(
            f"/api/clubs/{club.club_id}/suggestions", headers=auth_headers(club.outsider)
        )
        assert response.status_code == 403
        assert response.json()["error"] == "not_a_member"

    @pytest.mark.asyncio
    async def test_unknown_club(self, test_client, club, auth_headers):
        response = await test_client.get(
            f"/api/clubs/{uuid4()}/voting", headers=auth_headers(club.member)
        )
        assert response.status_code == 404
        assert response.json()["error"] == "club_not_found"

    @pytest.mark.asyncio
    async def test_suggestion_without_open_cycle(self, test_client, club, auth_headers):
        response = await test_client.post(
            f"/api/clubs/{club.club_id}/suggestions",
            json={"book_id": str(club.books[0].id)},
            headers=auth_headers(club.member),
        )
        assert response.status_code == 409
        assert response.json()["error"] == "cycle_not_open"

    @pytest.mark.asyncio
    async def test_malformed_body_is_a_validation_error(self, test_client, club, auth_headers):
        response = await test_client.post(
            f"/api/clubs/{club.club_id}/suggestions",
            json={"book_id": "not-a-uuid"},
            headers=auth_headers(club.member),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        assert "book_id" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_complete_book_requires_notes(self, test_client, club, helpers, auth_headers):
        await helpers.set_current_book(club.club_id, club.books[0].id)

        response = await test_client.post(
            f"/api/clubs/{club.club_id}/complete-book",
            json={"status": "COMPLETED", "rating": 4},
            headers=auth_headers(club.admin),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client, club, auth_headers):
        response = await test_client.get(
            f"/api/clubs/{club.club_id}/voting",
            headers={**auth_headers(club.member), "X-Request-ID": "trace-42"},
        )
        assert response.headers["X-Request-ID"] == "trace-42"
