"""Tests for self-service and admin user endpoints."""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from natours.models.tour import Tour
from natours.models.user import User
from natours.services import reviews as review_service

pytestmark = pytest.mark.asyncio


class TestMe:
    async def test_me(self, client: AsyncClient, test_user: User, auth_headers: dict) -> None:
        response = await client.get("/api/v1/users/me", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == str(test_user.id)
        assert "hashed_password" not in data
        assert "password_reset_token" not in data

    async def test_update_me(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.patch("/api/v1/users/update-me", json={"name": "Renamed"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Renamed"

    async def test_update_me_ignores_role(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.patch(
            "/api/v1/users/update-me", json={"name": "Climber", "role": "admin"}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["role"] == "user"

    async def test_update_me_rejects_password(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.patch(
            "/api/v1/users/update-me",
            json={"password": "newpass456", "password_confirm": "newpass456"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert "/update-password" in response.json()["message"]

    async def test_update_me_cannot_clear_email(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.patch("/api/v1/users/update-me", json={"email": None}, headers=auth_headers)
        assert response.status_code == 400

    async def test_update_me_taken_email(
        self, client: AsyncClient, other_user: User, auth_headers: dict
    ) -> None:
        response = await client.patch(
            "/api/v1/users/update-me", json={"email": other_user.email}, headers=auth_headers
        )
        assert response.status_code == 409

    async def test_delete_me_deactivates(
        self, client: AsyncClient, db_session: AsyncSession, test_user: User, auth_headers: dict
    ) -> None:
        response = await client.delete("/api/v1/users/delete-me", headers=auth_headers)
        assert response.status_code == 204
        assert test_user.active is False

        # Soft-deleted users can no longer authenticate
        me = await client.get("/api/v1/users/me", headers=auth_headers)
        assert me.status_code == 401


class TestAdminUsers:
    async def test_list_hides_inactive_by_default(
        self, client: AsyncClient, admin_headers: dict, make_user
    ) -> None:
        inactive = await make_user("user", active=False)
        response = await client.get("/api/v1/users", headers=admin_headers)
        assert str(inactive.id) not in {u["id"] for u in response.json()["data"]}

        everyone = await client.get("/api/v1/users", params={"include_inactive": "true"}, headers=admin_headers)
        assert str(inactive.id) in {u["id"] for u in everyone.json()["data"]}

    async def test_cannot_filter_on_password_hash(self, client: AsyncClient, admin_headers: dict) -> None:
        response = await client.get("/api/v1/users", params={"hashed_password": "x"}, headers=admin_headers)
        assert response.status_code == 400

    async def test_create_points_to_signup(self, client: AsyncClient, admin_headers: dict) -> None:
        response = await client.post("/api/v1/users", json={}, headers=admin_headers)
        assert response.status_code == 400
        assert "/signup" in response.json()["message"]

    async def test_get_update_delete(self, client: AsyncClient, admin_headers: dict, test_user: User) -> None:
        url = f"/api/v1/users/{test_user.id}"

        got = await client.get(url, headers=admin_headers)
        assert got.status_code == 200
        assert got.json()["data"]["email"] == test_user.email

        patched = await client.patch(url, json={"role": "guide"}, headers=admin_headers)
        assert patched.status_code == 200
        assert patched.json()["data"]["role"] == "guide"

        deleted = await client.delete(url, headers=admin_headers)
        assert deleted.status_code == 204
        assert (await client.get(url, headers=admin_headers)).status_code == 404

    async def test_invalid_role(self, client: AsyncClient, admin_headers: dict, test_user: User) -> None:
        response = await client.patch(
            f"/api/v1/users/{test_user.id}", json={"role": "overlord"}, headers=admin_headers
        )
        assert response.status_code == 400

    async def test_get_unknown_user(self, client: AsyncClient, admin_headers: dict) -> None:
        response = await client.get(f"/api/v1/users/{uuid.uuid4()}", headers=admin_headers)
        assert response.status_code == 404

    @pytest.mark.parametrize("field", ["name", "email", "role", "active"])
    async def test_update_cannot_clear_required_field(
        self, client: AsyncClient, admin_headers: dict, test_user: User, field: str
    ) -> None:
        response = await client.patch(f"/api/v1/users/{test_user.id}", json={field: None}, headers=admin_headers)
        assert response.status_code == 400
        assert f"{field} cannot be null" in response.json()["message"]

    async def test_delete_user_recomputes_reviewed_tours(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        admin_headers: dict,
        test_tour: Tour,
        test_user: User,
        other_user: User,
    ) -> None:
        await review_service.create_review(db_session, test_user.id, test_tour.id, "Superb", 5)
        await review_service.create_review(db_session, other_user.id, test_tour.id, "Awful", 1)

        response = await client.delete(f"/api/v1/users/{other_user.id}", headers=admin_headers)
        assert response.status_code == 204

        await db_session.refresh(test_tour)
        assert (test_tour.ratings_quantity, test_tour.ratings_average) == (1, 5.0)
