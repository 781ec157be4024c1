"""Tests for error normalization: JSON for /api paths, the error page elsewhere."""

import json

from httpx import AsyncClient
from starlette.requests import Request

from natours.config import settings
from natours.errors import GENERIC_API_MESSAGE, Internal, NotFound, build_error_response


def _request(path: str) -> Request:
    return Request({"type": "http", "method": "GET", "path": path, "headers": [], "query_string": b""})


class TestApiErrors:
    async def test_unknown_api_route(self, client: AsyncClient):
        response = await client.get("/api/v1/nothing-here")
        assert response.status_code == 404
        body = response.json()
        assert body["status"] == "fail"
        assert body["message"] == "Can't find /api/v1/nothing-here on this server!"

    async def test_development_includes_stack(self, client: AsyncClient):
        response = await client.get("/api/v1/nothing-here")
        assert "stack" in response.json()
        assert "error" in response.json()

    async def test_validation_error_is_400(self, client: AsyncClient):
        response = await client.post("/api/v1/users/signup", json={"name": "Ann", "email": "not-an-email"})
        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid input data.")


class TestProductionResponses:
    def test_internal_error_message_hidden(self, monkeypatch):
        monkeypatch.setattr(settings, "environment", "production")
        response = build_error_response(_request("/api/v1/tours"), Internal("database exploded"))

        assert response.status_code == 500
        body = json.loads(response.body)
        assert body == {"status": "error", "message": GENERIC_API_MESSAGE}

    def test_unexpected_exception_treated_as_internal(self, monkeypatch):
        monkeypatch.setattr(settings, "environment", "production")
        response = build_error_response(_request("/api/v1/tours"), RuntimeError("boom"))

        assert response.status_code == 500
        assert json.loads(response.body)["message"] == GENERIC_API_MESSAGE

    def test_operational_error_keeps_message(self, monkeypatch):
        monkeypatch.setattr(settings, "environment", "production")
        response = build_error_response(_request("/api/v1/tours/x"), NotFound("No document found with that ID"))

        assert response.status_code == 404
        assert json.loads(response.body) == {"status": "fail", "message": "No document found with that ID"}


class TestPageErrors:
    async def test_unknown_page_renders_html(self, client: AsyncClient):
        response = await client.get("/no-such-page")
        assert response.status_code == 404
        assert response.headers["content-type"].startswith("text/html")
        assert "/no-such-page on this server!" in response.text
