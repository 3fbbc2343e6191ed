"""Tests for shared API error parsing."""
import httpx
import pytest

from wouldyou_session.shared.api_errors import parse_http_error


def _make_error(status: int, **kwargs: object) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "http://testserver/api/auth/login")
    response = httpx.Response(status, request=request, **kwargs)
    return httpx.HTTPStatusError("error", request=request, response=response)


class TestCategories:
    """Status codes map to semantic categories."""

    @pytest.mark.parametrize(
        ("status", "category"),
        [
            (400, "validation"),
            (401, "auth"),
            (403, "forbidden"),
            (404, "not_found"),
            (409, "conflict"),
            (422, "validation"),
            (500, "internal"),
            (502, "internal"),
            (418, "internal"),
        ],
    )
    def test__parse_http_error__category(self, status: int, category: str) -> None:
        parsed = parse_http_error(_make_error(status, json={}))
        assert parsed.category == category
        assert parsed.status_code == status


class TestMessages:
    """Server messages are kept verbatim, with generic fallbacks."""

    def test__parse_http_error__uses_backend_message(self) -> None:
        error = _make_error(401, json={"error": True, "message": "invalid email or password"})
        assert parse_http_error(error).message == "invalid email or password"

    def test__parse_http_error__uses_string_detail(self) -> None:
        error = _make_error(409, json={"detail": "email already registered"})
        assert parse_http_error(error).message == "email already registered"

    def test__parse_http_error__fallback_for_empty_message(self) -> None:
        error = _make_error(401, json={"error": True, "message": "  "})
        assert parse_http_error(error).message == "Invalid or expired credentials"

    def test__parse_http_error__fallback_for_non_json_body(self) -> None:
        error = _make_error(502, text="<html>Bad Gateway</html>")
        assert parse_http_error(error).message == "Something went wrong. Please try again."

    def test__parse_http_error__fallback_for_non_dict_json(self) -> None:
        error = _make_error(400, json=["unexpected"])
        assert parse_http_error(error).message == "Validation error"
