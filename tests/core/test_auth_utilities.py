"""Tests for auth utilities module."""

from fastapi import Request
import pytest

from bookshelf.core.auth.utilities import mask_email, normalize_email, request_origin, url_origin


def _request(headers: dict[str, str] | None = None, scheme: str = "http", host: str = "testserver") -> Request:
    raw_headers = [(b"host", host.encode())]
    raw_headers += [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request(
        {
            "type": "http",
            "method": "POST",
            "scheme": scheme,
            "server": (host, 443 if scheme == "https" else 80),
            "path": "/auth/signin",
            "query_string": b"",
            "headers": raw_headers,
        }
    )


class TestRequestOrigin:
    """Test url_origin and request_origin."""

    def test_url_origin(self) -> None:
        assert url_origin(_request(scheme="https", host="books.example")) == "https://books.example"

    def test_url_origin_keeps_port(self) -> None:
        assert url_origin(_request(host="localhost:8000")) == "http://localhost:8000"

    def test_origin_header_wins(self) -> None:
        request = _request({"Origin": "https://app.example/"})
        assert request_origin(request) == "https://app.example"

    def test_missing_origin_falls_back_to_url(self) -> None:
        assert request_origin(_request()) == "http://testserver"

    def test_null_origin_falls_back_to_url(self) -> None:
        """Privacy-sensitive contexts send the literal string 'null'."""
        assert request_origin(_request({"Origin": "null"})) == "http://testserver"


class TestNormalizeEmail:
    """Test normalize_email function."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Reader@Example.COM", "reader@example.com"),
            ("  reader@example.com\n", "reader@example.com"),
            ("first.last+tag@mail.example.org", "first.last+tag@mail.example.org"),
        ],
    )
    def test_valid_emails(self, raw: str, expected: str) -> None:
        assert normalize_email(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "reader", "@example.com", "reader@", "reader@localhost", "a@b@c.com"])
    def test_invalid_emails(self, raw: str | None) -> None:
        assert normalize_email(raw) is None


class TestMaskEmail:
    """Test mask_email function."""

    def test_mask_email(self) -> None:
        assert mask_email("reader@example.com") == "r*****@example.com"

    def test_single_character_local_part(self) -> None:
        assert mask_email("r@example.com") == "r@example.com"

    def test_empty(self) -> None:
        assert mask_email(None) == ""
        assert mask_email("") == ""

    def test_not_an_email(self) -> None:
        assert mask_email("reader") == "******"
