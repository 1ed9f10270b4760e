"""
Cookie-backed storage for the Supabase auth client.

The server keeps no session state of its own: the PKCE code verifier and the
session tokens travel in HttpOnly cookies. Reads come from the incoming request,
writes are collected and copied onto the outgoing response with ``apply``.
"""

import base64
import binascii
from collections.abc import Mapping

from starlette.responses import Response
from supabase_auth import SyncSupportedStorage

from ..logger import get_logger

logger = get_logger(__name__)

# Browsers cap a cookie at ~4KB including its attributes.
MAX_CHUNK_SIZE = 3180
_ENCODED_PREFIX = "base64-"


def _encode(value: str) -> str:
    encoded = base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii")
    # unpadded, so the value needs no quoting in a Set-Cookie header
    return _ENCODED_PREFIX + encoded.rstrip("=")


def _decode(value: str) -> str:
    if not value.startswith(_ENCODED_PREFIX):
        return value
    encoded = value[len(_ENCODED_PREFIX) :]
    encoded += "=" * (-len(encoded) % 4)
    return base64.urlsafe_b64decode(encoded.encode("ascii")).decode("utf-8")


def _is_chunk_of(name: str, key: str) -> bool:
    prefix = f"{key}."
    return name.startswith(prefix) and name[len(prefix) :].isdigit()


class CookieStorage(SyncSupportedStorage):
    def __init__(self, cookies: Mapping[str, str], secure: bool = True, max_age: int | None = None) -> None:
        self._cookies: dict[str, str] = dict(cookies)
        # cookie name -> new value, or None for deletion
        self._pending: dict[str, str | None] = {}
        self.secure = secure
        self.max_age = max_age

    def get_item(self, key: str) -> str | None:
        if key in self._cookies:
            raw = self._cookies[key]
        else:
            chunks: list[str] = []
            while f"{key}.{len(chunks)}" in self._cookies:
                chunks.append(self._cookies[f"{key}.{len(chunks)}"])
            if not chunks:
                return None
            raw = "".join(chunks)

        try:
            return _decode(raw)
        except (binascii.Error, UnicodeDecodeError, ValueError):
            # a tampered or truncated cookie is the same as no cookie
            logger.warning(f"Ignoring undecodable auth cookie {key}")
            return None

    def set_item(self, key: str, value: str) -> None:
        self.remove_item(key)
        encoded = _encode(value)
        if len(encoded) <= MAX_CHUNK_SIZE:
            self._write(key, encoded)
            return
        for index, start in enumerate(range(0, len(encoded), MAX_CHUNK_SIZE)):
            self._write(f"{key}.{index}", encoded[start : start + MAX_CHUNK_SIZE])

    def remove_item(self, key: str) -> None:
        for name in list(self._cookies):
            if name == key or _is_chunk_of(name, key):
                self._delete(name)

    def _write(self, name: str, value: str) -> None:
        self._cookies[name] = value
        self._pending[name] = value

    def _delete(self, name: str) -> None:
        self._cookies.pop(name, None)
        self._pending[name] = None

    @property
    def pending(self) -> dict[str, str | None]:
        """Cookie writes (value) and deletions (None) not yet applied to a response."""
        return dict(self._pending)

    def apply(self, response: Response) -> None:
        """Copy pending cookie writes and deletions onto ``response``."""
        for name, value in self._pending.items():
            if value is None:
                response.delete_cookie(name, path="/", secure=self.secure, httponly=True, samesite="lax")
            else:
                response.set_cookie(
                    name,
                    value,
                    max_age=self.max_age,
                    path="/",
                    secure=self.secure,
                    httponly=True,
                    samesite="lax",
                )
        self._pending.clear()
