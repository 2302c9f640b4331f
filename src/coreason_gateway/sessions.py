# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_gateway

"""
Session store handles handed to the session storage subsystem.

The storage backends themselves live elsewhere; this module only checks that the
session options describe a usable backend and packages what the backend needs.
"""

from typing import Protocol

import httpx
from pydantic import BaseModel, ConfigDict

from coreason_gateway.config import CookieOptions, SessionOptions
from coreason_gateway.encryption import AESCipher
from coreason_gateway.exceptions import SessionStoreError


class CookieSessionStore(BaseModel):
    """Sessions stored entirely in the (optionally encrypted) session cookie."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    cookie: CookieOptions
    cipher: AESCipher | None = None


class RedisSessionStore(BaseModel):
    """Sessions stored in redis, keyed by a ticket held in the session cookie."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    cookie: CookieOptions
    connection_url: httpx.URL
    cipher: AESCipher | None = None


SessionStore = CookieSessionStore | RedisSessionStore


class SessionStoreFactory(Protocol):
    """Builds a session store handle; raises SessionStoreError when it cannot."""

    def __call__(
        self, session: SessionOptions, cookie: CookieOptions, cipher: AESCipher | None
    ) -> SessionStore: ...


def build_session_store(session: SessionOptions, cookie: CookieOptions, cipher: AESCipher | None) -> SessionStore:
    """
    Builds the session store handle for the configured backend.

    Raises:
        SessionStoreError: If the backend is unknown or its settings are unusable.
    """
    store_type = session.type.strip().lower()

    if store_type == "cookie":
        return CookieSessionStore(cookie=cookie, cipher=cipher)

    if store_type == "redis":
        if not session.redis_connection_url:
            raise SessionStoreError("redis session store requires redis-connection-url")
        try:
            url = httpx.URL(session.redis_connection_url)
        except httpx.InvalidURL as e:
            raise SessionStoreError(f"unable to parse redis url: {e}") from e
        if url.scheme not in ("redis", "rediss") or not url.host:
            raise SessionStoreError(f"unable to parse redis url: {session.redis_connection_url!r}")
        return RedisSessionStore(cookie=cookie, connection_url=url, cipher=cipher)

    raise SessionStoreError(f"unknown session store type '{session.type}'")
