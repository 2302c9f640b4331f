# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_gateway

import time
from collections.abc import Callable, Generator
from typing import Any

import httpx
import pytest
from authlib.jose import JsonWebKey, jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from loguru import logger

from coreason_gateway.config import ProxyOptions

ISSUER = "https://idp.example.com"
JWKS_URL = f"{ISSUER}/keys"
KID = "test-key"

# 16 bytes that are not valid URL-safe base64 ("!" is outside the alphabet)
LITERAL_SECRET_16 = "0123456789abcde!"


class FakeIdP:
    """
    Routes requests made through an httpx.MockTransport.

    Unknown URLs fail with a connection error, the same way an unreachable issuer would.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def json(self, url: str, payload: Any, status_code: int = 200) -> None:
        self.routes[url] = lambda request: httpx.Response(status_code, json=payload)

    def openid_configuration(self, issuer: str, /, **overrides: Any) -> dict[str, Any]:
        document = {
            "issuer": issuer,
            "authorization_endpoint": f"{issuer}/authorize",
            "token_endpoint": f"{issuer}/token",
            "userinfo_endpoint": f"{issuer}/userinfo",
            "jwks_uri": f"{issuer}/keys",
            "id_token_signing_alg_values_supported": ["RS256"],
        }
        document.update(overrides)
        self.json(issuer.rstrip("/") + "/.well-known/openid-configuration", document)
        return document

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            raise httpx.ConnectError(f"no route to {request.url}", request=request)
        return route(request)

    def calls_to(self, url: str) -> int:
        return sum(1 for request in self.requests if str(request.url) == url)


@pytest.fixture
def idp() -> FakeIdP:
    return FakeIdP()


@pytest.fixture
def client(idp: FakeIdP) -> Generator[httpx.Client, None, None]:
    with httpx.Client(transport=httpx.MockTransport(idp.handler), timeout=5.0) as c:
        yield c


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_pem(rsa_key: rsa.RSAPrivateKey) -> bytes:
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def jwks(rsa_pem: bytes) -> dict[str, Any]:
    key = JsonWebKey.import_key(rsa_pem, {"kty": "RSA", "kid": KID})
    public = key.as_dict(is_private=False)
    public["kid"] = KID
    return {"keys": [public]}


@pytest.fixture
def sign_token(rsa_pem: bytes) -> Callable[..., str]:
    def _sign(kid: str = KID, **claims: Any) -> str:
        now = int(time.time())
        payload = {"iss": ISSUER, "aud": "client", "sub": "user-1", "iat": now, "exp": now + 300}
        payload.update(claims)
        token = jwt.encode({"alg": "RS256", "kid": kid}, payload, rsa_pem)
        return token.decode("ascii") if isinstance(token, bytes) else token

    return _sign


@pytest.fixture
def make_options() -> Callable[..., ProxyOptions]:
    """Builds options that pass validation unless overridden."""

    def _make(**overrides: Any) -> ProxyOptions:
        values: dict[str, Any] = {
            "provider": "github",
            "client_id": "client",
            "client_secret": "client-secret",
            "cookie": {"secret": LITERAL_SECRET_16},
            "email_domains": ["*"],
            "redirect_url": "https://gateway.example.com/oauth2/callback",
            "upstreams": ["http://127.0.0.1:8080"],
        }
        values.update(overrides)
        return ProxyOptions(**values)

    return _make


@pytest.fixture
def captured_logs() -> Generator[list[str], None, None]:
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(str(message)), level="DEBUG")
    yield messages
    logger.remove(handler_id)
