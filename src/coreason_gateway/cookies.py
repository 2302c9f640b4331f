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
Cookie secret decoding and cookie policy checks.
"""

import base64
import binascii
import re

from coreason_gateway.config import CookieOptions, ProxyOptions
from coreason_gateway.encryption import AES_KEY_SIZES, AESCipher
from coreason_gateway.models import IssueCollector, IssueKind

SAMESITE_VALUES = ("", "lax", "strict", "none")

# RFC 7230 token characters
_COOKIE_NAME_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
# URL-safe base64 with at most two trailing padding characters
_URLSAFE_BASE64_RE = re.compile(rb"[A-Za-z0-9\-_]*={0,2}")


def add_padding(secret: bytes) -> bytes:
    """Pads `secret` with `=` up to a multiple of four bytes."""
    remainder = len(secret) % 4
    if remainder == 0:
        return secret
    return secret + b"=" * (4 - remainder)


def secret_bytes(secret: str) -> bytes:
    """
    Returns the effective cookie secret.

    The secret is decoded as URL-safe base64 (after padding) when possible; the decoded
    bytes are then padded with the same rule. Anything that is not valid URL-safe base64
    is used literally.
    """
    raw = secret.encode("utf-8")
    padded = add_padding(raw)
    if not _URLSAFE_BASE64_RE.fullmatch(padded):
        return raw
    try:
        decoded = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError):
        return raw
    return add_padding(decoded)


def build_cipher(options: ProxyOptions, issues: IssueCollector) -> AESCipher | None:
    """
    Builds the session cipher when one is required.

    A cipher is required when access tokens are passed upstream, authorization headers
    are emitted, or cookie refresh is enabled.
    """
    if not options.cipher_required:
        return None

    secret = options.cookie.secret.get_secret_value()
    key = secret_bytes(secret)

    if len(key) not in AES_KEY_SIZES:
        suffix = ""
        if key != secret.encode("utf-8"):
            suffix = f" note: cookie secret was base64 decoded from {secret!r}"
        issues.invalid(
            "cookie-secret",
            "cookie_secret must be 16, 24, or 32 bytes to create an AES cipher when "
            "pass_access_token == true or cookie_refresh != 0, "
            f"but is {len(key)} bytes.{suffix}",
        )
        return None

    try:
        return AESCipher(key)
    except ValueError as e:
        issues.invalid("cookie-secret", f"cookie-secret error: {e}")
        return None


def is_valid_cookie_name(name: str) -> bool:
    return bool(_COOKIE_NAME_RE.fullmatch(name))


def validate_cookie_policy(cookie: CookieOptions, issues: IssueCollector) -> list[str]:
    """
    Checks refresh/expiry ordering, the SameSite value and the cookie name.

    Returns:
        list[str]: The cookie domains, longest (most specific) first.
    """
    if cookie.refresh >= cookie.expire:
        issues.invalid(
            "cookie-refresh",
            f"cookie_refresh ({cookie.refresh}) must be less than cookie_expire ({cookie.expire})",
        )

    if cookie.samesite not in SAMESITE_VALUES:
        issues.add(
            "cookie-samesite",
            IssueKind.UNSUPPORTED,
            f"cookie_samesite ({cookie.samesite}) must be one of ['', 'lax', 'strict', 'none']",
        )

    if not is_valid_cookie_name(cookie.name):
        issues.invalid("cookie-name", f"invalid cookie name: {cookie.name!r}")

    return sorted(cookie.domains, key=len, reverse=True)
