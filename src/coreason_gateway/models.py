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
Data models for the coreason-gateway package.
"""

import hashlib
from collections.abc import Callable, Iterator
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, SecretStr


class IssueKind(StrEnum):
    MISSING = "missing"
    INVALID = "invalid"
    MUTUALLY_EXCLUSIVE = "mutually_exclusive"
    UNSUPPORTED = "unsupported"
    UNREADABLE = "unreadable"
    DEPENDENCY = "dependency"


class ConfigIssue(BaseModel):
    """
    A single configuration defect found during validation.

    Attributes:
        setting (str): The option the defect is attributed to (e.g. "cookie-secret").
        kind (IssueKind): The category of the defect.
        message (str): The operator-facing description.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    setting: str
    kind: IssueKind
    message: str

    def __str__(self) -> str:
        return self.message


class IssueCollector:
    """
    Ordered accumulator of ConfigIssue records.

    Every check appends to the same collector and carries on, so a single
    validation pass reports all defects at once.
    """

    def __init__(self) -> None:
        self._issues: list[ConfigIssue] = []

    def add(self, setting: str, kind: IssueKind, message: str) -> None:
        self._issues.append(ConfigIssue(setting=setting, kind=kind, message=message))

    def missing(self, setting: str, message: str | None = None) -> None:
        self.add(setting, IssueKind.MISSING, message or f"missing setting: {setting}")

    def invalid(self, setting: str, message: str) -> None:
        self.add(setting, IssueKind.INVALID, message)

    @property
    def issues(self) -> tuple[ConfigIssue, ...]:
        return tuple(self._issues)

    def __len__(self) -> int:
        return len(self._issues)

    def __bool__(self) -> bool:
        return bool(self._issues)

    def __iter__(self) -> Iterator[ConfigIssue]:
        return iter(self._issues)


SUPPORTED_DIGESTS: dict[str, Callable[..., Any]] = {
    "md5": hashlib.md5,
    "sha1": hashlib.sha1,
    "sha224": hashlib.sha224,
    "sha256": hashlib.sha256,
    "sha384": hashlib.sha384,
    "sha512": hashlib.sha512,
}


class SignatureSpec(BaseModel):
    """
    HMAC signing material for proxied requests.

    Attributes:
        algorithm (str): Digest name, one of SUPPORTED_DIGESTS.
        key (SecretStr): The shared secret.
    """

    model_config = ConfigDict(frozen=True)

    algorithm: str
    key: SecretStr

    @property
    def digestmod(self) -> Callable[..., Any]:
        return SUPPORTED_DIGESTS[self.algorithm]


class IssuerBinding(BaseModel):
    """An extra trusted JWT issuer and the audience its tokens must carry."""

    model_config = ConfigDict(frozen=True)

    issuer_uri: str
    audience: str


class ResolvedEndpoints(BaseModel):
    """
    Provider endpoints after discovery has been merged with configured values.

    Configured values always win over discovered ones; the options record itself is never mutated.
    """

    model_config = ConfigDict(frozen=True)

    login_url: str = ""
    redeem_url: str = ""
    profile_url: str = ""
    jwks_url: str = ""
    scope: str = ""
