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
Custom exceptions for the coreason-gateway package.
"""

from collections.abc import Iterable

from coreason_gateway.models import ConfigIssue

CONFIGURATION_BANNER = "invalid configuration:"


class CoreasonGatewayError(Exception):
    """Base exception for all coreason-gateway errors."""


class ConfigurationError(CoreasonGatewayError):
    """
    Raised when the validation pass finds one or more configuration defects.

    Attributes:
        issues (tuple[ConfigIssue, ...]): Every defect found, in the order the checks ran.
    """

    def __init__(self, issues: Iterable[ConfigIssue]) -> None:
        self.issues = tuple(issues)
        super().__init__(self.render(self.issues))

    @staticmethod
    def render(issues: Iterable[ConfigIssue]) -> str:
        return CONFIGURATION_BANNER + "\n  " + "\n  ".join(issue.message for issue in issues)


class DiscoveryError(CoreasonGatewayError):
    """Raised when an issuer's OpenID configuration cannot be fetched or is unusable."""


class OversizedResponseError(CoreasonGatewayError):
    """Raised when an HTTP response is too large."""


class SessionStoreError(CoreasonGatewayError):
    """Raised when the session store cannot be constructed from the session options."""


class InvalidTokenError(CoreasonGatewayError):
    """
    Raised when a bearer token is invalid (expired, bad signature, wrong audience, etc.).
    """


class TokenExpiredError(InvalidTokenError):
    """Raised when the provided token has expired."""


class InvalidAudienceError(InvalidTokenError):
    """Raised when the token's audience does not match the expected value."""


class InvalidIssuerError(InvalidTokenError):
    """Raised when the token's issuer does not match the verifier's issuer."""


class SignatureVerificationError(InvalidTokenError):
    """Raised when the token's signature cannot be verified."""
