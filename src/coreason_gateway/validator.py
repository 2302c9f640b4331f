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
TokenVerifier component for verifying JWT signatures and claims.
"""

from typing import Any, cast

from authlib.jose import JsonWebToken
from authlib.jose.errors import (
    BadSignatureError,
    ExpiredTokenError,
    InvalidClaimError,
    JoseError,
    MissingClaimError,
)

from coreason_gateway.exceptions import (
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidTokenError,
    SignatureVerificationError,
    TokenExpiredError,
)
from coreason_gateway.oidc_provider import RemoteKeySet
from coreason_gateway.utils.logger import logger

DEFAULT_ALGORITHMS = ["RS256"]


class TokenVerifier:
    """
    Verifies signed tokens issued by one issuer against its remote key set.

    Verifiers built from discovery metadata and verifiers built from an explicit
    JWKS URL are the same class and behave identically.

    Attributes:
        issuer (str): The expected issuer claim.
        key_set (RemoteKeySet): The issuer's signing keys.
        client_id (str): The expected audience claim.
        skip_issuer_check (bool): Accept tokens regardless of their `iss` claim.
    """

    def __init__(
        self,
        issuer: str,
        key_set: RemoteKeySet,
        client_id: str,
        skip_issuer_check: bool = False,
        supported_algorithms: list[str] | None = None,
        leeway: int = 0,
    ) -> None:
        """
        Initialize the TokenVerifier.

        Args:
            issuer: The expected issuer (iss) claim.
            key_set: The key set to verify signatures with.
            client_id: The expected audience (aud) claim.
            skip_issuer_check: Do not compare the `iss` claim with `issuer`.
            supported_algorithms: Accepted signing algorithms. Defaults to RS256.
            leeway: Acceptable clock skew in seconds. Defaults to 0.
        """
        self.issuer = issuer
        self.key_set = key_set
        self.client_id = client_id
        self.skip_issuer_check = skip_issuer_check
        self.supported_algorithms = supported_algorithms or list(DEFAULT_ALGORITHMS)
        self.leeway = leeway
        # Use a specific JsonWebToken instance to enforce allowed algorithms and reject others
        self.jwt = JsonWebToken(self.supported_algorithms)

    def __repr__(self) -> str:
        return f"TokenVerifier(issuer={self.issuer!r}, client_id={self.client_id!r}, jwks_url={self.key_set.jwks_url!r})"

    def _claims_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "exp": {"essential": True},
            "aud": {"essential": True, "value": self.client_id},
        }
        if not self.skip_issuer_check:
            options["iss"] = {"essential": True, "value": self.issuer}
        return options

    def _decode(self, token: str, jwks: dict[str, Any]) -> Any:
        jwt_any = cast("Any", self.jwt)
        claims = jwt_any.decode(token, jwks, claims_options=self._claims_options())
        claims.validate(leeway=self.leeway)
        return claims

    def verify(self, token: str) -> dict[str, Any]:
        """
        Verifies the token signature and its exp, aud and iss claims.

        Args:
            token: The raw token string (without "Bearer " prefix).

        Returns:
            dict[str, Any]: The verified claims.

        Raises:
            TokenExpiredError: If the token has expired.
            InvalidAudienceError: If the audience does not match the client id.
            InvalidIssuerError: If the issuer does not match.
            SignatureVerificationError: If the signature is invalid or the key is unknown.
            InvalidTokenError: For other malformed or invalid tokens.
        """
        token = token.strip()
        try:
            try:
                claims = self._decode(token, self.key_set.get_jwks())
            except (ValueError, BadSignatureError):
                # Unknown kid or bad signature may mean the issuer rotated its keys
                logger.info("Verification failed with cached keys, refreshing JWKS and retrying...")
                claims = self._decode(token, self.key_set.get_jwks(force_refresh=True))
            return dict(claims)
        except ExpiredTokenError as e:
            raise TokenExpiredError(f"Token has expired: {e}") from e
        except InvalidClaimError as e:
            if e.claim_name == "aud":
                raise InvalidAudienceError(f"Invalid audience: {e}") from e
            if e.claim_name == "iss":
                raise InvalidIssuerError(f"Invalid issuer: {e}") from e
            raise InvalidTokenError(f"Invalid claim: {e}") from e
        except MissingClaimError as e:
            raise InvalidTokenError(f"Missing claim: {e}") from e
        except BadSignatureError as e:
            raise SignatureVerificationError(f"Invalid signature: {e}") from e
        except JoseError as e:
            raise InvalidTokenError(f"Token verification failed: {e}") from e
        except ValueError as e:
            # Authlib raises ValueError when no key in the set matches the token's kid
            raise SignatureVerificationError(f"Invalid signature or key not found: {e}") from e
