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
OIDC discovery and the remote JWKS key set.
"""

import threading
import time
from typing import Any

import httpx
from opentelemetry import trace
from pydantic import ValidationError

from coreason_gateway.exceptions import DiscoveryError, OversizedResponseError
from coreason_gateway.models_internal import ProviderMetadata
from coreason_gateway.transport import fetch_json
from coreason_gateway.utils.logger import logger

tracer = trace.get_tracer(__name__)

WELL_KNOWN_OPENID_CONFIGURATION = "/.well-known/openid-configuration"


def discovery_url(issuer_url: str) -> str:
    """Returns the OpenID configuration URL for an issuer."""
    return issuer_url.rstrip("/") + WELL_KNOWN_OPENID_CONFIGURATION


def discover(client: httpx.Client, issuer_url: str, verify_issuer: bool = True) -> ProviderMetadata:
    """
    Fetches and parses an issuer's OpenID configuration document.

    Args:
        client: The HTTP client to use. Its timeout bounds the call.
        issuer_url: The issuer URL as configured.
        verify_issuer: Require the document's `issuer` to match `issuer_url` (trailing slash ignored).

    Returns:
        ProviderMetadata: The parsed provider metadata.

    Raises:
        DiscoveryError: If the document cannot be fetched, parsed, or names a different issuer.
    """
    url = discovery_url(issuer_url)
    with tracer.start_as_current_span("oidc_discovery") as span:
        span.set_attribute("oidc.issuer", issuer_url)
        logger.debug(f"Fetching OIDC configuration from {url}")

        try:
            data = fetch_json(client, url)
        except (httpx.HTTPError, httpx.InvalidURL, OversizedResponseError, ValueError) as e:
            span.record_exception(e)
            raise DiscoveryError(f"Failed to fetch OIDC configuration from {url}: {e}") from e

        if not isinstance(data, dict):
            raise DiscoveryError(f"Invalid OIDC configuration from {url}: expected a JSON object")

        try:
            metadata = ProviderMetadata(**data)
        except ValidationError as e:
            span.record_exception(e)
            raise DiscoveryError(f"Invalid OIDC configuration from {url}: {e}") from e

        if verify_issuer and metadata.issuer.rstrip("/") != issuer_url.rstrip("/"):
            raise DiscoveryError(
                f"oidc: issuer did not match the issuer returned by provider, "
                f"expected {issuer_url!r} got {metadata.issuer!r}"
            )

        return metadata


class RemoteKeySet:
    """
    Fetches and caches a JSON Web Key Set from a remote endpoint.

    Keys are fetched lazily on first use, so building a key set never touches the network.

    Attributes:
        jwks_url (str): The JWKS endpoint.
        cache_ttl (int): The cache time-to-live in seconds.
    """

    def __init__(
        self,
        jwks_url: str,
        client: httpx.Client,
        cache_ttl: int = 3600,
        refresh_cooldown: float = 30.0,
    ) -> None:
        """
        Initialize the RemoteKeySet.

        Args:
            jwks_url: The JWKS endpoint (e.g., https://idp.example.com/.well-known/jwks.json).
            client: The HTTP client to use for requests.
            cache_ttl: Time-to-live for the JWKS cache in seconds. Defaults to 3600 (1 hour).
            refresh_cooldown: Minimum time in seconds between forced refreshes. Defaults to 30.0.
        """
        self.jwks_url = jwks_url
        self.client = client
        self.cache_ttl = cache_ttl
        self.refresh_cooldown = refresh_cooldown
        self._jwks_cache: dict[str, Any] | None = None
        self._last_update: float = 0.0
        self._lock = threading.Lock()

    def _fetch_jwks(self) -> dict[str, Any]:
        try:
            data = fetch_json(self.client, self.jwks_url)
        except (httpx.HTTPError, httpx.InvalidURL, OversizedResponseError, ValueError) as e:
            raise DiscoveryError(f"Failed to fetch JWKS from {self.jwks_url}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("keys"), list):
            raise DiscoveryError(f"Invalid JWKS from {self.jwks_url}: missing 'keys'")
        return data

    def get_jwks(self, force_refresh: bool = False) -> dict[str, Any]:
        """
        Returns the JWKS, using the cache if valid.

        Args:
            force_refresh: If True, bypasses the cache unless a refresh happened within the cooldown.

        Returns:
            dict[str, Any]: The JWKS dictionary.

        Raises:
            DiscoveryError: If fetching fails.
        """
        with self._lock:
            current_time = time.time()
            age = current_time - self._last_update

            if self._jwks_cache is not None:
                if not force_refresh and age < self.cache_ttl:
                    return self._jwks_cache
                if force_refresh and age < self.refresh_cooldown:
                    logger.warning("JWKS refresh cooldown active. Returning cached keys despite force_refresh request.")
                    return self._jwks_cache

            jwks = self._fetch_jwks()
            self._jwks_cache = jwks
            self._last_update = current_time
            return jwks
