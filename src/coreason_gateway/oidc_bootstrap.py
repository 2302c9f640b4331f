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
Resolves the primary OIDC issuer into provider endpoints and a token verifier.
"""

from dataclasses import dataclass

import httpx

from coreason_gateway.config import ProxyOptions
from coreason_gateway.exceptions import DiscoveryError
from coreason_gateway.models import IssueCollector, ResolvedEndpoints
from coreason_gateway.models_internal import ProviderMetadata
from coreason_gateway.oidc_provider import RemoteKeySet, discover
from coreason_gateway.utils.logger import logger
from coreason_gateway.validator import TokenVerifier

DEFAULT_OIDC_SCOPE = "openid email profile"


@dataclass(frozen=True)
class OIDCBootstrap:
    """Outcome of resolving the primary issuer."""

    endpoints: ResolvedEndpoints
    verifier: TokenVerifier | None = None


def _merge_endpoints(endpoints: ResolvedEndpoints, metadata: ProviderMetadata) -> ResolvedEndpoints:
    # Manually configured URLs always win over discovered ones
    return ResolvedEndpoints(
        login_url=endpoints.login_url or metadata.authorization_endpoint,
        redeem_url=endpoints.redeem_url or metadata.token_endpoint,
        profile_url=endpoints.profile_url or metadata.userinfo_endpoint,
        jwks_url=endpoints.jwks_url or metadata.jwks_uri,
        scope=endpoints.scope,
    )


def signing_algorithms(metadata: ProviderMetadata) -> list[str] | None:
    """Returns the issuer's advertised signing algorithms, never including "none"."""
    algorithms = [alg for alg in metadata.id_token_signing_alg_values_supported if alg.lower() != "none"]
    return algorithms or None


def configured_endpoints(options: ProxyOptions) -> ResolvedEndpoints:
    """Returns the endpoints exactly as configured, before any discovery."""
    return ResolvedEndpoints(
        login_url=options.login_url,
        redeem_url=options.redeem_url,
        profile_url=options.profile_url,
        jwks_url=options.oidc_jwks_url,
        scope=options.scope,
    )


def bootstrap_oidc(options: ProxyOptions, client: httpx.Client, issues: IssueCollector) -> OIDCBootstrap:
    """
    Resolves `oidc_issuer_url` into endpoints and a verifier.

    In discovery mode (the default) the issuer's OpenID configuration is fetched and
    any failure is fatal. With `skip_oidc_discovery`, the login, redeem and JWKS URLs
    must be configured and the verifier is built directly against the JWKS URL.
    When issuer verification is skipped but discovery is not, one discovery probe is
    made to fill in unset endpoints before continuing in explicit mode; a failed probe
    is logged and otherwise ignored.

    Args:
        options: The raw options.
        client: The HTTP client for discovery and key fetching.
        issues: Collector for accumulable defects.

    Returns:
        OIDCBootstrap: The resolved endpoints and, if an issuer is configured, its verifier.

    Raises:
        DiscoveryError: If discovery-mode bootstrap of the primary issuer fails.
    """
    endpoints = configured_endpoints(options)
    issuer_url = options.oidc_issuer_url
    if not issuer_url:
        return OIDCBootstrap(endpoints=endpoints)

    skip_discovery = options.skip_oidc_discovery
    skip_issuer_check = options.insecure_oidc_skip_issuer_verification

    if skip_issuer_check and not skip_discovery:
        # Discovery verifies the issuer, so fetch the endpoints ourselves and take the explicit path
        logger.info("Performing OIDC Discovery...")
        try:
            metadata = discover(client, issuer_url, verify_issuer=False)
        except DiscoveryError as e:
            logger.warning(f"OIDC discovery probe failed, continuing with configured endpoints: {e}")
        else:
            endpoints = _merge_endpoints(endpoints, metadata)
        skip_discovery = True

    if skip_discovery:
        if not endpoints.login_url:
            issues.missing("login-url")
        if not endpoints.redeem_url:
            issues.missing("redeem-url")
        if not endpoints.jwks_url:
            issues.missing("oidc-jwks-url")
        verifier = TokenVerifier(
            issuer=issuer_url,
            key_set=RemoteKeySet(endpoints.jwks_url, client),
            client_id=options.client_id,
            skip_issuer_check=skip_issuer_check,
        )
    else:
        metadata = discover(client, issuer_url)
        endpoints = _merge_endpoints(endpoints, metadata)
        verifier = TokenVerifier(
            issuer=metadata.issuer,
            key_set=RemoteKeySet(metadata.jwks_uri, client),
            client_id=options.client_id,
            supported_algorithms=signing_algorithms(metadata),
        )

    if not endpoints.scope:
        endpoints = endpoints.model_copy(update={"scope": DEFAULT_OIDC_SCOPE})

    return OIDCBootstrap(endpoints=endpoints, verifier=verifier)
