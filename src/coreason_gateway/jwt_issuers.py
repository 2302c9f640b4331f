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
Builds the verifiers accepted for pre-issued bearer tokens.
"""

import httpx

from coreason_gateway.exceptions import DiscoveryError
from coreason_gateway.models import IssueCollector, IssuerBinding, IssueKind
from coreason_gateway.oidc_bootstrap import signing_algorithms
from coreason_gateway.oidc_provider import RemoteKeySet, discover
from coreason_gateway.utils.logger import logger
from coreason_gateway.validator import TokenVerifier

WELL_KNOWN_JWKS = "/.well-known/jwks.json"


def parse_jwt_issuers(entries: list[str], issues: IssueCollector) -> list[IssuerBinding]:
    """
    Parses `issuer=audience` entries, splitting on the first `=` only.

    Entries without any `=` are reported and skipped.
    """
    bindings: list[IssuerBinding] = []
    for entry in entries:
        issuer_uri, sep, audience = entry.partition("=")
        if not sep:
            issues.invalid("extra-jwt-issuers", f"invalid jwt verifier uri=audience spec: {entry}")
            continue
        bindings.append(IssuerBinding(issuer_uri=issuer_uri, audience=audience))
    return bindings


def verifier_from_issuer(binding: IssuerBinding, client: httpx.Client) -> TokenVerifier:
    """
    Builds a verifier for an extra issuer.

    The issuer is first treated as an OpenID Connect provider; if discovery fails it is
    treated as a bare JWKS host serving `/.well-known/jwks.json`.

    Raises:
        httpx.InvalidURL: If the fallback JWKS URL is not a usable absolute URL.
    """
    try:
        metadata = discover(client, binding.issuer_uri)
    except DiscoveryError as e:
        logger.info(f"Discovery failed for {binding.issuer_uri}, trying it as a JWKS host: {e}")
        jwks_url = binding.issuer_uri.rstrip("/") + WELL_KNOWN_JWKS
        parsed = httpx.URL(jwks_url)
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise httpx.InvalidURL(f"invalid JWKS URL {jwks_url!r}") from e
        return TokenVerifier(
            issuer=binding.issuer_uri,
            key_set=RemoteKeySet(jwks_url, client),
            client_id=binding.audience,
        )

    return TokenVerifier(
        issuer=metadata.issuer,
        key_set=RemoteKeySet(metadata.jwks_uri, client),
        client_id=binding.audience,
        supported_algorithms=signing_algorithms(metadata),
    )


def resolve_bearer_verifiers(
    primary: TokenVerifier | None,
    entries: list[str],
    client: httpx.Client,
    issues: IssueCollector,
) -> list[TokenVerifier]:
    """
    Returns the verifiers used for bearer-token mode.

    The primary verifier, when present, comes first. A failing extra issuer is reported
    and the remaining entries are still processed.
    """
    verifiers: list[TokenVerifier] = []
    if primary is not None:
        verifiers.append(primary)

    for binding in parse_jwt_issuers(entries, issues):
        try:
            verifiers.append(verifier_from_issuer(binding, client))
        except httpx.InvalidURL as e:
            issues.add("extra-jwt-issuers", IssueKind.INVALID, f"error building verifiers: {e}")

    return verifiers
