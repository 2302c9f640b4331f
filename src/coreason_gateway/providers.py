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
Provider binding: shared OAuth2 provider data plus provider-specific constraints.

Every supported provider kind is a variant of the `ProviderBinding` union, carrying
only its own extra fields. Binding dispatches through one mapping that covers every
`ProviderKind`.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Annotated, ClassVar, Literal

import httpx
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from pydantic import BaseModel, ConfigDict, Field, SecretStr

from coreason_gateway.config import ProxyOptions
from coreason_gateway.exceptions import DiscoveryError
from coreason_gateway.models import IssueCollector, IssueKind, ResolvedEndpoints
from coreason_gateway.oidc_bootstrap import signing_algorithms
from coreason_gateway.oidc_provider import RemoteKeySet, discover
from coreason_gateway.parsing import parse_url
from coreason_gateway.utils.logger import logger
from coreason_gateway.validator import TokenVerifier

GITLAB_ISSUER_URL = "https://gitlab.com"


class ProviderKind(StrEnum):
    GENERIC = "generic"
    AZURE = "azure"
    GITHUB = "github"
    KEYCLOAK = "keycloak"
    GOOGLE = "google"
    BITBUCKET = "bitbucket"
    OIDC = "oidc"
    GITLAB = "gitlab"
    LOGIN_GOV = "login.gov"


class Capability(StrEnum):
    ORG_SCOPED = "org_scoped"
    GROUP_SCOPED = "group_scoped"
    DOMAIN_SCOPED = "domain_scoped"
    JWT_SIGNING = "jwt_signing"


# Plain OAuth2 providers that need nothing beyond the shared provider data
GENERIC_PROVIDER_NAMES = frozenset({"generic", "facebook", "linkedin", "digitalocean"})


class ProviderData(BaseModel):
    """
    Settings shared by every provider kind.

    Attributes:
        name (str): The provider name as configured.
        scope (str): OAuth2 scope to request.
        login_url (httpx.URL | None): Authorization endpoint.
        redeem_url (httpx.URL | None): Token endpoint.
        profile_url (httpx.URL | None): Userinfo endpoint.
        validate_url (httpx.URL | None): Token validation endpoint.
        protected_resource (httpx.URL | None): Resource parameter for providers that need one.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    display_name: str = ""
    scope: str = ""
    client_id: str = ""
    client_secret: SecretStr = SecretStr("")
    client_secret_file: str = ""
    prompt: str = ""
    approval_prompt: str = ""
    acr_values: str = ""
    login_url: httpx.URL | None = None
    redeem_url: httpx.URL | None = None
    profile_url: httpx.URL | None = None
    validate_url: httpx.URL | None = None
    protected_resource: httpx.URL | None = None


class _BaseBinding(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    capabilities: ClassVar[frozenset[Capability]] = frozenset()

    data: ProviderData


class GenericBinding(_BaseBinding):
    kind: Literal[ProviderKind.GENERIC] = ProviderKind.GENERIC


class AzureBinding(_BaseBinding):
    kind: Literal[ProviderKind.AZURE] = ProviderKind.AZURE
    capabilities: ClassVar[frozenset[Capability]] = frozenset({Capability.ORG_SCOPED})

    tenant: str = ""


class GitHubBinding(_BaseBinding):
    kind: Literal[ProviderKind.GITHUB] = ProviderKind.GITHUB
    capabilities: ClassVar[frozenset[Capability]] = frozenset({Capability.ORG_SCOPED, Capability.GROUP_SCOPED})

    org: str = ""
    team: str = ""


class KeycloakBinding(_BaseBinding):
    kind: Literal[ProviderKind.KEYCLOAK] = ProviderKind.KEYCLOAK
    capabilities: ClassVar[frozenset[Capability]] = frozenset({Capability.GROUP_SCOPED})

    group: str = ""


class GoogleBinding(_BaseBinding):
    kind: Literal[ProviderKind.GOOGLE] = ProviderKind.GOOGLE
    capabilities: ClassVar[frozenset[Capability]] = frozenset({Capability.GROUP_SCOPED})

    groups: tuple[str, ...] = ()
    admin_email: str = ""
    service_account_json: bytes | None = Field(default=None, repr=False)


class BitbucketBinding(_BaseBinding):
    kind: Literal[ProviderKind.BITBUCKET] = ProviderKind.BITBUCKET
    capabilities: ClassVar[frozenset[Capability]] = frozenset({Capability.ORG_SCOPED})

    team: str = ""
    repository: str = ""


class OIDCBinding(_BaseBinding):
    kind: Literal[ProviderKind.OIDC] = ProviderKind.OIDC

    allow_unverified_email: bool = False
    user_id_claim: str = "email"
    verifier: TokenVerifier | None = None


class GitLabBinding(_BaseBinding):
    kind: Literal[ProviderKind.GITLAB] = ProviderKind.GITLAB
    capabilities: ClassVar[frozenset[Capability]] = frozenset({Capability.GROUP_SCOPED, Capability.DOMAIN_SCOPED})

    allow_unverified_email: bool = False
    group: str = ""
    email_domains: tuple[str, ...] = ()
    verifier: TokenVerifier | None = None


class LoginGovBinding(_BaseBinding):
    kind: Literal[ProviderKind.LOGIN_GOV] = ProviderKind.LOGIN_GOV
    capabilities: ClassVar[frozenset[Capability]] = frozenset({Capability.JWT_SIGNING})

    pubjwk_url: httpx.URL | None = None
    jwt_key: rsa.RSAPrivateKey | None = Field(default=None, repr=False)


ProviderBinding = Annotated[
    GenericBinding
    | AzureBinding
    | GitHubBinding
    | KeycloakBinding
    | GoogleBinding
    | BitbucketBinding
    | OIDCBinding
    | GitLabBinding
    | LoginGovBinding,
    Field(discriminator="kind"),
]


@dataclass(frozen=True)
class BindContext:
    """Everything a kind-specific binder may draw on."""

    options: ProxyOptions
    data: ProviderData
    verifier: TokenVerifier | None
    client: httpx.Client
    issues: IssueCollector


def resolve_kind(name: str, issues: IssueCollector) -> ProviderKind:
    """
    Maps a configured provider name to its kind.

    Unknown names are reported and bound as generic so the remaining checks still run.
    """
    if name in GENERIC_PROVIDER_NAMES:
        return ProviderKind.GENERIC
    try:
        return ProviderKind(name)
    except ValueError:
        issues.add("provider", IssueKind.UNSUPPORTED, f"unsupported provider: {name!r}")
        return ProviderKind.GENERIC


def build_provider_data(options: ProxyOptions, endpoints: ResolvedEndpoints, issues: IssueCollector) -> ProviderData:
    return ProviderData(
        name=options.provider,
        display_name=options.provider_display_name,
        scope=endpoints.scope,
        client_id=options.client_id,
        client_secret=options.client_secret,
        client_secret_file=options.client_secret_file,
        prompt=options.prompt,
        approval_prompt=options.approval_prompt,
        acr_values=options.acr_values,
        login_url=parse_url(endpoints.login_url, "login", issues),
        redeem_url=parse_url(endpoints.redeem_url, "redeem", issues),
        profile_url=parse_url(endpoints.profile_url, "profile", issues),
        validate_url=parse_url(options.validate_url, "validate", issues),
        protected_resource=parse_url(options.resource, "resource", issues),
    )


def _bind_generic(ctx: BindContext) -> GenericBinding:
    return GenericBinding(data=ctx.data)


def _bind_azure(ctx: BindContext) -> AzureBinding:
    return AzureBinding(data=ctx.data, tenant=ctx.options.azure_tenant)


def _bind_github(ctx: BindContext) -> GitHubBinding:
    return GitHubBinding(data=ctx.data, org=ctx.options.github_org, team=ctx.options.github_team)


def _bind_keycloak(ctx: BindContext) -> KeycloakBinding:
    return KeycloakBinding(data=ctx.data, group=ctx.options.keycloak_group)


def _bind_google(ctx: BindContext) -> GoogleBinding:
    options = ctx.options
    if not options.google_service_account_json:
        return GoogleBinding(data=ctx.data)

    try:
        credentials = Path(options.google_service_account_json).read_bytes()
    except OSError:
        ctx.issues.add(
            "google-service-account-json",
            IssueKind.UNREADABLE,
            f"invalid Google credentials file: {options.google_service_account_json}",
        )
        return GoogleBinding(data=ctx.data)

    return GoogleBinding(
        data=ctx.data,
        groups=tuple(options.google_groups),
        admin_email=options.google_admin_email,
        service_account_json=credentials,
    )


def _bind_bitbucket(ctx: BindContext) -> BitbucketBinding:
    return BitbucketBinding(
        data=ctx.data, team=ctx.options.bitbucket_team, repository=ctx.options.bitbucket_repository
    )


def _bind_oidc(ctx: BindContext) -> OIDCBinding:
    if ctx.verifier is None:
        ctx.issues.add("oidc-issuer-url", IssueKind.DEPENDENCY, "oidc provider requires an oidc issuer URL")
    return OIDCBinding(
        data=ctx.data,
        allow_unverified_email=ctx.options.insecure_oidc_allow_unverified_email,
        user_id_claim=ctx.options.user_id_claim,
        verifier=ctx.verifier,
    )


def _bind_gitlab(ctx: BindContext) -> GitLabBinding:
    options = ctx.options
    data = ctx.data
    verifier = ctx.verifier

    if verifier is None:
        # Without an issuer of its own, GitLab binds to gitlab.com
        try:
            metadata = discover(ctx.client, GITLAB_ISSUER_URL)
        except DiscoveryError as e:
            logger.error(f"GitLab discovery failed: {e}")
            ctx.issues.add(
                "oidc-issuer-url", IssueKind.DEPENDENCY, "failed to initialize oidc provider for gitlab.com"
            )
        else:
            verifier = TokenVerifier(
                issuer=metadata.issuer,
                key_set=RemoteKeySet(metadata.jwks_uri, ctx.client),
                client_id=options.client_id,
                supported_algorithms=signing_algorithms(metadata),
            )
            data = data.model_copy(
                update={
                    "login_url": parse_url(metadata.authorization_endpoint, "login", ctx.issues),
                    "redeem_url": parse_url(metadata.token_endpoint, "redeem", ctx.issues),
                }
            )

    return GitLabBinding(
        data=data,
        allow_unverified_email=options.insecure_oidc_allow_unverified_email,
        group=options.gitlab_group,
        email_domains=tuple(options.email_domains),
        verifier=verifier,
    )


def load_rsa_private_key(pem: bytes) -> rsa.RSAPrivateKey:
    """
    Parses an unencrypted PEM-encoded RSA private key.

    Raises:
        ValueError: If the data is not a PEM RSA private key.
    """
    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (TypeError, UnsupportedAlgorithm) as e:
        raise ValueError(str(e)) from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ValueError(f"expected an RSA private key, got {type(key).__name__}")
    return key


def _bind_login_gov(ctx: BindContext) -> LoginGovBinding:
    options = ctx.options
    issues = ctx.issues
    pubjwk_url = parse_url(options.pubjwk_url, "pubjwk", issues)
    inline_key = options.jwt_key.get_secret_value()
    jwt_key: rsa.RSAPrivateKey | None = None

    # The signing key comes from exactly one of the inline option or a file
    if inline_key and options.jwt_key_file:
        issues.add("jwt-key", IssueKind.MUTUALLY_EXCLUSIVE, "cannot set both jwt-key and jwt-key-file options")
    elif not inline_key and not options.jwt_key_file:
        issues.missing("jwt-key", "login.gov provider requires a private key for signing JWTs")
    elif inline_key:
        try:
            jwt_key = load_rsa_private_key(inline_key.encode("utf-8"))
        except ValueError:
            issues.invalid("jwt-key", "could not parse RSA Private Key PEM")
    else:
        try:
            pem = Path(options.jwt_key_file).read_bytes()
        except OSError:
            issues.add("jwt-key-file", IssueKind.UNREADABLE, f"could not read key file: {options.jwt_key_file}")
        else:
            try:
                jwt_key = load_rsa_private_key(pem)
            except ValueError:
                issues.invalid("jwt-key-file", f"could not parse private key from PEM file: {options.jwt_key_file}")

    return LoginGovBinding(data=ctx.data, pubjwk_url=pubjwk_url, jwt_key=jwt_key)


BINDERS: dict[ProviderKind, Callable[[BindContext], ProviderBinding]] = {
    ProviderKind.GENERIC: _bind_generic,
    ProviderKind.AZURE: _bind_azure,
    ProviderKind.GITHUB: _bind_github,
    ProviderKind.KEYCLOAK: _bind_keycloak,
    ProviderKind.GOOGLE: _bind_google,
    ProviderKind.BITBUCKET: _bind_bitbucket,
    ProviderKind.OIDC: _bind_oidc,
    ProviderKind.GITLAB: _bind_gitlab,
    ProviderKind.LOGIN_GOV: _bind_login_gov,
}


def bind_provider(
    options: ProxyOptions,
    endpoints: ResolvedEndpoints,
    verifier: TokenVerifier | None,
    client: httpx.Client,
    issues: IssueCollector,
) -> ProviderBinding:
    """
    Builds the provider binding for the configured provider kind.

    Each kind reports its own defects to `issues`; a failing kind never stops other checks.

    Args:
        options: The raw options.
        endpoints: Endpoints resolved by the OIDC bootstrap.
        verifier: The primary verifier, if an issuer is configured.
        client: HTTP client for any discovery the binding needs.
        issues: Collector for accumulable defects.

    Returns:
        ProviderBinding: The bound provider variant.
    """
    kind = resolve_kind(options.provider, issues)
    data = build_provider_data(options, endpoints, issues)
    ctx = BindContext(options=options, data=data, verifier=verifier, client=client, issues=issues)
    return BINDERS[kind](ctx)
