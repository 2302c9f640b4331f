# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_gateway

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
from conftest import ISSUER, FakeIdP
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from coreason_gateway.config import ProxyOptions
from coreason_gateway.models import IssueCollector, IssueKind, ResolvedEndpoints
from coreason_gateway.oidc_provider import RemoteKeySet
from coreason_gateway.providers import (
    BINDERS,
    AzureBinding,
    BitbucketBinding,
    Capability,
    GenericBinding,
    GitHubBinding,
    GitLabBinding,
    GoogleBinding,
    KeycloakBinding,
    LoginGovBinding,
    OIDCBinding,
    ProviderBinding,
    ProviderKind,
    bind_provider,
    load_rsa_private_key,
    resolve_kind,
)
from coreason_gateway.validator import TokenVerifier

OptionsFactory = Callable[..., ProxyOptions]

ENDPOINTS = ResolvedEndpoints(
    login_url="https://idp.example.com/authorize",
    redeem_url="https://idp.example.com/token",
    profile_url="https://idp.example.com/userinfo",
    scope="openid email",
)


def _bind(
    options: ProxyOptions,
    client: httpx.Client,
    verifier: TokenVerifier | None = None,
    endpoints: ResolvedEndpoints = ENDPOINTS,
) -> tuple[ProviderBinding, IssueCollector]:
    issues = IssueCollector()
    return bind_provider(options, endpoints, verifier, client, issues), issues


@pytest.fixture
def verifier(client: httpx.Client) -> TokenVerifier:
    return TokenVerifier(issuer=ISSUER, key_set=RemoteKeySet(f"{ISSUER}/keys", client), client_id="client")


def test_every_kind_has_a_binder() -> None:
    assert set(BINDERS) == set(ProviderKind)


@pytest.mark.parametrize("name", ["generic", "facebook", "linkedin", "digitalocean"])
def test_plain_oauth2_names_bind_as_generic(name: str) -> None:
    issues = IssueCollector()
    assert resolve_kind(name, issues) is ProviderKind.GENERIC
    assert not issues


def test_unknown_provider_is_reported(client: httpx.Client, make_options: OptionsFactory) -> None:
    binding, issues = _bind(make_options(provider="MySpace"), client)

    assert isinstance(binding, GenericBinding)
    (issue,) = issues.issues
    assert issue.kind == IssueKind.UNSUPPORTED
    assert issue.message == "unsupported provider: 'myspace'"


def test_provider_data_is_shared(client: httpx.Client, make_options: OptionsFactory) -> None:
    options = make_options(
        provider_display_name="Corporate GitHub",
        validate_url="https://api.github.example.com/user",
        resource="https://graph.example.com",
        acr_values="mfa",
    )
    binding, issues = _bind(options, client)

    assert not issues
    data = binding.data
    assert data.name == "github"
    assert data.display_name == "Corporate GitHub"
    assert data.scope == "openid email"
    assert data.client_id == "client"
    assert data.client_secret.get_secret_value() == "client-secret"
    assert data.approval_prompt == "force"
    assert data.acr_values == "mfa"
    assert str(data.login_url) == "https://idp.example.com/authorize"
    assert str(data.redeem_url) == "https://idp.example.com/token"
    assert str(data.profile_url) == "https://idp.example.com/userinfo"
    assert str(data.validate_url) == "https://api.github.example.com/user"
    assert str(data.protected_resource) == "https://graph.example.com"


def test_invalid_endpoint_is_reported(client: httpx.Client, make_options: OptionsFactory) -> None:
    endpoints = ENDPOINTS.model_copy(update={"redeem_url": "https://idp.example.com:token/"})
    binding, issues = _bind(make_options(), client, endpoints=endpoints)

    assert binding.data.redeem_url is None
    (issue,) = issues.issues
    assert issue.setting == "redeem-url"


def test_github(client: httpx.Client, make_options: OptionsFactory) -> None:
    binding, issues = _bind(make_options(github_org="coreason", github_team="platform"), client)

    assert isinstance(binding, GitHubBinding)
    assert binding.kind == ProviderKind.GITHUB
    assert (binding.org, binding.team) == ("coreason", "platform")
    assert Capability.ORG_SCOPED in binding.capabilities
    assert not issues


def test_azure(client: httpx.Client, make_options: OptionsFactory) -> None:
    binding, _ = _bind(make_options(provider="azure", azure_tenant="tenant-1"), client)
    assert isinstance(binding, AzureBinding)
    assert binding.tenant == "tenant-1"


def test_keycloak(client: httpx.Client, make_options: OptionsFactory) -> None:
    binding, _ = _bind(make_options(provider="keycloak", keycloak_group="/admins"), client)
    assert isinstance(binding, KeycloakBinding)
    assert binding.group == "/admins"
    assert binding.capabilities == frozenset({Capability.GROUP_SCOPED})


def test_bitbucket(client: httpx.Client, make_options: OptionsFactory) -> None:
    options = make_options(provider="bitbucket", bitbucket_team="core", bitbucket_repository="gateway")
    binding, _ = _bind(options, client)
    assert isinstance(binding, BitbucketBinding)
    assert (binding.team, binding.repository) == ("core", "gateway")


def test_google_without_service_account(client: httpx.Client, make_options: OptionsFactory) -> None:
    binding, issues = _bind(make_options(provider="google"), client)
    assert isinstance(binding, GoogleBinding)
    assert binding.service_account_json is None
    assert not issues


def test_google_reads_service_account(client: httpx.Client, make_options: OptionsFactory, tmp_path: Path) -> None:
    credentials = tmp_path / "sa.json"
    credentials.write_bytes(b'{"type": "service_account"}')
    options = make_options(
        provider="google",
        google_groups=["admins@example.com"],
        google_admin_email="admin@example.com",
        google_service_account_json=str(credentials),
    )

    binding, issues = _bind(options, client)

    assert isinstance(binding, GoogleBinding)
    assert binding.service_account_json == b'{"type": "service_account"}'
    assert binding.groups == ("admins@example.com",)
    assert binding.admin_email == "admin@example.com"
    assert "service_account" not in repr(binding)
    assert not issues


def test_google_unreadable_service_account(
    client: httpx.Client, make_options: OptionsFactory, tmp_path: Path
) -> None:
    path = tmp_path / "missing.json"
    binding, issues = _bind(make_options(provider="google", google_service_account_json=str(path)), client)

    assert isinstance(binding, GoogleBinding)
    (issue,) = issues.issues
    assert issue.kind == IssueKind.UNREADABLE
    assert issue.message == f"invalid Google credentials file: {path}"


def test_oidc_requires_issuer(client: httpx.Client, make_options: OptionsFactory) -> None:
    binding, issues = _bind(make_options(provider="oidc"), client)

    assert isinstance(binding, OIDCBinding)
    (issue,) = issues.issues
    assert issue.kind == IssueKind.DEPENDENCY
    assert issue.message == "oidc provider requires an oidc issuer URL"


def test_oidc_with_verifier(client: httpx.Client, make_options: OptionsFactory, verifier: TokenVerifier) -> None:
    options = make_options(provider="oidc", insecure_oidc_allow_unverified_email=True, user_id_claim="sub")
    binding, issues = _bind(options, client, verifier=verifier)

    assert isinstance(binding, OIDCBinding)
    assert binding.verifier is verifier
    assert binding.allow_unverified_email is True
    assert binding.user_id_claim == "sub"
    assert not issues


def test_gitlab_uses_configured_verifier(
    client: httpx.Client, idp: FakeIdP, make_options: OptionsFactory, verifier: TokenVerifier
) -> None:
    options = make_options(provider="gitlab", gitlab_group="infra", email_domains=["example.com"])
    binding, issues = _bind(options, client, verifier=verifier)

    assert isinstance(binding, GitLabBinding)
    assert binding.verifier is verifier
    assert binding.group == "infra"
    assert binding.email_domains == ("example.com",)
    assert idp.requests == []
    assert not issues


def test_gitlab_defaults_to_gitlab_com(client: httpx.Client, idp: FakeIdP, make_options: OptionsFactory) -> None:
    idp.openid_configuration("https://gitlab.com", id_token_signing_alg_values_supported=["RS256"])

    binding, issues = _bind(make_options(provider="gitlab"), client)

    assert not issues
    assert isinstance(binding, GitLabBinding)
    assert binding.verifier is not None
    assert binding.verifier.issuer == "https://gitlab.com"
    assert binding.verifier.key_set.jwks_url == "https://gitlab.com/keys"
    assert str(binding.data.login_url) == "https://gitlab.com/authorize"
    assert str(binding.data.redeem_url) == "https://gitlab.com/token"


def test_gitlab_default_discovery_failure(client: httpx.Client, make_options: OptionsFactory) -> None:
    binding, issues = _bind(make_options(provider="gitlab"), client)

    assert isinstance(binding, GitLabBinding)
    assert binding.verifier is None
    (issue,) = issues.issues
    assert issue.kind == IssueKind.DEPENDENCY
    assert issue.message == "failed to initialize oidc provider for gitlab.com"


def test_login_gov_inline_key(client: httpx.Client, make_options: OptionsFactory, rsa_pem: bytes) -> None:
    options = make_options(
        provider="login.gov", jwt_key=rsa_pem.decode("ascii"), pubjwk_url="https://idp.int.identitysandbox.gov/jwks"
    )
    binding, issues = _bind(options, client)

    assert not issues
    assert isinstance(binding, LoginGovBinding)
    assert isinstance(binding.jwt_key, rsa.RSAPrivateKey)
    assert str(binding.pubjwk_url) == "https://idp.int.identitysandbox.gov/jwks"
    assert Capability.JWT_SIGNING in binding.capabilities
    assert "BEGIN" not in repr(binding)


def test_login_gov_key_file(
    client: httpx.Client, make_options: OptionsFactory, rsa_pem: bytes, tmp_path: Path
) -> None:
    key_file = tmp_path / "login-gov.pem"
    key_file.write_bytes(rsa_pem)

    binding, issues = _bind(make_options(provider="login.gov", jwt_key_file=str(key_file)), client)

    assert not issues
    assert isinstance(binding, LoginGovBinding)
    assert binding.jwt_key is not None


def test_login_gov_key_sources_are_exclusive(
    client: httpx.Client, make_options: OptionsFactory, rsa_pem: bytes, tmp_path: Path
) -> None:
    key_file = tmp_path / "login-gov.pem"
    key_file.write_bytes(rsa_pem)
    options = make_options(provider="login.gov", jwt_key=rsa_pem.decode("ascii"), jwt_key_file=str(key_file))

    binding, issues = _bind(options, client)

    assert isinstance(binding, LoginGovBinding)
    assert binding.jwt_key is None
    (issue,) = issues.issues
    assert issue.kind == IssueKind.MUTUALLY_EXCLUSIVE
    assert issue.message == "cannot set both jwt-key and jwt-key-file options"


def test_login_gov_requires_a_key(client: httpx.Client, make_options: OptionsFactory) -> None:
    _, issues = _bind(make_options(provider="login.gov"), client)

    (issue,) = issues.issues
    assert issue.kind == IssueKind.MISSING
    assert issue.message == "login.gov provider requires a private key for signing JWTs"


def test_login_gov_bad_inline_key(client: httpx.Client, make_options: OptionsFactory) -> None:
    _, issues = _bind(make_options(provider="login.gov", jwt_key="not a pem"), client)
    assert [i.message for i in issues] == ["could not parse RSA Private Key PEM"]


def test_login_gov_unreadable_key_file(client: httpx.Client, make_options: OptionsFactory, tmp_path: Path) -> None:
    path = tmp_path / "absent.pem"
    _, issues = _bind(make_options(provider="login.gov", jwt_key_file=str(path)), client)

    (issue,) = issues.issues
    assert issue.kind == IssueKind.UNREADABLE
    assert issue.message == f"could not read key file: {path}"


def test_login_gov_bad_key_file(client: httpx.Client, make_options: OptionsFactory, tmp_path: Path) -> None:
    path = tmp_path / "garbage.pem"
    path.write_text("-----BEGIN NOTHING-----\n")

    _, issues = _bind(make_options(provider="login.gov", jwt_key_file=str(path)), client)

    assert [i.message for i in issues] == [f"could not parse private key from PEM file: {path}"]


def test_load_rsa_private_key_rejects_other_key_types() -> None:
    ec_pem = ec.generate_private_key(ec.SECP256R1()).private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    with pytest.raises(ValueError, match="expected an RSA private key"):
        load_rsa_private_key(ec_pem)
