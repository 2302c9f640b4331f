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
Configuration options for the coreason-gateway package.

The options record is a flat, already-merged view of flags, environment
variables and config files. It is frozen: values resolved during validation
(discovered endpoints, the default scope) are published on the validated
configuration instead of being written back here.
"""

from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CookieOptions(BaseModel):
    """
    Cookie settings for the session cookie.

    Attributes:
        name (str): The cookie name.
        secret (SecretStr): Seed for cookie signing and, when required, the AES cipher.
        domains (list[str]): Domains the cookie may be set for.
        expire (timedelta): Cookie lifetime.
        refresh (timedelta): Interval after which the session is refreshed. Zero disables refresh.
        samesite (str): The SameSite attribute ("", "lax", "strict" or "none").
    """

    model_config = ConfigDict(frozen=True)

    name: str = "_oauth2_proxy"
    secret: SecretStr = SecretStr("")
    domains: list[str] = Field(default_factory=list)
    path: str = "/"
    expire: timedelta = timedelta(hours=168)
    refresh: timedelta = timedelta(0)
    secure: bool = True
    httponly: bool = True
    samesite: str = ""


class SessionOptions(BaseModel):
    """
    Session storage settings.

    Attributes:
        type (str): The session store backend ("cookie" or "redis").
        redis_connection_url (str): Connection URL for the redis backend.
    """

    model_config = ConfigDict(frozen=True)

    type: str = "cookie"
    redis_connection_url: str = ""


class ProxyOptions(BaseSettings):
    """
    Raw configuration for the authentication gateway.

    Field names follow the gateway's flag names with dashes replaced by underscores.
    """

    model_config = SettingsConfigDict(
        env_prefix="COREASON_GATEWAY_",
        env_nested_delimiter="__",
        case_sensitive=False,
        frozen=True,
    )

    proxy_prefix: str = "/oauth2"
    ping_path: str = "/ping"
    reverse_proxy: bool = False
    redirect_url: str = ""
    client_id: str = ""
    client_secret: SecretStr = SecretStr("")
    client_secret_file: str = ""

    authenticated_emails_file: str = ""
    keycloak_group: str = ""
    azure_tenant: str = ""
    bitbucket_team: str = ""
    bitbucket_repository: str = ""
    email_domains: list[str] = Field(default_factory=list)
    github_org: str = ""
    github_team: str = ""
    gitlab_group: str = ""
    google_groups: list[str] = Field(default_factory=list)
    google_admin_email: str = ""
    google_service_account_json: str = ""
    htpasswd_file: str = ""

    cookie: CookieOptions = Field(default_factory=CookieOptions)
    session: SessionOptions = Field(default_factory=SessionOptions)

    upstreams: list[str] = Field(default_factory=list)
    skip_auth_regex: list[str] = Field(default_factory=list)
    skip_auth_header: list[str] = Field(default_factory=list)
    skip_jwt_bearer_tokens: bool = False
    extra_jwt_issuers: list[str] = Field(default_factory=list)
    pass_basic_auth: bool = True
    set_basic_auth: bool = False
    prefer_email_to_user: bool = False
    basic_auth_password: SecretStr = SecretStr("")
    pass_access_token: bool = False
    pass_host_header: bool = True
    pass_user_headers: bool = True
    ssl_insecure_skip_verify: bool = False
    set_xauthrequest: bool = False
    set_authorization: bool = False
    pass_authorization: bool = False

    provider: str = "google"
    provider_display_name: str = ""
    oidc_issuer_url: str = ""
    insecure_oidc_allow_unverified_email: bool = False
    insecure_oidc_skip_issuer_verification: bool = False
    skip_oidc_discovery: bool = False
    oidc_jwks_url: str = ""
    login_url: str = ""
    redeem_url: str = ""
    profile_url: str = ""
    resource: str = ""
    validate_url: str = ""
    scope: str = ""
    prompt: str = ""
    approval_prompt: str = "force"
    user_id_claim: str = "email"
    acr_values: str = ""

    logging_filename: str = ""
    logging_max_size: int = Field(default=100, ge=0, description="Log file rotation size in megabytes.")
    logging_max_age: int = Field(default=7, ge=0, description="Log file retention in days.")
    logging_local_time: bool = True
    logging_compress: bool = False
    standard_logging: bool = True
    request_logging: bool = True
    auth_logging: bool = True
    exclude_logging_paths: str = ""
    silence_ping_logging: bool = False

    signature_key: SecretStr = SecretStr("")
    jwt_key: SecretStr = SecretStr("")
    jwt_key_file: str = ""
    pubjwk_url: str = ""

    http_timeout: float = Field(default=10.0, gt=0, description="Timeout in seconds for every IdP network operation.")

    @field_validator("provider")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        """
        Normalizes the provider name to lowercase without surrounding whitespace.

        Args:
            v: The provider name as configured.

        Returns:
            The normalized provider name.
        """
        return v.strip().lower()

    @property
    def cipher_required(self) -> bool:
        """Whether the session needs an AES cipher derived from the cookie secret."""
        return (
            self.pass_access_token
            or self.set_authorization
            or self.pass_authorization
            or self.cookie.refresh != timedelta(0)
        )

    @property
    def excluded_logging_paths(self) -> list[str]:
        paths = [p for p in self.exclude_logging_paths.split(",") if p]
        if self.silence_ping_logging:
            paths.append(self.ping_path)
        return paths
