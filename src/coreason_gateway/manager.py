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
ConfigurationManager component for orchestrating the startup validation pass.
"""

import re
from pathlib import Path
from typing import Any

import httpx
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import BaseModel, ConfigDict, Field

from coreason_gateway.config import ProxyOptions
from coreason_gateway.cookies import build_cipher, validate_cookie_policy
from coreason_gateway.encryption import AESCipher
from coreason_gateway.exceptions import ConfigurationError, SessionStoreError
from coreason_gateway.jwt_issuers import resolve_bearer_verifiers
from coreason_gateway.models import IssueCollector, IssueKind, ResolvedEndpoints, SignatureSpec
from coreason_gateway.oidc_bootstrap import bootstrap_oidc
from coreason_gateway.parsing import compile_patterns, parse_upstreams, parse_url
from coreason_gateway.providers import ProviderBinding, ProviderKind, bind_provider
from coreason_gateway.sessions import SessionStore, SessionStoreFactory, build_session_store
from coreason_gateway.signature import parse_signature_key
from coreason_gateway.transport import build_http_client
from coreason_gateway.utils.logger import add_file_sink, logger
from coreason_gateway.validator import TokenVerifier

tracer = trace.get_tracer(__name__)


class ValidatedConfiguration(BaseModel):
    """
    The complete runtime configuration produced by a successful validation pass.

    This model is frozen and only ever constructed once every check has passed.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    redirect_url: httpx.URL
    upstream_urls: tuple[httpx.URL, ...] = ()
    skip_auth_regex: tuple[re.Pattern[str], ...] = ()
    skip_auth_header_regex: tuple[re.Pattern[str], ...] = ()
    provider: ProviderBinding
    signature: SignatureSpec | None = None
    oidc_verifier: TokenVerifier | None = None
    jwt_bearer_verifiers: tuple[TokenVerifier, ...] = ()
    session_store: SessionStore
    cipher: AESCipher | None = None
    cookie_domains: tuple[str, ...] = ()
    endpoints: ResolvedEndpoints = Field(default_factory=ResolvedEndpoints)


class ConfigurationManager:
    """
    Runs the single startup validation pass over a ProxyOptions record.

    Handles the HTTP client via context manager: a client created here is closed on exit,
    so keep the manager open for as long as the verifiers it produced are in use.
    """

    def __init__(
        self,
        options: ProxyOptions,
        client: httpx.Client | None = None,
        session_store_factory: SessionStoreFactory | None = None,
    ) -> None:
        """
        Initialize the ConfigurationManager.

        Args:
            options: The raw, already-loaded options.
            client: External HTTP client (optional). If not provided, one is built from
                `http_timeout` and `ssl_insecure_skip_verify`.
            session_store_factory: Session store constructor. Defaults to `build_session_store`.
        """
        self.options = options
        self._internal_client = client is None
        self._client = client or build_http_client(
            timeout=options.http_timeout,
            insecure_skip_verify=options.ssl_insecure_skip_verify,
        )
        self.session_store_factory = session_store_factory or build_session_store
        self._log_sink_id: int | None = None

    def __enter__(self) -> "ConfigurationManager":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        """Closes an internally created HTTP client and removes the log file sink."""
        self._remove_log_sink()
        if self._internal_client:
            self._client.close()

    def _remove_log_sink(self) -> None:
        if self._log_sink_id is not None:
            logger.remove(self._log_sink_id)
            self._log_sink_id = None

    def validate(self) -> ValidatedConfiguration:
        """
        Validates every setting and binds the identity provider.

        Emits an OpenTelemetry span `validate_configuration`.

        Returns:
            ValidatedConfiguration: The complete runtime configuration.

        Raises:
            ConfigurationError: If any check failed; carries every issue found.
            DiscoveryError: If the primary issuer could not be bootstrapped via discovery.
        """
        with tracer.start_as_current_span("validate_configuration") as span:
            issues = IssueCollector()
            try:
                config = self._run_checks(issues)
            except Exception as e:
                self._remove_log_sink()
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise

            span.set_attribute("config.issue_count", len(issues))
            if issues or config is None:
                # A failed pass leaves no file sink behind
                self._remove_log_sink()
                error = ConfigurationError(issues)
                logger.error(str(error))
                span.set_status(Status(StatusCode.ERROR, "invalid configuration"))
                raise error

            span.set_status(Status(StatusCode.OK))
            logger.info(f"Configuration validated for provider {config.provider.kind}")
            return config

    def _run_checks(self, issues: IssueCollector) -> ValidatedConfiguration | None:
        options = self.options

        self._check_required(issues)

        bootstrap = bootstrap_oidc(options, self._client, issues)

        if options.prefer_email_to_user and not options.pass_basic_auth and not options.pass_user_headers:
            issues.invalid(
                "prefer-email-to-user",
                "PreferEmailToUser should only be used with PassBasicAuth or PassUserHeaders",
            )

        bearer_verifiers: list[TokenVerifier] = []
        if options.skip_jwt_bearer_tokens:
            bearer_verifiers = resolve_bearer_verifiers(
                bootstrap.verifier, options.extra_jwt_issuers, self._client, issues
            )

        redirect_url = parse_url(options.redirect_url, "redirect", issues)
        upstream_urls = parse_upstreams(options.upstreams, issues)
        skip_auth_regex = compile_patterns(options.skip_auth_regex, "skip-auth-regex", issues)
        skip_auth_header_regex = compile_patterns(options.skip_auth_header, "skip-auth-header", issues)

        provider = bind_provider(options, bootstrap.endpoints, bootstrap.verifier, self._client, issues)

        cipher = build_cipher(options, issues)
        session_store: SessionStore | None = None
        try:
            session_store = self.session_store_factory(options.session, options.cookie, cipher)
        except SessionStoreError as e:
            issues.invalid("session-store-type", f"error initialising session storage: {e}")

        self._check_google_settings(issues)
        cookie_domains = validate_cookie_policy(options.cookie, issues)
        signature = parse_signature_key(options.signature_key.get_secret_value(), issues)
        self._setup_logging(issues)

        if issues or redirect_url is None or session_store is None:
            # Nothing is published when any check failed
            return None

        return ValidatedConfiguration(
            redirect_url=redirect_url,
            upstream_urls=tuple(upstream_urls),
            skip_auth_regex=tuple(skip_auth_regex),
            skip_auth_header_regex=tuple(skip_auth_header_regex),
            provider=provider,
            signature=signature,
            oidc_verifier=bootstrap.verifier,
            jwt_bearer_verifiers=tuple(bearer_verifiers),
            session_store=session_store,
            cipher=cipher,
            cookie_domains=tuple(cookie_domains),
            endpoints=bootstrap.endpoints,
        )

    def _check_required(self, issues: IssueCollector) -> None:
        options = self.options

        if not options.cookie.secret.get_secret_value():
            issues.missing("cookie-secret")
        if not options.client_id:
            issues.missing("client-id")

        # login.gov authenticates with a signed JWT, not a client secret
        if options.provider != ProviderKind.LOGIN_GOV:
            has_secret = bool(options.client_secret.get_secret_value())
            if not has_secret and not options.client_secret_file:
                issues.missing("client-secret", "missing setting: client-secret or client-secret-file")
            elif not has_secret:
                try:
                    Path(options.client_secret_file).read_bytes()
                except OSError:
                    issues.add(
                        "client-secret-file",
                        IssueKind.UNREADABLE,
                        f"could not read client secret file: {options.client_secret_file}",
                    )

        if not options.authenticated_emails_file and not options.email_domains and not options.htpasswd_file:
            issues.missing(
                "email-domain",
                "missing setting for email validation: email-domain or authenticated-emails-file required."
                "\n      use email-domain=* to authorize all email addresses",
            )

        if options.set_basic_auth and options.set_authorization:
            issues.add(
                "set-authorization-header",
                IssueKind.MUTUALLY_EXCLUSIVE,
                "mutually exclusive: set-basic-auth and set-authorization-header can not both be true",
            )

    def _check_google_settings(self, issues: IssueCollector) -> None:
        options = self.options
        if not (options.google_groups or options.google_admin_email or options.google_service_account_json):
            return
        if not options.google_groups:
            issues.missing("google-group")
        if not options.google_admin_email:
            issues.missing("google-admin-email")
        if not options.google_service_account_json:
            issues.missing("google-service-account-json")

    def _setup_logging(self, issues: IssueCollector) -> None:
        options = self.options

        if options.logging_filename:
            try:
                with open(options.logging_filename, "a"):
                    pass
            except PermissionError:
                issues.add(
                    "logging-filename",
                    IssueKind.UNREADABLE,
                    f"unable to write to log file: {options.logging_filename}",
                )
            except OSError as e:
                issues.invalid("logging-filename", f"unable to open log file {options.logging_filename}: {e}")
            else:
                logger.info(f"Redirecting logging to file: {options.logging_filename}")
                if self._log_sink_id is None:
                    self._log_sink_id = add_file_sink(
                        options.logging_filename,
                        max_size_mb=options.logging_max_size,
                        max_age_days=options.logging_max_age,
                        compress=options.logging_compress,
                        local_time=options.logging_local_time,
                    )

        if not options.standard_logging and not options.auth_logging and not options.request_logging:
            logger.warning("Logging disabled. No further logs will be shown.")


def validate_options(options: ProxyOptions, client: httpx.Client | None = None) -> ValidatedConfiguration:
    """
    Runs one validation pass over `options`.

    When `client` is omitted, the verifiers in the result use an internally created
    HTTP client that stays open for the life of the process.

    Raises:
        ConfigurationError: If any check failed.
        DiscoveryError: If the primary issuer could not be bootstrapped via discovery.
    """
    return ConfigurationManager(options, client=client).validate()
