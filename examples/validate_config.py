import contextlib
import os
import sys

# Add src to path for running directly
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))

from coreason_gateway.config import ProxyOptions
from coreason_gateway.exceptions import ConfigurationError, DiscoveryError
from coreason_gateway.manager import ConfigurationManager


def main() -> None:
    """
    Demonstrates a startup validation pass.

    Options are read from COREASON_GATEWAY_* environment variables; anything passed
    here overrides them. Every defect is reported at once.
    """
    print(">>> Starting configuration validation example")

    options = ProxyOptions(
        provider="oidc",
        oidc_issuer_url=os.getenv("EXAMPLE_ISSUER", "https://auth.example.com"),
        redirect_url="https://gateway.example.com/oauth2/callback",
        upstreams=["http://127.0.0.1:8080"],
        email_domains=["*"],
        http_timeout=5.0,
    )

    # The manager owns the HTTP client, so keep it open while the verifiers are in use
    with ConfigurationManager(options) as manager:
        try:
            config = manager.validate()
        except ConfigurationError as e:
            print(f">>> {len(e.issues)} configuration issue(s):")
            print(e)
            return
        except DiscoveryError as e:
            # Without a reachable issuer the pass stops here
            print(f">>> Expected failure (no real issuer): {e}")
            return

        print(f">>> Provider bound: {config.provider.kind}")
        print(f">>> Login URL: {config.provider.data.login_url}")
        print(f">>> Bearer verifiers: {len(config.jwt_bearer_verifiers)}")


if __name__ == "__main__":
    with contextlib.suppress(KeyboardInterrupt):
        main()
