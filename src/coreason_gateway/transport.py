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
HTTP client construction and bounded JSON fetching for IdP metadata.
"""

import json
from typing import Any

import httpx
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from coreason_gateway.exceptions import OversizedResponseError
from coreason_gateway.utils.logger import logger

MAX_RESPONSE_BYTES = 1024 * 1024


def build_http_client(timeout: float, insecure_skip_verify: bool = False) -> httpx.Client:
    """
    Builds the HTTP client shared by every IdP-calling collaborator.

    When `insecure_skip_verify` is set, TLS certificate verification is disabled for
    every request made through this client, for as long as the client lives. Nothing
    outside this client is affected.

    Args:
        timeout: Timeout in seconds applied to connect, read, write and pool acquisition.
        insecure_skip_verify: Disable TLS certificate verification.

    Returns:
        httpx.Client: An instrumented client.
    """
    if insecure_skip_verify:
        logger.warning(
            "TLS certificate verification is disabled for all identity provider requests "
            "(ssl_insecure_skip_verify). This applies until the gateway shuts down."
        )

    client = httpx.Client(timeout=timeout, verify=not insecure_skip_verify, follow_redirects=True)

    # Instrument the client for distributed tracing
    HTTPXClientInstrumentor().instrument_client(client)
    return client


def fetch_json(client: httpx.Client, url: str, max_bytes: int = MAX_RESPONSE_BYTES) -> Any:
    """
    Fetches a JSON document, refusing bodies larger than `max_bytes`.

    Args:
        client: The HTTP client to use.
        url: The URL to GET.
        max_bytes: Maximum accepted body size.

    Returns:
        Any: The decoded JSON document.

    Raises:
        httpx.HTTPError: On transport errors or non-2xx responses.
        OversizedResponseError: If the body exceeds `max_bytes`.
        ValueError: If the body is not valid JSON.
    """
    with client.stream("GET", url, headers={"Accept": "application/json"}) as response:
        response.raise_for_status()

        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise OversizedResponseError(f"Response from {url} declares {declared} bytes (limit {max_bytes})")

        body = bytearray()
        for chunk in response.iter_bytes():
            body.extend(chunk)
            if len(body) > max_bytes:
                raise OversizedResponseError(f"Response from {url} exceeded {max_bytes} bytes")

    return json.loads(bytes(body))
