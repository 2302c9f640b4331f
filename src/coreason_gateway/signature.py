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
Parsing of the upstream request signature key.
"""

from pydantic import SecretStr

from coreason_gateway.models import SUPPORTED_DIGESTS, IssueCollector, IssueKind, SignatureSpec


def parse_signature_key(spec: str, issues: IssueCollector) -> SignatureSpec | None:
    """
    Parses an `algorithm:secret` signature key.

    Args:
        spec: The raw signature key. Empty disables request signing.
        issues: Collector for accumulable defects.

    Returns:
        SignatureSpec | None: The signing material, or None if unset or invalid.
    """
    if not spec:
        return None

    components = spec.split(":")
    if len(components) != 2:
        issues.invalid("signature-key", f"invalid signature hash:key spec: {spec}")
        return None

    algorithm, secret = components
    if algorithm not in SUPPORTED_DIGESTS:
        issues.add("signature-key", IssueKind.UNSUPPORTED, f"unsupported signature hash algorithm: {spec}")
        return None

    return SignatureSpec(algorithm=algorithm, key=SecretStr(secret))
