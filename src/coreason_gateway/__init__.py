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
Startup configuration validation and identity provider binding for the CoReason authentication gateway.
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .config import CookieOptions, ProxyOptions, SessionOptions
from .exceptions import ConfigurationError, CoreasonGatewayError, DiscoveryError, InvalidTokenError
from .manager import ConfigurationManager, ValidatedConfiguration, validate_options
from .models import ConfigIssue, IssueKind, IssuerBinding, SignatureSpec
from .providers import ProviderBinding, ProviderKind
from .validator import TokenVerifier

__all__ = [
    "ConfigIssue",
    "ConfigurationError",
    "ConfigurationManager",
    "CookieOptions",
    "CoreasonGatewayError",
    "DiscoveryError",
    "InvalidTokenError",
    "IssueKind",
    "IssuerBinding",
    "ProviderBinding",
    "ProviderKind",
    "ProxyOptions",
    "SessionOptions",
    "SignatureSpec",
    "TokenVerifier",
    "ValidatedConfiguration",
    "validate_options",
]
