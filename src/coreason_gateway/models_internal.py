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
Internal data models for the coreason-gateway package.
These are not exposed in the public API.
"""

from pydantic import BaseModel, ConfigDict, Field


class ProviderMetadata(BaseModel):
    """
    OIDC Configuration from .well-known/openid-configuration.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    issuer: str = Field(..., description="The OIDC issuer URL.")
    jwks_uri: str = Field(..., description="The URL to the JWKS.")
    authorization_endpoint: str = Field(default="", description="The authorization (login) endpoint URL.")
    token_endpoint: str = Field(default="", description="The token (redeem) endpoint URL.")
    userinfo_endpoint: str = Field(default="", description="The userinfo (profile) endpoint URL.")
    id_token_signing_alg_values_supported: list[str] = Field(
        default_factory=list, description="Signing algorithms the issuer uses for ID tokens."
    )
