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
URL and regex parsing helpers that report failures as configuration issues.
"""

import re

import httpx

from coreason_gateway.models import IssueCollector


def parse_url(value: str, role: str, issues: IssueCollector) -> httpx.URL | None:
    """
    Parses `value` as a URL, reporting failures under `<role>-url`.

    An empty value parses to an empty URL.
    """
    try:
        return httpx.URL(value)
    except httpx.InvalidURL as e:
        issues.invalid(f"{role}-url", f"error parsing {role}-url={value!r} {e}")
        return None


def parse_upstreams(upstreams: list[str], issues: IssueCollector) -> list[httpx.URL]:
    """Parses upstream URLs; an upstream without a path is proxied at "/"."""
    parsed: list[httpx.URL] = []
    for upstream in upstreams:
        try:
            url = httpx.URL(upstream)
        except httpx.InvalidURL as e:
            issues.invalid("upstream", f"error parsing upstream: {e}")
            continue
        # httpx reports an empty path as "/" without storing it, so set it explicitly
        if url.path == "/":
            url = url.copy_with(path="/")
        parsed.append(url)
    return parsed


def compile_patterns(patterns: list[str], setting: str, issues: IssueCollector) -> list[re.Pattern[str]]:
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            issues.invalid(setting, f"error compiling regex={pattern!r} {e}")
    return compiled
