# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_gateway

import re

import httpx

from coreason_gateway.models import IssueCollector
from coreason_gateway.parsing import compile_patterns, parse_upstreams, parse_url


def test_parse_url_valid() -> None:
    issues = IssueCollector()
    url = parse_url("https://gateway.example.com/oauth2/callback", "redirect", issues)
    assert isinstance(url, httpx.URL)
    assert url.host == "gateway.example.com"
    assert url.path == "/oauth2/callback"
    assert not issues


def test_parse_url_empty() -> None:
    issues = IssueCollector()
    url = parse_url("", "profile", issues)
    assert url is not None
    assert str(url) == ""
    assert not issues


def test_parse_url_invalid_names_role() -> None:
    issues = IssueCollector()
    assert parse_url("https://example.com:notaport/", "login", issues) is None
    (issue,) = issues.issues
    assert issue.setting == "login-url"
    assert issue.message.startswith("error parsing login-url='https://example.com:notaport/'")


def test_parse_upstreams_defaults_path() -> None:
    issues = IssueCollector()
    upstreams = parse_upstreams(["http://127.0.0.1:8080", "http://backend/api/"], issues)
    assert [u.path for u in upstreams] == ["/", "/api/"]
    assert [str(u) for u in upstreams] == ["http://127.0.0.1:8080/", "http://backend/api/"]
    assert not issues


def test_parse_upstreams_skips_invalid() -> None:
    issues = IssueCollector()
    upstreams = parse_upstreams(["http://backend:badport", "http://ok.example.com"], issues)
    assert [u.host for u in upstreams] == ["ok.example.com"]
    (issue,) = issues.issues
    assert issue.message.startswith("error parsing upstream:")


def test_compile_patterns() -> None:
    issues = IssueCollector()
    compiled = compile_patterns(["^/health$", "^/static/.*"], "skip-auth-regex", issues)
    assert all(isinstance(p, re.Pattern) for p in compiled)
    assert compiled[1].match("/static/app.js")
    assert not issues


def test_compile_patterns_reports_each_failure() -> None:
    issues = IssueCollector()
    compiled = compile_patterns(["(unclosed", "^/ok$", "[bad"], "skip-auth-header", issues)
    assert [p.pattern for p in compiled] == ["^/ok$"]
    assert len(issues) == 2
    assert all(i.setting == "skip-auth-header" for i in issues)
    assert issues.issues[0].message.startswith("error compiling regex='(unclosed'")
