# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_gateway

import logging
import os
from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest
from loguru import logger

from coreason_gateway.utils.logger import add_file_sink, configure_logging


@pytest.fixture
def reset_logger() -> Generator[None, None, None]:
    """Restore the default console configuration after each test."""
    yield
    configure_logging()


@pytest.mark.usefixtures("reset_logger")
def test_text_and_json_console_output(capsys: pytest.CaptureFixture[str]) -> None:
    with patch.dict(os.environ, {"COREASON_GATEWAY_LOG_JSON": "false"}):
        configure_logging()
        logger.info("Text Log")
        captured = capsys.readouterr()
        assert "Text Log" in captured.err

    with patch.dict(os.environ, {"COREASON_GATEWAY_LOG_JSON": "true"}):
        configure_logging()
        logger.info("JSON Log")
        captured = capsys.readouterr()
        # JSON goes to stdout
        assert '"text":' in captured.out
        assert "JSON Log" in captured.out
        assert not captured.err


@pytest.mark.usefixtures("reset_logger")
def test_invalid_level_falls_back_to_info() -> None:
    with patch.dict(os.environ, {"COREASON_GATEWAY_LOG_LEVEL": "CHATTY"}):
        configure_logging()
    assert logging.getLogger().level == logging.INFO


def test_standard_logging_is_intercepted(captured_logs: list[str]) -> None:
    logging.getLogger("httpx").warning("forwarded from stdlib")
    assert any("forwarded from stdlib" in m for m in captured_logs)


def test_file_sink_writes(tmp_path: Path) -> None:
    path = tmp_path / "gateway.log"
    handler_id = add_file_sink(str(path), max_size_mb=5, max_age_days=3)
    try:
        logger.warning("written to file")
        logger.complete()
    finally:
        logger.remove(handler_id)

    assert "written to file" in path.read_text()


def test_file_sink_rotation_settings() -> None:
    with patch("coreason_gateway.utils.logger.logger") as mock_logger:
        add_file_sink("gateway.log", max_size_mb=5, max_age_days=3, compress=True, local_time=False)

    kwargs = mock_logger.add.call_args.kwargs
    assert kwargs["rotation"] == "5 MB"
    assert kwargs["retention"] == "3 days"
    assert kwargs["compression"] == "zip"
    assert "!UTC" in kwargs["format"]


def test_file_sink_without_limits() -> None:
    with patch("coreason_gateway.utils.logger.logger") as mock_logger:
        add_file_sink("gateway.log", max_size_mb=0, max_age_days=0)

    kwargs = mock_logger.add.call_args.kwargs
    assert kwargs["rotation"] is None
    assert kwargs["retention"] is None
    assert kwargs["compression"] is None
    assert "!UTC" not in kwargs["format"]
