from __future__ import annotations

import pytest
from pydantic import ValidationError

from solaris.infrastructure.config.settings import Settings
from solaris.infrastructure.observability.logging import agent_logger, setup_logging


def test_defaults():
    settings = Settings.from_env({})

    assert settings.compaction_threshold == 50_000
    assert settings.recent_messages == 10
    assert settings.digest_lines == 20
    assert settings.stream_durable is False
    assert settings.uniform_access_errors is False
    assert settings.max_sessions == 1000


def test_environment_overrides():
    settings = Settings.from_env({
        "SOLARIS_COMPACTION_THRESHOLD": "1200",
        "SOLARIS_STREAM_DURABLE": "yes",
        "SOLARIS_STREAM_GRACE_SECONDS": "2.5",
        "SOLARIS_LOG_FORMAT": "console",
        "UNRELATED": "ignored",
    })

    assert settings.compaction_threshold == 1200
    assert settings.stream_durable is True
    assert settings.stream_grace_seconds == 2.5
    assert settings.log_format == "console"


def test_invalid_values_are_rejected():
    with pytest.raises(ValidationError):
        Settings.from_env({"SOLARIS_RECENT_MESSAGES": "0"})


def test_logging_setup_accepts_both_formats(capsys):
    for log_format in ("console", "json"):
        setup_logging("DEBUG", log_format)
        agent_logger.log_document_version("doc-1", "text", 1, "alice")
