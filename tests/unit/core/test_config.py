"""Tests for settings and datetime helpers."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from docsync.core.config import Settings
from docsync.core.datetime_utils import (
    NEVER,
    ensure_utc,
    format_rfc3339,
    is_never,
    parse_rfc3339,
)


def test_defaults_match_sync_constants():
    """Test scheduler, pipeline and backoff defaults."""
    settings = Settings(_env_file=None)

    assert settings.MIN_CHUNK_SIZE == 10
    assert settings.SYNC_CHECK_PERIOD_SECONDS == 60
    assert settings.STALE_THRESHOLD_SECONDS == 60
    assert settings.SOURCE_RETRY_INITIAL_DELAY == 0.5
    assert settings.SOURCE_RETRY_MAX_DELAY == 64
    assert settings.SOURCE_RETRY_MAX_RETRIES == 10


def test_ollama_base_url_adds_scheme():
    """Test that a bare host:port gets an http scheme."""
    assert Settings(_env_file=None, OLLAMA_HOST="127.0.0.1:11434").ollama_base_url == (
        "http://127.0.0.1:11434"
    )
    assert Settings(_env_file=None, OLLAMA_HOST="https://ollama.local/").ollama_base_url == (
        "https://ollama.local"
    )


def test_invalid_chunk_settings_rejected():
    """Test that non-positive sizes fail validation."""
    with pytest.raises(ValidationError):
        Settings(_env_file=None, MIN_CHUNK_SIZE=0)
    with pytest.raises(ValidationError):
        Settings(_env_file=None, CHUNK_OVERLAP_TOKENS=-1)


def test_never_sorts_before_any_real_time():
    """Test the zero value used for never-synced connectors."""
    assert is_never(NEVER)
    assert not is_never(datetime(2024, 1, 1, tzinfo=timezone.utc))
    assert NEVER < datetime(1970, 1, 1, tzinfo=timezone.utc)


def test_rfc3339_round_trip_and_naive_coercion():
    """Test parsing Z-suffixed timestamps and treating naive values as UTC."""
    parsed = parse_rfc3339("2024-05-01T12:00:00.000Z")

    assert parsed == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
    assert format_rfc3339(parsed) == "2024-05-01T12:00:00Z"
    assert ensure_utc(datetime(2024, 5, 1, 12)).tzinfo == timezone.utc
    assert format_rfc3339(
        datetime(2024, 5, 1, 14, tzinfo=timezone(timedelta(hours=2)))
    ) == "2024-05-01T12:00:00Z"
