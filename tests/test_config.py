"""Tests for environment-driven scan configuration."""

from __future__ import annotations

import pytest

from aqlsentinel.core.config import DEFAULT_FEED_URL, ScanConfig, resolve_token
from aqlsentinel.exceptions import ConfigError, SetupError

_ENV_VARS = [
    "rt_token",
    "RT_TOKEN",
    "AQLSENTINEL_FEED_URL",
    "AQLSENTINEL_CONCURRENCY",
    "AQLSENTINEL_TIMEOUT",
    "AQLSENTINEL_MAX_RETRIES",
    "AQLSENTINEL_RETRY_BASE_DELAY",
    "AQLSENTINEL_AUTH_FAILURE_THRESHOLD",
    "AQLSENTINEL_REPORT_FILE",
    "AQLSENTINEL_SORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_VARS:
        monkeypatch.delenv(key, raising=False)


class TestResolveToken:
    def test_lowercase_var(self, monkeypatch):
        monkeypatch.setenv("rt_token", "abc")
        assert resolve_token() == "abc"

    def test_uppercase_fallback(self, monkeypatch):
        monkeypatch.setenv("RT_TOKEN", "xyz")
        assert resolve_token() == "xyz"

    def test_unset(self):
        assert resolve_token() is None


class TestScanConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.setenv("rt_token", "abc")
        cfg = ScanConfig.from_env("https://rt.example.com/")
        assert cfg.base_url == "https://rt.example.com"
        assert cfg.token == "abc"
        assert cfg.feed_url == DEFAULT_FEED_URL
        assert cfg.concurrency == 8
        assert cfg.max_retries == 3
        assert cfg.auth_failure_threshold == 5
        assert cfg.report_path == "aql_scan_report.csv"
        assert cfg.sort_candidates is False

    def test_missing_token_is_setup_error(self):
        with pytest.raises(SetupError, match="token"):
            ScanConfig.from_env("https://rt.example.com")

    def test_missing_base_url(self, monkeypatch):
        monkeypatch.setenv("rt_token", "abc")
        with pytest.raises(ConfigError, match="base URL"):
            ScanConfig.from_env("  ")

    def test_env_values(self, monkeypatch):
        monkeypatch.setenv("rt_token", "abc")
        monkeypatch.setenv("AQLSENTINEL_CONCURRENCY", "16")
        monkeypatch.setenv("AQLSENTINEL_TIMEOUT", "5.5")
        monkeypatch.setenv("AQLSENTINEL_SORT", "yes")
        cfg = ScanConfig.from_env("https://rt.example.com")
        assert cfg.concurrency == 16
        assert cfg.timeout == 5.5
        assert cfg.sort_candidates is True

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("rt_token", "abc")
        monkeypatch.setenv("AQLSENTINEL_CONCURRENCY", "16")
        cfg = ScanConfig.from_env("https://rt.example.com", concurrency=2, feed_url=None)
        assert cfg.concurrency == 2
        assert cfg.feed_url == DEFAULT_FEED_URL

    def test_override_shields_bad_env(self, monkeypatch):
        monkeypatch.setenv("rt_token", "abc")
        monkeypatch.setenv("AQLSENTINEL_CONCURRENCY", "lots")
        assert ScanConfig.from_env("https://rt.example.com", concurrency=4).concurrency == 4

    def test_malformed_number(self, monkeypatch):
        monkeypatch.setenv("rt_token", "abc")
        monkeypatch.setenv("AQLSENTINEL_MAX_RETRIES", "three")
        with pytest.raises(ConfigError, match="AQLSENTINEL_MAX_RETRIES"):
            ScanConfig.from_env("https://rt.example.com")

    def test_unknown_override(self, monkeypatch):
        monkeypatch.setenv("rt_token", "abc")
        with pytest.raises(ConfigError, match="unknown"):
            ScanConfig.from_env("https://rt.example.com", colour="blue")

    @pytest.mark.parametrize(
        "field,value",
        [("concurrency", 0), ("max_retries", 0), ("timeout", 0), ("auth_failure_threshold", -1)],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ConfigError):
            ScanConfig(base_url="https://rt.example.com", token="abc", **{field: value})
