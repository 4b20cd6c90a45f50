"""
tests/test_config.py

Tests for config.py — Pydantic Settings validation and defaults.
"""

from __future__ import annotations

import os

import pytest
from pydantic import ValidationError

from logtally.core.config import Settings


class TestSettingsDefaults:

    def test_default_worker_count(self):
        s = Settings()
        assert s.WORKER_COUNT == (os.cpu_count() or 1)

    def test_default_chunk_size(self):
        s = Settings()
        assert s.CHUNK_SIZE == 10_000

    def test_default_queue_depth(self):
        s = Settings()
        assert s.QUEUE_DEPTH == 0

    def test_default_selection(self):
        s = Settings()
        assert s.SEVERITY == "error"
        assert s.BUCKET_SECONDS == 0

    def test_default_output(self):
        s = Settings()
        assert s.OUTPUT_ORDER == "sorted"
        assert s.KEY_FORMAT == "iso"

    def test_default_encoding(self):
        s = Settings()
        assert s.INPUT_ENCODING == "utf-8"

    def test_default_log_level(self):
        s = Settings()
        assert s.LOG_LEVEL == "INFO"


class TestSettingsOverrides:

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("WORKER_COUNT", "16")
        monkeypatch.setenv("CHUNK_SIZE", "2500")
        monkeypatch.setenv("SEVERITY", "warn")
        s = Settings()
        assert s.WORKER_COUNT == 16
        assert s.CHUNK_SIZE == 2500
        assert s.SEVERITY == "warn"

    def test_choices_are_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("OUTPUT_ORDER", "UNORDERED")
        monkeypatch.setenv("KEY_FORMAT", " Epoch ")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        s = Settings()
        assert s.OUTPUT_ORDER == "unordered"
        assert s.KEY_FORMAT == "epoch"
        assert s.LOG_LEVEL == "DEBUG"

    def test_severity_keeps_case(self, monkeypatch):
        monkeypatch.setenv("SEVERITY", "ERROR")
        assert Settings().SEVERITY == "ERROR"


class TestSettingsValidation:

    @pytest.mark.parametrize("name,value", [
        ("WORKER_COUNT", "0"),
        ("CHUNK_SIZE", "-1"),
        ("QUEUE_DEPTH", "-2"),
        ("BUCKET_SECONDS", "-60"),
        ("OUTPUT_ORDER", "random"),
        ("KEY_FORMAT", "rfc822"),
        ("LOG_LEVEL", "LOUD"),
    ])
    def test_rejects_invalid(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ValidationError):
            Settings()

    def test_rejects_empty_severity(self):
        with pytest.raises(ValidationError):
            Settings(SEVERITY="")
