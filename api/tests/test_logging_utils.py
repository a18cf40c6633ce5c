"""Tests for log helpers."""

import logging

from lingua_kb.utils.logging import configure_logging, excerpt


class TestExcerpt:
    def test_short_text_is_flattened(self):
        assert excerpt("How do\n  I reroll?") == "How do I reroll?"

    def test_long_text_is_truncated(self):
        result = excerpt("word " * 40, limit=20)

        assert len(result) <= 20
        assert result.endswith("…")

    def test_none_is_empty(self):
        assert excerpt(None) == ""


class TestConfigureLogging:
    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

        configure_logging("verbose")
        configure_logging("debug")

        assert calls[0]["level"] == logging.INFO
        assert calls[1]["level"] == logging.DEBUG
