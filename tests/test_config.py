"""
Tests for settings and package boundaries.
"""

import ast
from pathlib import Path

import pytest
from pydantic import ValidationError

from trafficcop.config import Settings


ANALYSIS_DIR = Path(__file__).parent.parent / "trafficcop" / "analysis"


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("TRAFFICCOP_LOG_LEVEL", raising=False)
        settings = Settings(_env_file=None)

        assert settings.log_level == "WARNING"
        assert settings.live_buffer_capacity == 10000
        assert settings.slow_threshold_ms == 1000
        assert settings.large_threshold_bytes == 1024 * 1024
        assert settings.auto_repair is True

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("TRAFFICCOP_LOG_LEVEL", "debug")
        monkeypatch.setenv("TRAFFICCOP_TOP_N", "3")
        monkeypatch.setenv("TRAFFICCOP_AUTO_REPAIR", "false")

        settings = Settings(_env_file=None)

        assert settings.log_level == "DEBUG"
        assert settings.top_n == 3
        assert settings.auto_repair is False

    def test_capacity_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("TRAFFICCOP_LIVE_BUFFER_CAPACITY", "0")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_unknown_log_level(self, monkeypatch):
        monkeypatch.setenv("TRAFFICCOP_LOG_LEVEL", "LOUD")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestAnalysisBoundary:
    """The analysis package stays independent of the host layers."""

    @pytest.mark.parametrize("path", sorted(ANALYSIS_DIR.glob("*.py")), ids=lambda p: p.name)
    def test_no_host_imports(self, path):
        tree = ast.parse(path.read_text(encoding="utf-8"))
        imported = set()
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                imported.update(alias.name for alias in node.names)
            elif isinstance(node, ast.ImportFrom) and node.module:
                imported.add(node.module)

        for forbidden in ("trafficcop.config", "trafficcop.output", "trafficcop.cli", "rich", "pydantic"):
            assert not any(name == forbidden or name.startswith(forbidden + ".") for name in imported)
