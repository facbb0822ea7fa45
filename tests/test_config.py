"""Tests for settings and the error taxonomy."""

import pytest

from freestyle_multibranch.config import Settings, parse_name_list
from freestyle_multibranch.errors import (
    ConfigurationError,
    FreestyleMultibranchError,
    NodeDisconnected,
    RebindSaveFailure,
)


class TestParseNameList:
    def test_parses_names(self):
        assert parse_name_list("master,main") == ["master", "main"]

    def test_strips_whitespace(self):
        assert parse_name_list("  trunk , default  ") == ["trunk", "default"]

    def test_filters_empty_entries(self):
        assert parse_name_list("master,,main") == ["master", "main"]

    @pytest.mark.parametrize("raw", ["", "   "])
    def test_blank_returns_empty_list(self, raw):
        assert parse_name_list(raw) == []


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.primary_branches == ["master", "main", "trunk", "default"]
        assert settings.log_format == "console"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PRIMARY_BRANCH_NAMES", "trunk")
        monkeypatch.setenv("STATE_ROOT", "/var/lib/fsmb")

        settings = Settings()

        assert settings.primary_branches == ["trunk"]
        assert settings.state_root == "/var/lib/fsmb"


class TestErrors:
    def test_to_dict(self):
        error = ConfigurationError("Unknown kind 'regex'")
        assert error.to_dict() == {
            "error": "ConfigurationError",
            "code": "INVALID_CONFIGURATION",
            "message": "Unknown kind 'regex'",
        }

    def test_subclasses_share_base(self):
        assert isinstance(NodeDisconnected("agent-1"), FreestyleMultibranchError)
        assert isinstance(RebindSaveFailure("master"), FreestyleMultibranchError)

    def test_default_messages(self):
        assert "agent-1" in NodeDisconnected("agent-1").message
        assert RebindSaveFailure("master").job_name == "master"

    def test_code_can_be_overridden(self):
        assert FreestyleMultibranchError("x", code="CUSTOM").code == "CUSTOM"
