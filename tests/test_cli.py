"""Tests for the command line interface."""

import pytest
from typer.testing import CliRunner

from freestyle_multibranch.cli import app


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestCheckHead:
    def test_head_with_marker_is_included(self, runner, tmp_path):
        (tmp_path / "marker.txt").write_text("")

        result = runner.invoke(app, ["check-head", str(tmp_path), "--marker", "marker.txt"])

        assert result.exit_code == 0
        assert "Checking for marker.txt" in result.output
        assert "included" in result.output

    def test_head_without_marker_is_excluded(self, runner, tmp_path):
        result = runner.invoke(app, ["check-head", str(tmp_path), "--marker", "marker.txt"])

        assert result.exit_code == 1
        assert "excluded" in result.output

    def test_no_marker_includes_everything(self, runner, tmp_path):
        result = runner.invoke(app, ["check-head", str(tmp_path), "--marker", ""])
        assert result.exit_code == 0

    def test_missing_directory(self, runner, tmp_path):
        result = runner.invoke(app, ["check-head", str(tmp_path / "nope"), "--marker", "m"])
        assert result.exit_code == 2


class TestEncode:
    def test_prints_job_names(self, runner):
        result = runner.invoke(app, ["encode", "feature/x", "master"])

        assert result.exit_code == 0
        assert "feature-x" in result.output
        assert "master" in result.output


class TestWorkspace:
    def test_prints_branch_workspace(self, runner, tmp_path):
        result = runner.invoke(
            app, ["workspace", "app", "feature/x", "--root", str(tmp_path)]
        )

        assert result.exit_code == 0
        assert str(tmp_path / "app" / "feature-x") in result.output


class TestSteps:
    def test_lists_all_step_types(self, runner):
        result = runner.invoke(app, ["steps"])

        assert result.exit_code == 0
        for step_id in ("build-timeout", "shell", "archive-artifacts"):
            assert step_id in result.output

    def test_filters_by_capability(self, runner):
        result = runner.invoke(app, ["steps", "--capability", "builder"])

        assert result.exit_code == 0
        assert "shell" in result.output
        assert "archive-artifacts" not in result.output

    def test_unknown_capability(self, runner):
        result = runner.invoke(app, ["steps", "--capability", "deployer"])
        assert result.exit_code == 2
