"""Unit tests for taskforge workflow management.

This module tests the ForgeManager facade used by the MCP tools: every
method returns a dictionary, and failures come back as error entries.
"""

import subprocess
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from taskforge.config import config_path
from taskforge.workflow import ForgeManager


@pytest.fixture
def manager():
    with tempfile.TemporaryDirectory() as temp_dir:
        yield ForgeManager(temp_dir)


class TestForgeManagerInitialization:
    """Test cases for ForgeManager initialization."""

    def test_manager_creation(self):
        """Test creating a ForgeManager."""
        with tempfile.TemporaryDirectory() as temp_dir:
            manager = ForgeManager(temp_dir)

            assert manager.root == Path(temp_dir).resolve()
            assert manager.generator.root == manager.root


class TestRegistries:
    """Test cases for registry listings."""

    def test_list_capabilities(self, manager):
        """Test listing roles and tasks."""
        result = manager.list_capabilities()

        roles = [capability["role"] for capability in result["capabilities"]]
        assert "issue-tracker" in roles
        assert {"slug": "run-tests", "title": "Run Tests"} in result["tasks"]

    def test_list_profiles(self, manager):
        """Test listing target profiles."""
        result = manager.list_profiles()

        assert [profile["id"] for profile in result["profiles"]] == ["claude-code", "cursor", "codex"]


class TestConfiguration:
    """Test cases for configuration management in ForgeManager."""

    def test_get_configuration_before_configure(self, manager):
        """Test reading a missing configuration."""
        result = manager.get_configuration()

        assert result["exists"] is False
        assert result["next_suggested_step"] == "configure_project"

    def test_get_configuration_mistyped_file(self, manager):
        """Test that a mistyped configuration file is reported, not raised."""
        path = config_path(manager.root)
        path.parent.mkdir(parents=True)
        path.write_text('{"projectName": "p", "roleAssignments": "oops"}', encoding="utf-8")

        result = manager.get_configuration()

        assert "roleAssignments" in result["error"]
        assert result["exists"] is True
        assert "error" in manager.regenerate()
        assert "error" in manager.check_secrets()

    def test_configure_project_success(self, manager):
        """Test saving a configuration and regenerating."""
        result = manager.configure_project("Shop", "claude-code", {"issue-tracker": "linear"})

        assert "error" not in result
        assert Path(result["config_path"]) == config_path(manager.root)
        assert result["configuration"]["roleAssignments"]["issue-tracker"] == "linear"
        assert len(result["generation"]["task_files"]) == 7
        assert manager.get_configuration()["exists"] is True

    def test_configure_project_without_regeneration(self, manager):
        """Test saving only."""
        result = manager.configure_project("Shop", regenerate=False)

        assert result["next_suggested_step"] == "regenerate_artifacts"
        assert not (manager.root / ".claude").exists()

    def test_configure_project_keeps_profile(self, manager):
        """Test that reconfiguring without a profile keeps the saved one."""
        manager.configure_project("Shop", "cursor", regenerate=False)

        result = manager.configure_project("Shop", None, {"team-communicator": "teams"}, regenerate=False)

        assert result["configuration"]["targetProfileId"] == "cursor"

    def test_configure_project_invalid_assignment(self, manager):
        """Test that invalid assignments come back as an error entry."""
        result = manager.configure_project("Shop", "claude-code", {"issue-tracker": "teams"})

        assert "error" in result
        assert "suggestion" in result
        assert result["config_path"] is None
        assert not config_path(manager.root).exists()

    def test_configure_project_empty_name(self, manager):
        """Test that the project name is required."""
        result = manager.configure_project("   ")

        assert "Project name cannot be empty" in result["error"]


class TestGeneration:
    """Test cases for regeneration and preview."""

    def test_regenerate_without_configuration(self, manager):
        """Test regeneration before configure_project."""
        result = manager.regenerate()

        assert "error" in result
        assert "configure_project" in result["suggestion"]

    def test_regenerate_unknown_context(self, manager):
        """Test that an unknown context is reported, not raised."""
        manager.configure_project("Shop", regenerate=False)

        result = manager.regenerate(context="mars")

        assert "Unknown execution context" in result["error"]

    def test_regenerate_suggests_reconciliation_for_cli_profiles(self, manager):
        """Test the next step hint for CLI-delivery profiles."""
        manager.configure_project("Shop", "codex", regenerate=False)

        result = manager.regenerate()

        assert result["next_suggested_step"] == "reconcile_connectors"
        assert result["connector_config_path"] is None

    def test_preview_task(self, manager):
        """Test rendering one task without writing it."""
        manager.configure_project("Shop", regenerate=False)

        result = manager.preview_task("run-tests")

        assert result["content"].startswith("---\n")
        assert not (manager.root / ".claude" / "commands").exists()

    def test_preview_unknown_task(self, manager):
        """Test previewing an unknown slug."""
        manager.configure_project("Shop", regenerate=False)

        assert "error" in manager.preview_task("bake-cake")


class TestConnectorsAndSecrets:
    """Test cases for reconciliation and secrets."""

    def test_reconcile_file_delivery_profile(self, manager):
        """Test that file-delivery profiles have nothing to register."""
        manager.configure_project("Shop", "claude-code", regenerate=False)

        result = manager.reconcile_connectors()

        assert result["skipped"] is True

    def test_reconcile_cli_profile(self, manager):
        """Test reconciliation through an injected runner."""
        manager.configure_project("Shop", "codex", {"changelog-historian": "github"}, regenerate=False)
        runner = MagicMock(return_value=subprocess.CompletedProcess([], 0, stdout="", stderr=""))

        result = manager.reconcile_connectors(runner=runner)

        assert result["ok"] is True
        assert result["succeeded"] == ["github", "playwright"]
        assert runner.call_count == 3

    def test_check_secrets(self, manager):
        """Test reporting missing connector secrets."""
        manager.configure_project("Shop", "claude-code", {"issue-tracker": "linear"}, regenerate=False)
        (manager.root / ".env").write_text("LINEAR_API_KEY=lin_123\n", encoding="utf-8")

        result = manager.check_secrets()

        assert result["required"] == ["LINEAR_API_KEY"]
        assert result["missing"] == []
        assert result["ok"] is True
