"""Unit tests for connector configuration and CLI reconciliation."""

import json
import subprocess
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from taskforge.connectors import (
    ConnectorReconciler,
    build_cli_command,
    build_connector_config,
    connector_names_for,
    render_connector_file,
    write_connector_file,
)
from taskforge.errors import ConfigurationError, UnknownConnectorError
from taskforge.profiles import get_profile


def _runner(listing="", fail=()):
    """Fake subprocess.run: answers ``mcp list`` and fails the named registrations."""

    def run(argv, **kwargs):
        if argv[1:3] == ["mcp", "list"]:
            return subprocess.CompletedProcess(argv, 0, stdout=listing, stderr="")
        if argv[3] in fail:
            raise subprocess.CalledProcessError(1, argv, output="", stderr="server exploded")
        return subprocess.CompletedProcess(argv, 0, stdout="", stderr="")

    return MagicMock(side_effect=run)


class TestConnectorNames:
    """Test cases for deriving connector names from assignments."""

    def test_ordered_and_deduplicated(self):
        """Test that shared connectors appear once in assignment order."""
        names = connector_names_for({
            "browser-automation": "playwright",
            "test-code-generator": "playwright",
            "issue-tracker": "notion",
            "documentation-researcher": "notion",
            "team-communicator": "email",
        })

        assert names == ["playwright", "notion", "resend"]

    def test_connectorless_integrations(self):
        """Test integrations that add no connector."""
        assert connector_names_for({"team-communicator": "local", "issue-tracker": "asana"}) == []


class TestFileDelivery:
    """Test cases for file-mode configuration."""

    def test_variants(self):
        """Test that only the containerized variant gets extra arguments."""
        local, _ = build_connector_config(["playwright"], "local")
        containerized, _ = build_connector_config(["playwright"], "containerized")

        assert local["playwright"].args == ["-y", "@playwright/mcp@latest"]
        assert containerized["playwright"].args == ["-y", "@playwright/mcp@latest", "--headless", "--no-sandbox"]

    def test_default_variant_is_containerized(self):
        """Test the builder's default variant."""
        configs, _ = build_connector_config(["playwright"])

        assert "--headless" in configs["playwright"].args

    def test_env_placeholders_kept(self):
        """Test that secrets stay symbolic."""
        configs, _ = build_connector_config(["slack"], "local")

        assert configs["slack"].env == {"SLACK_BOT_TOKEN": "${SLACK_ACCESS_TOKEN}"}

    def test_unknown_connector_skipped(self):
        """Test that unknown names are skipped with a warning."""
        configs, warnings = build_connector_config(["slack", "fax", "github"], "local")

        assert list(configs) == ["slack", "github"]
        assert warnings == ["Unknown MCP server: fax, skipping"]

    def test_unknown_variant(self):
        """Test that an unknown variant is a configuration error."""
        with pytest.raises(ConfigurationError):
            build_connector_config(["slack"], "kubernetes")

    def test_render_and_write(self):
        """Test the JSON document layout."""
        configs, _ = build_connector_config(["playwright", "slack"], "local")
        text = render_connector_file(configs)

        assert text.endswith("}\n")
        assert text.startswith('{\n  "mcpServers": {\n    "playwright"')
        document = json.loads(text)
        assert list(document["mcpServers"]) == ["playwright", "slack"]
        assert document["mcpServers"]["slack"]["command"] == "slack-mcp-server"

        with tempfile.TemporaryDirectory() as temp_dir:
            path = write_connector_file(Path(temp_dir) / ".cursor" / "mcp.json", configs)
            assert path.read_text(encoding="utf-8") == text


class TestCliCommand:
    """Test cases for CLI registration commands."""

    def test_command_layout(self):
        """Test flag placement around the separator."""
        command = build_cli_command("slack", get_profile("codex"))

        assert command.registered_name == "taskforge-slack"
        assert command.argv == [
            "codex", "mcp", "add", "taskforge-slack",
            "--env", "SLACK_BOT_TOKEN=$SLACK_ACCESS_TOKEN",
            "--", "slack-mcp-server",
        ]

    def test_server_args_after_separator(self):
        """Test that server arguments are never mistaken for flags."""
        command = build_cli_command("jira-server", get_profile("codex"))
        separator = command.separator_index

        assert command.argv[separator + 1:] == ["mcp-tunnel", "--server", "jira-mcp-server"]
        assert all(arg.startswith("--env") or "=" in arg for arg in command.argv[4:separator])

    def test_containerized_variant(self):
        """Test variant arguments on the CLI command."""
        command = build_cli_command("playwright", get_profile("codex"), variant="containerized")

        assert command.argv[-2:] == ["--headless", "--no-sandbox"]

    def test_custom_namespace(self):
        """Test the registered name prefix."""
        command = build_cli_command("github", get_profile("codex"), namespace="acme")

        assert command.argv[3] == "acme-github"

    def test_unknown_connector(self):
        """Test that the single-command builder raises."""
        with pytest.raises(UnknownConnectorError) as exc_info:
            build_cli_command("fax", get_profile("codex"))

        assert str(exc_info.value) == "Unknown MCP server: fax"


class TestConnectorReconciler:
    """Test cases for reconciling desired and registered connectors."""

    @pytest.fixture
    def temp_root(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            yield Path(temp_dir)

    def test_registers_only_missing(self, temp_root):
        """Test the desired-minus-registered delta."""
        runner = _runner(listing="taskforge-playwright  npx  -y @playwright/mcp@latest\nother-server  foo\n")
        reconciler = ConnectorReconciler(get_profile("codex"), temp_root, runner=runner)

        report = reconciler.reconcile(["playwright", "slack", "linear"])

        assert report.registered == ["playwright"]
        assert report.attempted == ["slack", "linear"]
        assert report.succeeded == ["slack", "linear"]
        assert report.ok
        registered_names = [call.args[0][3] for call in runner.call_args_list[1:]]
        assert registered_names == ["taskforge-slack", "taskforge-linear"]

    def test_failure_isolated(self, temp_root):
        """Test that one failed registration does not stop the batch."""
        runner = _runner(fail=("taskforge-slack",))
        reconciler = ConnectorReconciler(get_profile("codex"), temp_root, runner=runner)

        report = reconciler.reconcile(["slack", "github"])

        assert report.failed == {"slack": "server exploded"}
        assert report.succeeded == ["github"]
        assert not report.ok

    def test_missing_cli_recorded(self, temp_root):
        """Test that a missing executable is a per-connector failure."""
        runner = MagicMock(side_effect=FileNotFoundError("codex"))
        reconciler = ConnectorReconciler(get_profile("codex"), temp_root, runner=runner)

        report = reconciler.reconcile(["slack"])

        assert "slack" in report.failed
        assert report.warnings and "Could not list" in report.warnings[0]

    def test_unknown_connector_skipped(self, temp_root):
        """Test that unknown names are skipped with a warning."""
        reconciler = ConnectorReconciler(get_profile("codex"), temp_root, runner=_runner())

        report = reconciler.reconcile(["fax", "github"])

        assert report.attempted == ["github"]
        assert report.warnings == ["Unknown MCP server: fax, skipping"]

    def test_unknown_variant_runs_nothing(self, temp_root):
        """Test that an unknown variant is rejected before the CLI is called."""
        runner = _runner(listing="taskforge-github  github-mcp-server\n")
        reconciler = ConnectorReconciler(get_profile("codex"), temp_root, runner=runner)

        with pytest.raises(ConfigurationError):
            reconciler.reconcile(["github", "slack"], variant="kubernetes")

        runner.assert_not_called()

    def test_empty_desired_set(self, temp_root):
        """Test that nothing runs when no connectors are wanted."""
        runner = _runner()
        report = ConnectorReconciler(get_profile("codex"), temp_root, runner=runner).reconcile([])

        assert report.attempted == []
        runner.assert_not_called()

    def test_home_directory_environment(self, temp_root):
        """Test that commands run with the profile's project-local home."""
        runner = _runner()
        ConnectorReconciler(get_profile("codex"), temp_root, runner=runner).reconcile(["github"])

        kwargs = runner.call_args_list[-1].kwargs
        assert kwargs["env"]["CODEX_HOME"] == str(temp_root.resolve() / ".codex")
        assert kwargs["cwd"] == str(temp_root.resolve())
        assert kwargs["check"] is True
        assert (temp_root / ".codex").is_dir()

    def test_json_listing(self, temp_root):
        """Test parsing a JSON server listing."""
        listing = json.dumps([{"name": "taskforge-github"}, {"name": "github"}])
        reconciler = ConnectorReconciler(get_profile("codex"), temp_root, runner=_runner(listing=listing))

        assert reconciler.registered() == ["github"]

    def test_colon_listing(self, temp_root):
        """Test parsing ``name: command`` listings."""
        reconciler = ConnectorReconciler(get_profile("claude-code"), temp_root, runner=_runner(
            listing="taskforge-slack: slack-mcp-server - Connected\n"
        ))

        assert reconciler.registered() == ["slack"]
