"""External tool-connection (MCP server) configuration.

Holds the static connector descriptor table and builds connector
configuration in the two delivery modes a target profile can ask for:

* file mode: a ``{"mcpServers": {...}}`` JSON document with ``${VAR}``
  placeholders left for the assistant to expand at launch;
* CLI mode: ``<cli> mcp add`` commands, applied by ``ConnectorReconciler``
  only for connectors the assistant does not already have registered.
"""

from __future__ import annotations

import json
import logging
import os
import re
import subprocess
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .capabilities import connector_for_integration
from .errors import ConfigurationError, ConnectorRegistrationError, UnknownConnectorError
from .forge_logging import log_connector_event, log_operation
from .models import (
    CONTAINERIZED_VARIANT,
    DEPLOYMENT_VARIANTS,
    LOCAL_VARIANT,
    ConnectorCommand,
    ConnectorConfig,
    ConnectorDescriptor,
    ReconciliationReport,
    TargetProfile,
)

logger = logging.getLogger("taskforge.connectors")

NAMESPACE = "taskforge"

PLACEHOLDER_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


def _descriptor(name: str, display_name: str, command: str, *args: str, env: Optional[Dict[str, str]] = None,
                containerized: Tuple[str, ...] = (), description: str = "") -> ConnectorDescriptor:
    return ConnectorDescriptor(
        name=name,
        display_name=display_name,
        command=command,
        args=tuple(args),
        env_template=MappingProxyType(dict(env or {})),
        variant_extra_args=MappingProxyType({CONTAINERIZED_VARIANT: containerized} if containerized else {}),
        description=description,
    )


CONNECTORS: Mapping[str, ConnectorDescriptor] = MappingProxyType({
    descriptor.name: descriptor
    for descriptor in (
        _descriptor(
            "playwright", "Playwright", "npx", "-y", "@playwright/mcp@latest",
            containerized=("--headless", "--no-sandbox"),
            description="Playwright MCP server for browser automation",
        ),
        _descriptor(
            "slack", "Slack", "slack-mcp-server",
            env={"SLACK_BOT_TOKEN": "${SLACK_ACCESS_TOKEN}"},
            description="Slack MCP server for messaging and channel operations",
        ),
        _descriptor(
            "teams", "Microsoft Teams", "teams-mcp-server",
            env={
                "TEAMS_BOT_APP_ID": "${TEAMS_BOT_APP_ID}",
                "TEAMS_BOT_APP_PASSWORD": "${TEAMS_BOT_APP_PASSWORD}",
                "TEAMS_BOT_TENANT_ID": "${TEAMS_BOT_TENANT_ID}",
                "TEAMS_SERVICE_URL": "${TEAMS_SERVICE_URL}",
                "TEAMS_CONVERSATION_ID": "${TEAMS_CONVERSATION_ID}",
            },
            description="Microsoft Teams MCP server for messaging via Bot Connector API",
        ),
        _descriptor(
            "resend", "Email (Resend)", "resend-mcp-server",
            env={"RESEND_API_KEY": "${RESEND_API_KEY}", "RESEND_FROM_EMAIL": "${RESEND_FROM_EMAIL}"},
            description="Resend MCP server for sending email notifications",
        ),
        _descriptor(
            "notion", "Notion", "notion-mcp-server",
            env={"NOTION_TOKEN": "${NOTION_TOKEN}"},
            description="Notion MCP server for documentation",
        ),
        _descriptor(
            "confluence", "Confluence", "npx", "-y", "@modelcontextprotocol/server-confluence",
            env={
                "CONFLUENCE_URL": "${CONFLUENCE_URL}",
                "CONFLUENCE_EMAIL": "${CONFLUENCE_EMAIL}",
                "CONFLUENCE_API_TOKEN": "${CONFLUENCE_API_TOKEN}",
            },
            description="Confluence MCP server for documentation",
        ),
        _descriptor(
            "linear", "Linear", "npx", "-y", "@modelcontextprotocol/server-linear",
            env={"LINEAR_API_KEY": "${LINEAR_API_KEY}"},
            description="Linear MCP server for issue tracking",
        ),
        _descriptor(
            "jira", "Jira Cloud", "jira-cloud-mcp-server",
            env={"JIRA_CLOUD_TOKEN": "${JIRA_CLOUD_TOKEN}", "JIRA_CLOUD_ID": "${JIRA_CLOUD_ID}"},
            description="Jira Cloud MCP server for issue tracking (REST API v3)",
        ),
        _descriptor(
            "jira-server", "Jira Server (On-Prem)", "mcp-tunnel", "--server", "jira-mcp-server",
            env={
                "ABLY_API_KEY": "${ABLY_API_KEY}",
                "TENANT_ID": "${TENANT_ID}",
                "JIRA_BASE_URL": "${JIRA_BASE_URL}",
                "JIRA_AUTH_TYPE": "${JIRA_AUTH_TYPE}",
                "JIRA_PAT": "${JIRA_PAT}",
                "JIRA_USERNAME": "${JIRA_USERNAME}",
                "JIRA_PASSWORD": "${JIRA_PASSWORD}",
            },
            description="Jira Server MCP via tunnel for on-premise instances",
        ),
        _descriptor(
            "azure-devops", "Azure DevOps", "azure-devops-mcp-server",
            env={"AZURE_DEVOPS_ORG_URL": "${AZURE_DEVOPS_ORG_URL}", "AZURE_DEVOPS_PAT": "${AZURE_DEVOPS_PAT}"},
            description="Azure DevOps MCP server for Work Item Tracking",
        ),
        _descriptor(
            "github", "GitHub", "github-mcp-server",
            env={"GITHUB_TOKEN": "${GITHUB_TOKEN}"},
            description="GitHub MCP server for PR and commit information",
        ),
    )
})


def get_connector(name: str) -> Optional[ConnectorDescriptor]:
    """Get a connector descriptor by name."""
    return CONNECTORS.get(name)


def connector_names_for(role_assignments: Mapping[str, str]) -> List[str]:
    """Connector names needed by the assigned integrations, de-duplicated in order."""
    names: List[str] = []
    for integration_id in role_assignments.values():
        name = connector_for_integration(integration_id)
        if name and name not in names:
            names.append(name)
    return names


def check_variant(variant: str) -> None:
    """Raise ``ConfigurationError`` for an unknown deployment variant."""
    if variant not in DEPLOYMENT_VARIANTS:
        raise ConfigurationError(
            f"Unknown deployment variant '{variant}'. Expected one of: {', '.join(DEPLOYMENT_VARIANTS)}",
            field="variant",
        )


def _args_for(descriptor: ConnectorDescriptor, variant: str) -> List[str]:
    args = list(descriptor.args)
    if variant == CONTAINERIZED_VARIANT:
        args.extend(descriptor.variant_extra_args.get(CONTAINERIZED_VARIANT, ()))
    return args


# ----------------------------------------------------------------------
# File delivery
# ----------------------------------------------------------------------

def build_connector_config(
    names: Iterable[str],
    variant: str = CONTAINERIZED_VARIANT,
) -> Tuple[Dict[str, ConnectorConfig], List[str]]:
    """Build per-connector configuration for a deployment variant.

    Unknown connector names are skipped and reported in the returned warning
    list. ``env`` values keep their ``${VAR}`` placeholders.
    """
    check_variant(variant)
    configs: Dict[str, ConnectorConfig] = {}
    warnings: List[str] = []

    for name in names:
        descriptor = CONNECTORS.get(name)
        if descriptor is None:
            warning = f"Unknown MCP server: {name}, skipping"
            logger.warning(warning)
            log_connector_event("skipped", name, reason="unknown")
            warnings.append(warning)
            continue

        configs[name] = ConnectorConfig(
            command=descriptor.command,
            args=_args_for(descriptor, variant),
            env=dict(descriptor.env_template),
        )
        logger.debug(f"Configured MCP server: {descriptor.display_name}")

    return configs, warnings


def render_connector_file(configs: Mapping[str, ConnectorConfig]) -> str:
    """Serialize file-mode configuration as 2-space indented JSON."""
    document = {"mcpServers": {name: config.to_dict() for name, config in configs.items()}}
    return json.dumps(document, indent=2) + "\n"


def write_connector_file(path: Path, configs: Mapping[str, ConnectorConfig]) -> Path:
    """Write file-mode configuration to ``path``, replacing any previous file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_connector_file(configs), encoding="utf-8")
    return path


# ----------------------------------------------------------------------
# CLI delivery
# ----------------------------------------------------------------------

def _shell_reference(value: str) -> str:
    """'${SLACK_ACCESS_TOKEN}' -> '$SLACK_ACCESS_TOKEN'."""
    return PLACEHOLDER_PATTERN.sub(lambda match: "$" + match.group(1), value)


def build_cli_command(
    name: str,
    profile: TargetProfile,
    *,
    namespace: str = NAMESPACE,
    variant: str = LOCAL_VARIANT,
) -> ConnectorCommand:
    """Build the ``<cli> mcp add`` command registering one connector.

    Environment flags come before the ``--`` separator; the server command and
    its arguments come after it and are never re-flagged.
    """
    descriptor = CONNECTORS.get(name)
    if descriptor is None:
        raise UnknownConnectorError(name)
    check_variant(variant)

    registered_name = f"{namespace}-{name}"
    env_vars = [f"{key}={_shell_reference(value)}" for key, value in descriptor.env_template.items()]

    argv = [profile.cli_command, "mcp", "add", registered_name]
    for env_var in env_vars:
        argv.extend(["--env", env_var])
    argv.append("--")
    argv.append(descriptor.command)
    argv.extend(_args_for(descriptor, variant))

    return ConnectorCommand(name=name, registered_name=registered_name, argv=argv, env_vars=env_vars)


class ConnectorReconciler:
    """Register missing connectors with an assistant's CLI.

    Commands run one at a time through ``runner`` (``subprocess.run`` by
    default). A failure registering one connector is recorded and the batch
    moves on; there is no rollback of connectors registered earlier.
    """

    def __init__(
        self,
        profile: TargetProfile,
        root: Path | str,
        *,
        runner: Optional[Runner] = None,
        namespace: str = NAMESPACE,
    ):
        self.profile = profile
        self.root = Path(root).resolve()
        self.runner = runner or subprocess.run
        self.namespace = namespace

    def _environment(self) -> Dict[str, str]:
        env = dict(os.environ)
        if self.profile.home_env_var and self.profile.home_dir:
            home = self.root / self.profile.home_dir
            home.mkdir(parents=True, exist_ok=True)
            env[self.profile.home_env_var] = str(home)
        return env

    def _run(self, argv: List[str]) -> "subprocess.CompletedProcess[str]":
        return self.runner(
            argv,
            capture_output=True,
            text=True,
            check=True,
            cwd=str(self.root),
            env=self._environment(),
        )

    def _parse_listing(self, output: str) -> List[str]:
        prefix = f"{self.namespace}-"
        candidates: List[str] = []
        try:
            data: Any = json.loads(output)
        except ValueError:
            data = None

        if isinstance(data, list):
            candidates = [str(entry.get("name", "")) for entry in data if isinstance(entry, dict)]
        else:
            for line in output.splitlines():
                fields = line.split()
                if fields:
                    candidates.append(fields[0].rstrip(":"))

        names: List[str] = []
        for candidate in candidates:
            if candidate.startswith(prefix) and candidate[len(prefix):] not in names:
                names.append(candidate[len(prefix):])
        return names

    def registered(self) -> List[str]:
        """Connector names (without namespace) already registered with the CLI."""
        argv = [self.profile.cli_command, "mcp", "list"]
        result = self._run(argv)
        return self._parse_listing(result.stdout or "")

    def reconcile(self, names: Iterable[str], *, variant: str = LOCAL_VARIANT) -> ReconciliationReport:
        """Register every desired connector that is not registered yet.

        An unknown ``variant`` raises ``ConfigurationError`` before any CLI
        command runs.
        """
        check_variant(variant)
        report = ReconciliationReport(desired=list(dict.fromkeys(names)))
        if not report.desired:
            return report

        with log_operation("reconcile_connectors", profile_id=self.profile.id, desired=report.desired):
            try:
                report.registered = self.registered()
            except (subprocess.CalledProcessError, OSError) as e:
                warning = f"Could not list registered MCP servers: {e}"
                logger.warning(warning)
                report.warnings.append(warning)

            for name in report.desired:
                if name in report.registered:
                    logger.debug(f"MCP server already registered: {self.namespace}-{name}")
                    continue

                try:
                    command = build_cli_command(name, self.profile, namespace=self.namespace, variant=variant)
                except UnknownConnectorError as e:
                    logger.warning(f"{e}, skipping")
                    log_connector_event("skipped", name, reason="unknown")
                    report.warnings.append(f"{e}, skipping")
                    continue

                report.attempted.append(name)
                try:
                    self._register(command)
                except ConnectorRegistrationError as e:
                    logger.error(str(e))
                    log_connector_event("failed", name, reason=e.reason)
                    report.failed[name] = e.reason
                    continue

                report.succeeded.append(name)
                log_connector_event("registered", name, registered_name=command.registered_name)
                logger.info(f"Registered MCP server: {command.registered_name}")

        return report

    def _register(self, command: ConnectorCommand) -> None:
        try:
            self._run(command.argv)
        except subprocess.CalledProcessError as e:
            reason = (e.stderr or "").strip() or f"exit status {e.returncode}"
            raise ConnectorRegistrationError(command.name, reason) from e
        except OSError as e:
            raise ConnectorRegistrationError(command.name, str(e)) from e
