"""Capability registry.

Static catalog of the roles a project can enable and the integrations each
role accepts. The registry is built once at import time and exposed through
read-only mappings; lookups of unknown keys return ``None`` and callers decide
whether that is fatal.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import List, Mapping, Optional

from .models import Capability, Integration


def _integration(
    id: str,
    name: str,
    *,
    auth_kind: str = "oauth",
    connector: Optional[str] = None,
    has_connector: bool = True,
) -> Integration:
    provider = connector or id
    return Integration(
        id=id,
        name=name,
        provider=provider,
        auth_kind=auth_kind,
        required_connector=f"mcp__{provider}__*" if has_connector else None,
    )


INTEGRATIONS: Mapping[str, Integration] = MappingProxyType({
    integration.id: integration
    for integration in (
        _integration("playwright", "Playwright", auth_kind="local"),
        _integration("slack", "Slack"),
        _integration("teams", "Microsoft Teams"),
        _integration("email", "Email (Resend)", auth_kind="custom", connector="resend"),
        _integration("local", "Local (terminal output)", auth_kind="local", has_connector=False),
        _integration("linear", "Linear"),
        _integration("jira", "Jira Cloud"),
        _integration("jira-server", "Jira Server (On-Prem)", auth_kind="custom"),
        _integration("azure-devops", "Azure DevOps", auth_kind="custom"),
        _integration("notion", "Notion"),
        _integration("asana", "Asana (CLI)", auth_kind="custom", has_connector=False),
        _integration("confluence", "Confluence"),
        _integration("github", "GitHub"),
    )
})


def _integrations(*ids: str):
    return tuple(INTEGRATIONS[integration_id] for integration_id in ids)


CAPABILITIES: Mapping[str, Capability] = MappingProxyType({
    capability.role: capability
    for capability in (
        Capability(
            role="browser-automation",
            display_name="Browser Automation",
            description="Execute test cases in a real browser and capture evidence",
            integrations=_integrations("playwright"),
            required=True,
            color="green",
            delegation_hint=(
                "The browser-automation agent will handle all browser automation. "
                "DO NOT execute Playwright MCP tools directly.\n"
                "Include the test case path and any specific instructions in the prompt."
            ),
        ),
        Capability(
            role="test-code-generator",
            display_name="Test Code Generator",
            description="Generate automated Playwright test scripts and Page Objects",
            integrations=_integrations("playwright"),
            required=True,
            color="purple",
            delegation_hint=(
                "The agent will create automated tests and page objects. "
                "Include test case files in the prompt."
            ),
        ),
        Capability(
            role="test-debugger-fixer",
            display_name="Test Debugger & Fixer",
            description="Debug and fix failing automated tests",
            integrations=_integrations("playwright"),
            required=True,
            color="yellow",
            delegation_hint=(
                "The agent will analyze failures and fix test code. "
                "Include error details and test path in the prompt."
            ),
        ),
        Capability(
            role="team-communicator",
            display_name="Team Communicator",
            description="Send notifications and updates to your team",
            integrations=_integrations("slack", "teams", "email", "local"),
            model="haiku",
            color="blue",
            delegation_hint=(
                "The agent will post to the team channel. "
                "Include message content and context in the prompt."
            ),
        ),
        Capability(
            role="issue-tracker",
            display_name="Issue Tracker",
            description="Create and track bugs and issues",
            integrations=_integrations("linear", "jira", "jira-server", "azure-devops", "notion", "asana"),
            color="red",
            delegation_hint=(
                "The agent will interact with the issue tracker. "
                "Include bug details and classification in the prompt."
            ),
        ),
        Capability(
            role="documentation-researcher",
            display_name="Documentation Researcher",
            description="Search and retrieve information from your documentation",
            integrations=_integrations("notion", "confluence"),
            color="cyan",
            delegation_hint=(
                "The agent will search the documentation workspace. "
                "Include search query and context in the prompt."
            ),
        ),
        Capability(
            role="changelog-historian",
            display_name="Changelog Historian",
            description="Retrieve pull request and commit history for changed areas",
            integrations=_integrations("github"),
            color="gray",
            delegation_hint=(
                "The agent will query GitHub for PRs and commits. "
                "Include repo context and date range in the prompt."
            ),
        ),
    )
})


def all_capabilities() -> List[Capability]:
    """Get all capabilities in catalog order."""
    return list(CAPABILITIES.values())


def get_capability(role: str) -> Optional[Capability]:
    """Get a capability by role."""
    return CAPABILITIES.get(role)


def get_integration(integration_id: str) -> Optional[Integration]:
    """Get an integration by id."""
    return INTEGRATIONS.get(integration_id)


def required_capabilities() -> List[Capability]:
    """Get capabilities that every project must fill."""
    return [capability for capability in CAPABILITIES.values() if capability.required]


def optional_capabilities() -> List[Capability]:
    """Get capabilities a project may leave unconfigured."""
    return [capability for capability in CAPABILITIES.values() if not capability.required]


def integration_display_name(integration_id: str) -> str:
    """Map an integration id to its display name."""
    integration = INTEGRATIONS.get(integration_id)
    return integration.name if integration else integration_id


def connector_for_integration(integration_id: str) -> Optional[str]:
    """Connector name an integration needs, or None for connector-less integrations."""
    integration = INTEGRATIONS.get(integration_id)
    if integration is None:
        return None
    return integration.connector_name
