"""MCP server exposing taskforge configuration and generation tools."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from taskforge.config import CONFIG_DIR, PROJECT_ROOT_ENV
from taskforge.forge_logging import LOG_LEVEL_ENV, setup_logging
from taskforge.models import LOCAL_CONTEXT, LOCAL_VARIANT
from taskforge.workflow import ForgeManager

mcp = FastMCP("taskforge")


PROJECT_MARKER_DIRECTORIES = (CONFIG_DIR,)


def _candidate_bases() -> List[Path]:
    cwd = Path.cwd().resolve()
    bases: List[Path] = [cwd]
    bases.extend(cwd.parents)
    seen: set[Path] = set()
    ordered: List[Path] = []
    for base in bases:
        if base not in seen:
            seen.add(base)
            ordered.append(base)
    return ordered


def _locate_project_root() -> Optional[Path]:
    for base in _candidate_bases():
        for marker in PROJECT_MARKER_DIRECTORIES:
            if (base / marker).is_dir():
                return base
    return None


def _resolve_root(root: Optional[str], *, create: bool = False) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = os.getenv(PROJECT_ROOT_ENV)
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable {PROJECT_ROOT_ENV} points to '{env_root}', which does not exist."
            )
        return env_path

    detected_root = _locate_project_root()
    if detected_root:
        return detected_root

    if create:
        return Path.cwd().resolve()

    raise ValueError(
        "Unable to determine project root automatically. Provide the 'root' argument when calling the tool "
        f"or set the {PROJECT_ROOT_ENV} environment variable."
    )


def _manager(root: Optional[str], *, create: bool = False) -> ForgeManager:
    return ForgeManager(_resolve_root(root, create=create))


def _manager_optional(root: Optional[str]) -> Optional[ForgeManager]:
    try:
        return _manager(root)
    except ValueError:
        return None


@mcp.tool()
def list_capabilities(root: Optional[str] = None) -> Dict[str, Any]:
    """List subagent roles, the integrations each accepts, and the task catalog."""

    return ForgeManager(_resolve_root(root, create=True)).list_capabilities()


@mcp.tool()
def list_profiles(root: Optional[str] = None) -> Dict[str, Any]:
    """List supported target assistants and their output conventions."""

    return ForgeManager(_resolve_root(root, create=True)).list_profiles()


@mcp.resource("taskforge://capabilities")
def resource_capabilities() -> str:
    """Resource view of roles and their integrations."""

    manager = _manager_optional(None)
    if manager is None:
        manager = ForgeManager(Path.cwd())

    lines = ["taskforge Subagent Roles"]
    for capability in manager.list_capabilities()["capabilities"]:
        marker = " (required)" if capability["required"] else ""
        integrations = ", ".join(integration["id"] for integration in capability["integrations"])
        lines.append("")
        lines.append(f"- {capability['role']}{marker}: {capability['description']}")
        lines.append(f"  Integrations: {integrations}")
    return "\n".join(lines)


@mcp.tool()
def get_configuration(root: Optional[str] = None) -> Dict[str, Any]:
    """Retrieve the saved project configuration, if any."""

    return _manager(root).get_configuration()


@mcp.tool()
def configure_project(
    project_name: str,
    target_profile_id: Optional[str] = None,
    role_assignments: Optional[Dict[str, str]] = None,
    regenerate: bool = True,
    context: str = LOCAL_CONTEXT,
    variant: str = LOCAL_VARIANT,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """STEP 1: Save the project configuration and regenerate all files.

    `role_assignments` maps subagent roles to integrations, for example
    {"issue-tracker": "linear", "team-communicator": "slack"}. Required roles
    are filled in automatically."""

    return _manager(root, create=True).configure_project(
        project_name,
        target_profile_id,
        role_assignments,
        regenerate=regenerate,
        context=context,
        variant=variant,
    )


@mcp.tool()
def regenerate_artifacts(
    context: str = LOCAL_CONTEXT,
    variant: str = LOCAL_VARIANT,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """STEP 2: Regenerate task files, subagent files and MCP configuration.

    Every previously generated file in the target directories is replaced."""

    return _manager(root).regenerate(context=context, variant=variant)


@mcp.tool()
def preview_task(slug: str, context: str = LOCAL_CONTEXT, root: Optional[str] = None) -> Dict[str, Any]:
    """Render one task for the current configuration without writing files."""

    return _manager(root).preview_task(slug, context=context)


@mcp.tool()
def reconcile_connectors(variant: str = LOCAL_VARIANT, root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 3: Register missing MCP servers with the assistant CLI (CLI-delivery profiles only)."""

    return _manager(root).reconcile_connectors(variant=variant)


@mcp.tool()
def check_secrets(root: Optional[str] = None) -> Dict[str, Any]:
    """Report MCP server secrets missing from the environment and .env file."""

    return _manager(root).check_secrets()


if __name__ == "__main__":
    setup_logging(os.getenv(LOG_LEVEL_ENV))
    mcp.run(transport="stdio")
