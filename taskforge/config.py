"""Project configuration persistence and validation."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .capabilities import get_capability, required_capabilities
from .errors import ConfigurationError
from .forge_logging import log_error_with_context, log_operation, observability_hooks
from .models import ProjectConfiguration
from .profiles import DEFAULT_PROFILE_ID, get_profile

logger = logging.getLogger("taskforge.config")

CONFIG_DIR = ".taskforge"
CONFIG_FILE = "config.json"
PROJECT_ROOT_ENV = "TASKFORGE_PROJECT_ROOT"


def config_path(root: Path | str) -> Path:
    """Path of the configuration file under ``root``."""
    return Path(root) / CONFIG_DIR / CONFIG_FILE


def configuration_exists(root: Path | str) -> bool:
    """Check if ``root`` holds a saved configuration."""
    return config_path(root).is_file()


def validate_role_assignments(role_assignments: Mapping[str, str]) -> None:
    """Raise ``ConfigurationError`` for any unknown role or disallowed integration."""
    for role, integration_id in role_assignments.items():
        capability = get_capability(role)
        if capability is None:
            raise ConfigurationError(f"Unknown subagent role: {role}", field="roleAssignments")
        if not capability.allows(integration_id):
            allowed = ", ".join(capability.integration_ids())
            raise ConfigurationError(
                f"Integration '{integration_id}' is not available for role '{role}'. Expected one of: {allowed}",
                field="roleAssignments",
            )


def validate_configuration(configuration: ProjectConfiguration) -> None:
    """Validate profile id and role assignments of ``configuration``."""
    get_profile(configuration.target_profile_id)
    validate_role_assignments(configuration.role_assignments)


def apply_required_defaults(configuration: ProjectConfiguration) -> ProjectConfiguration:
    """Fill unassigned required roles that have an unambiguous integration.

    A required role with a single integration gets it; otherwise its
    ``default_integration`` is used when one is declared. Returns the same
    object.
    """
    for capability in required_capabilities():
        if capability.role in configuration.role_assignments:
            continue
        if len(capability.integrations) == 1:
            configuration.role_assignments[capability.role] = capability.integrations[0].id
        elif capability.default_integration:
            configuration.role_assignments[capability.role] = capability.default_integration
    return configuration


def create_default_configuration(
    project_name: str,
    target_profile_id: str = DEFAULT_PROFILE_ID,
    role_assignments: Optional[Dict[str, str]] = None,
) -> ProjectConfiguration:
    """Build a new, validated configuration with required roles filled in."""
    configuration = ProjectConfiguration(
        project_name=project_name,
        target_profile_id=target_profile_id,
        role_assignments=dict(role_assignments or {}),
    )
    apply_required_defaults(configuration)
    validate_configuration(configuration)
    return configuration


def _check_persisted_types(data: Dict[str, Any], path: Path) -> None:
    for key in ("projectName", "targetProfileId", "schemaVersion"):
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise ConfigurationError(f"Configuration at {path}: '{key}' must be a string", field=key)

    assignments = data.get("roleAssignments")
    if assignments is None:
        return
    if not isinstance(assignments, dict):
        raise ConfigurationError(
            f"Configuration at {path}: 'roleAssignments' must be an object", field="roleAssignments"
        )
    for role, integration_id in assignments.items():
        if not isinstance(integration_id, str):
            raise ConfigurationError(
                f"Configuration at {path}: integration for role '{role}' must be a string",
                field="roleAssignments",
            )


def load_configuration(root: Path | str) -> ProjectConfiguration:
    """Load and validate the configuration saved under ``root``."""
    path = config_path(root)
    if not path.is_file():
        raise ConfigurationError(f"No configuration found at {path}")

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        log_error_with_context(e, {"operation": "load_configuration", "path": str(path)})
        raise ConfigurationError(f"Configuration at {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration at {path} must be a JSON object")
    _check_persisted_types(data, path)

    configuration = ProjectConfiguration.from_dict(data, default_profile_id=DEFAULT_PROFILE_ID)
    validate_configuration(configuration)
    logger.debug(f"Loaded configuration for profile {configuration.target_profile_id} from {path}")
    return configuration


def save_configuration(root: Path | str, configuration: ProjectConfiguration) -> Path:
    """Validate and write ``configuration`` under ``root``."""
    validate_configuration(configuration)
    path = config_path(root)

    with log_operation("save_configuration", path=str(path)):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(configuration.to_dict(), indent=2) + "\n", encoding="utf-8")

    logger.info(f"Configuration saved to {path}")
    observability_hooks.log_event(
        "configuration_saved",
        path=str(path),
        profile_id=configuration.target_profile_id,
        roles=sorted(configuration.role_assignments),
    )
    return path
