"""Data models for taskforge configuration generation.

This module contains the core data structures used throughout taskforge:
the static registry records (capabilities, integrations, target profiles,
connector descriptors, task templates), the persisted project configuration,
and the result objects produced by resolution, generation and connector
reconciliation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

# Execution contexts a task catalog can be generated for
LOCAL_CONTEXT = "local"
CLOUD_CONTEXT = "cloud"
EXECUTION_CONTEXTS = (LOCAL_CONTEXT, CLOUD_CONTEXT)

# Deployment variants for connector configuration
LOCAL_VARIANT = "local"
CONTAINERIZED_VARIANT = "containerized"
DEPLOYMENT_VARIANTS = (LOCAL_VARIANT, CONTAINERIZED_VARIANT)

AUTH_KINDS = ("oauth", "local", "custom")

SCHEMA_VERSION = "1.0.0"


@dataclass(frozen=True, slots=True)
class Integration:
    """A concrete provider implementation of a capability."""

    id: str
    name: str
    provider: str
    auth_kind: str = "oauth"
    required_connector: Optional[str] = None  # e.g. 'mcp__slack__*'

    @property
    def connector_name(self) -> Optional[str]:
        """Connector named by the ``mcp__<name>__*`` wildcard, if any."""
        if not self.required_connector:
            return None
        parts = self.required_connector.split("__")
        if len(parts) < 3 or not parts[1]:
            return None
        return parts[1]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "auth_kind": self.auth_kind,
            "required_connector": self.required_connector,
        }


@dataclass(frozen=True, slots=True)
class Capability:
    """A named functional slot (role) a project can fill."""

    role: str
    display_name: str
    description: str
    integrations: Tuple[Integration, ...]
    required: bool = False
    default_integration: Optional[str] = None
    model: str = "sonnet"
    color: str = "blue"
    delegation_hint: str = ""

    def integration_ids(self) -> List[str]:
        """Get ids of the integrations allowed for this role."""
        return [integration.id for integration in self.integrations]

    def allows(self, integration_id: str) -> bool:
        """Check if an integration is legal for this role."""
        return integration_id in self.integration_ids()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "role": self.role,
            "display_name": self.display_name,
            "description": self.description,
            "required": self.required,
            "default_integration": self.default_integration,
            "integrations": [integration.to_dict() for integration in self.integrations],
        }


@dataclass(slots=True)
class ProjectConfiguration:
    """Persisted project configuration (``.taskforge/config.json``)."""

    project_name: str
    target_profile_id: str
    role_assignments: Dict[str, str] = field(default_factory=dict)
    schema_version: str = SCHEMA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted dictionary representation."""
        return {
            "schemaVersion": self.schema_version,
            "targetProfileId": self.target_profile_id,
            "projectName": self.project_name,
            "roleAssignments": dict(self.role_assignments),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, default_profile_id: str) -> "ProjectConfiguration":
        """Create from the persisted dictionary representation."""
        return cls(
            project_name=data.get("projectName", ""),
            target_profile_id=data.get("targetProfileId") or default_profile_id,
            role_assignments=dict(data.get("roleAssignments") or {}),
            schema_version=data.get("schemaVersion", SCHEMA_VERSION),
        )


@dataclass(frozen=True, slots=True)
class TaskMetadata:
    """Header metadata for a task file."""

    description: str
    argument_hint: Optional[str] = None
    allowed_tools: Optional[Tuple[str, ...]] = None

    def header_fields(self) -> Dict[str, Any]:
        """Header key/value pairs; unset fields are omitted by the formatter."""
        return {
            "description": self.description,
            "argument-hint": self.argument_hint,
            "allowed-tools": list(self.allowed_tools) if self.allowed_tools else None,
        }


@dataclass(frozen=True, slots=True)
class TaskTemplate:
    """Static definition of one task in the catalog."""

    slug: str
    title: str
    metadata: TaskMetadata
    base_content: str
    visibility: Mapping[str, Union[bool, str]] = field(default_factory=dict)

    def output_slug(self, context: str) -> Optional[str]:
        """File slug for the context, or None when the task is excluded there."""
        rule = self.visibility.get(context, True)
        if rule is False:
            return None
        if isinstance(rule, str):
            return rule
        return self.slug


@dataclass(frozen=True, slots=True)
class TargetProfile:
    """Output conventions of one supported AI coding assistant."""

    id: str
    name: str
    cli_command: str
    task_dir: str
    capability_dir: str
    task_headers: bool
    capability_headers: bool
    connector_delivery: str  # 'file' or 'cli'
    invocation_style: str  # 'delegate' or 'external'
    delegate_template: str
    external_template: str
    inline_template: str
    connector_config_path: Optional[str] = None
    home_env_var: Optional[str] = None
    home_dir: Optional[str] = None
    file_extension: str = ".md"

    def capability_path(self, role: str) -> str:
        """Project-relative path of a role's capability file."""
        return f"{self.capability_dir}/{role}{self.file_extension}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "cli_command": self.cli_command,
            "task_dir": self.task_dir,
            "capability_dir": self.capability_dir,
            "task_headers": self.task_headers,
            "capability_headers": self.capability_headers,
            "connector_delivery": self.connector_delivery,
            "connector_config_path": self.connector_config_path,
            "invocation_style": self.invocation_style,
        }


@dataclass(frozen=True, slots=True)
class ConnectorDescriptor:
    """Static description of an external tool-connection (MCP) server."""

    name: str
    display_name: str
    command: str
    args: Tuple[str, ...] = ()
    env_template: Mapping[str, str] = field(default_factory=dict)
    variant_extra_args: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    description: str = ""


@dataclass(slots=True)
class ConnectorConfig:
    """One connector entry of a file-mode connector configuration."""

    command: str
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {"command": self.command, "args": list(self.args), "env": dict(self.env)}


@dataclass(slots=True)
class ConnectorCommand:
    """A CLI registration command for one connector."""

    name: str
    registered_name: str
    argv: List[str]
    env_vars: List[str] = field(default_factory=list)

    @property
    def separator_index(self) -> int:
        return self.argv.index("--")


@dataclass(frozen=True, slots=True)
class ResolvedTask:
    """Pass-1 result: conditional blocks resolved for the configuration."""

    slug: str
    content: str


@dataclass(frozen=True, slots=True)
class MissingCapability:
    """Pass-1 result: the task needs a mandatory role that is not configured."""

    slug: str
    role: str

    @property
    def message(self) -> str:
        return f'Task "{self.slug}" requires subagent "{self.role}" to be configured'


@dataclass(slots=True)
class GenerationReport:
    """Summary of one regeneration pass."""

    profile_id: str
    context: str
    task_files: List[Path] = field(default_factory=list)
    capability_files: List[Path] = field(default_factory=list)
    connector_names: List[str] = field(default_factory=list)
    connector_config_path: Optional[Path] = None
    env_example_path: Optional[Path] = None
    warnings: List[str] = field(default_factory=list)
    completed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def add_warning(self, warning: str) -> None:
        """Record a non-fatal problem found during the pass."""
        self.warnings.append(warning)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "profile_id": self.profile_id,
            "context": self.context,
            "task_files": [str(path) for path in self.task_files],
            "capability_files": [str(path) for path in self.capability_files],
            "connector_names": list(self.connector_names),
            "connector_config_path": str(self.connector_config_path) if self.connector_config_path else None,
            "env_example_path": str(self.env_example_path) if self.env_example_path else None,
            "warnings": list(self.warnings),
            "completed_at": self.completed_at,
        }


@dataclass(slots=True)
class ReconciliationReport:
    """Outcome of reconciling desired connectors against registered ones."""

    desired: List[str] = field(default_factory=list)
    registered: List[str] = field(default_factory=list)
    attempted: List[str] = field(default_factory=list)
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "desired": list(self.desired),
            "registered": list(self.registered),
            "attempted": list(self.attempted),
            "succeeded": list(self.succeeded),
            "failed": dict(self.failed),
            "warnings": list(self.warnings),
        }
