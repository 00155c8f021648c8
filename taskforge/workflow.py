"""Workflow management for taskforge.

``ForgeManager`` wraps configuration, generation and connector
reconciliation behind methods that always return plain dictionaries, so the
MCP tools can hand results straight back to the assistant. Failures come back
as ``error``/``suggestion`` entries instead of exceptions.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .capabilities import all_capabilities
from .catalog import all_tasks
from .config import (
    config_path,
    configuration_exists,
    create_default_configuration,
    load_configuration,
    save_configuration,
)
from .connectors import ConnectorReconciler, Runner, connector_names_for
from .environment import find_missing_secrets, load_environment, required_secrets
from .errors import ConfigurationError, TaskforgeError
from .forge_logging import log_error_with_context, log_performance, observability_hooks
from .generator import ForgeGenerator
from .models import LOCAL_CONTEXT, LOCAL_VARIANT
from .profiles import CLI_DELIVERY, PROFILES, get_profile

logger = logging.getLogger("taskforge.workflow")


def _failure(e: Exception, suggestion: str, **fields: Any) -> Dict[str, Any]:
    return {
        "error": str(e),
        "suggestion": suggestion,
        "message": f"Error: {e}",
        **fields,
    }


class ForgeManager:
    """Run taskforge operations for one project root."""

    def __init__(self, root: Path | str):
        self.root = Path(root).resolve()
        self.generator = ForgeGenerator(self.root)

    # ------------------------------------------------------------------
    # Registries
    # ------------------------------------------------------------------

    def list_capabilities(self) -> Dict[str, Any]:
        """Describe every role and the integrations it accepts."""
        capabilities = [capability.to_dict() for capability in all_capabilities()]
        return {
            "capabilities": capabilities,
            "tasks": [{"slug": task.slug, "title": task.title} for task in all_tasks()],
            "message": f"{len(capabilities)} subagent roles available",
        }

    def list_profiles(self) -> Dict[str, Any]:
        """Describe every supported target profile."""
        return {
            "profiles": [profile.to_dict() for profile in PROFILES.values()],
            "message": f"{len(PROFILES)} target profiles available",
        }

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_configuration(self) -> Dict[str, Any]:
        """Return the saved configuration, if any."""
        path = config_path(self.root)
        if not configuration_exists(self.root):
            return {
                "config_path": str(path),
                "exists": False,
                "configuration": None,
                "message": "No configuration yet. Use configure_project to create one.",
                "next_suggested_step": "configure_project",
            }
        try:
            configuration = load_configuration(self.root)
        except ConfigurationError as e:
            return _failure(
                e,
                "Fix or delete the configuration file and run configure_project again",
                config_path=str(path),
                exists=True,
                configuration=None,
            )
        return {
            "config_path": str(path),
            "exists": True,
            "configuration": configuration.to_dict(),
            "message": "Configuration found",
        }

    @log_performance("configure_project")
    def configure_project(
        self,
        project_name: str,
        target_profile_id: Optional[str] = None,
        role_assignments: Optional[Dict[str, str]] = None,
        *,
        regenerate: bool = True,
        context: str = LOCAL_CONTEXT,
        variant: str = LOCAL_VARIANT,
    ) -> Dict[str, Any]:
        """Create or replace the project configuration, then regenerate."""
        try:
            if not project_name or not project_name.strip():
                raise ConfigurationError("Project name cannot be empty", field="projectName")

            if target_profile_id is None and configuration_exists(self.root):
                target_profile_id = load_configuration(self.root).target_profile_id

            kwargs: Dict[str, Any] = {"role_assignments": role_assignments}
            if target_profile_id:
                kwargs["target_profile_id"] = target_profile_id
            configuration = create_default_configuration(project_name.strip(), **kwargs)
            path = save_configuration(self.root, configuration)
        except (TaskforgeError, OSError) as e:
            logger.error(f"Failed to configure project: {e}")
            log_error_with_context(e, {"operation": "configure_project", "root": str(self.root)})
            return _failure(
                e,
                "Use list_capabilities and list_profiles to check role, integration and profile names",
                config_path=None,
            )

        result: Dict[str, Any] = {
            "config_path": str(path),
            "configuration": configuration.to_dict(),
            "message": f"Configuration saved to {path}",
        }
        if regenerate:
            result["generation"] = self.regenerate(context=context, variant=variant)
        else:
            result["next_suggested_step"] = "regenerate_artifacts"
        return result

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def regenerate(self, *, context: str = LOCAL_CONTEXT, variant: str = LOCAL_VARIANT) -> Dict[str, Any]:
        """Regenerate all derived files from the saved configuration."""
        try:
            configuration = load_configuration(self.root)
            report = self.generator.regenerate(configuration, context=context, variant=variant)
        except (TaskforgeError, OSError) as e:
            logger.error(f"Regeneration failed: {e}")
            return _failure(e, "Run configure_project first, or fix the reported configuration problem")

        result = report.to_dict()
        result["message"] = (
            f"Generated {len(report.task_files)} task files and {len(report.capability_files)} "
            f"capability files with {len(report.warnings)} warnings"
        )
        if get_profile(report.profile_id).connector_delivery == CLI_DELIVERY and report.connector_names:
            result["next_suggested_step"] = "reconcile_connectors"
        return result

    def preview_task(self, slug: str, *, context: str = LOCAL_CONTEXT) -> Dict[str, Any]:
        """Render one task for the saved configuration without writing it."""
        try:
            configuration = load_configuration(self.root)
            content = self.generator.render_task(configuration, slug, context=context)
        except TaskforgeError as e:
            return _failure(e, "Use list_capabilities to see available task slugs", slug=slug)
        return {"slug": slug, "context": context, "content": content}

    # ------------------------------------------------------------------
    # Connectors
    # ------------------------------------------------------------------

    def reconcile_connectors(self, *, variant: str = LOCAL_VARIANT, runner: Optional[Runner] = None) -> Dict[str, Any]:
        """Register missing MCP servers for profiles that use CLI delivery."""
        try:
            configuration = load_configuration(self.root)
            profile = get_profile(configuration.target_profile_id)
        except TaskforgeError as e:
            return _failure(e, "Run configure_project first")

        if profile.connector_delivery != CLI_DELIVERY:
            return {
                "skipped": True,
                "message": f"{profile.name} reads MCP servers from {profile.connector_config_path}; nothing to register",
            }

        names = connector_names_for(configuration.role_assignments)
        try:
            report = ConnectorReconciler(profile, self.root, runner=runner).reconcile(names, variant=variant)
        except TaskforgeError as e:
            return _failure(e, "Check the deployment variant")

        observability_hooks.log_event(
            "connectors_reconciled",
            profile_id=profile.id,
            succeeded=len(report.succeeded),
            failed=len(report.failed),
        )
        result = report.to_dict()
        result["ok"] = report.ok
        result["message"] = (
            f"Registered {len(report.succeeded)} of {len(report.attempted)} missing MCP servers"
            if report.attempted
            else "All MCP servers already registered"
        )
        return result

    def check_secrets(self) -> Dict[str, Any]:
        """Report connector secrets missing from the environment and ``.env``."""
        try:
            configuration = load_configuration(self.root)
        except TaskforgeError as e:
            return _failure(e, "Run configure_project first")

        names = connector_names_for(configuration.role_assignments)
        missing = find_missing_secrets(load_environment(self.root), names)
        return {
            "required": required_secrets(names),
            "missing": missing,
            "ok": not missing,
            "message": "All secrets present" if not missing else f"{len(missing)} secrets missing; see .env.example",
        }
