"""Generation orchestrator.

Drives one complete regeneration pass for a project: task files, capability
files, connector configuration and the ``.env.example`` template. Generated
directories are owned by the generator; every pass replaces their contents.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from .agent_templates import build_capability
from .catalog import get_task, visible_tasks
from .config import apply_required_defaults, validate_configuration
from .connectors import build_connector_config, check_variant, connector_names_for, write_connector_file
from .environment import write_env_example
from .errors import ConfigurationError, TaskforgeError, TemplateMissingError
from .formatter import format_artifact
from .forge_logging import (
    log_capability_generated,
    log_error_with_context,
    log_operation,
    log_performance,
    log_regeneration,
    log_task_degraded,
    log_task_generated,
)
from .models import (
    EXECUTION_CONTEXTS,
    LOCAL_CONTEXT,
    LOCAL_VARIANT,
    GenerationReport,
    ProjectConfiguration,
    TargetProfile,
)
from .profiles import FILE_DELIVERY, get_profile
from .resolver import build_task_content

logger = logging.getLogger("taskforge.generator")


def _check_context(context: str) -> None:
    if context not in EXECUTION_CONTEXTS:
        raise ConfigurationError(
            f"Unknown execution context '{context}'. Expected one of: {', '.join(EXECUTION_CONTEXTS)}",
            field="context",
        )


class ForgeGenerator:
    """Write the derived file tree for a project root."""

    def __init__(self, root: Path | str):
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise ConfigurationError(f"Project root '{root}' is not a directory")

    # ------------------------------------------------------------------
    # Directory management
    # ------------------------------------------------------------------

    def _clear_directory(self, directory: Path, extension: str) -> List[Path]:
        """Remove previously generated files; other files are left alone."""
        removed: List[Path] = []
        if not directory.is_dir():
            return removed
        for path in sorted(directory.glob(f"*{extension}")):
            if path.is_file():
                path.unlink()
                removed.append(path)
        if removed:
            logger.debug(f"Removed {len(removed)} generated files from {directory}")
        return removed

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def render_task(
        self,
        configuration: ProjectConfiguration,
        slug: str,
        *,
        context: str = LOCAL_CONTEXT,
        profile: Optional[TargetProfile] = None,
    ) -> str:
        """Render one task's file text without writing it."""
        _check_context(context)
        template = get_task(slug)
        if template is None:
            raise ConfigurationError(f"Unknown task: {slug}", field="slug")
        profile = profile or get_profile(configuration.target_profile_id)

        content, _ = build_task_content(
            template,
            configuration.role_assignments,
            profile,
            inline_team_communication=context == LOCAL_CONTEXT,
        )
        return format_artifact(template.metadata.header_fields(), content, structured=profile.task_headers)

    def generate_tasks(
        self,
        configuration: ProjectConfiguration,
        profile: TargetProfile,
        report: GenerationReport,
    ) -> None:
        task_dir = self.root / profile.task_dir
        self._clear_directory(task_dir, profile.file_extension)
        task_dir.mkdir(parents=True, exist_ok=True)

        for template in visible_tasks(report.context):
            output_slug = template.output_slug(report.context)
            path = task_dir / f"{output_slug}{profile.file_extension}"
            try:
                content, missing = build_task_content(
                    template,
                    configuration.role_assignments,
                    profile,
                    inline_team_communication=report.context == LOCAL_CONTEXT,
                )
                text = format_artifact(template.metadata.header_fields(), content, structured=profile.task_headers)
                path.write_text(text, encoding="utf-8")
            except (TaskforgeError, OSError) as e:
                warning = f"Failed to generate task '{template.slug}': {e}"
                log_error_with_context(e, {"operation": "generate_task", "slug": template.slug, "path": str(path)})
                report.add_warning(warning)
                continue

            if missing is not None:
                logger.warning(f"{missing.message}; writing base content")
                log_task_degraded(template.slug, missing.role)
                report.add_warning(missing.message)
            report.task_files.append(path)
            log_task_generated(template.slug, profile.id, path)

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def generate_capabilities(
        self,
        configuration: ProjectConfiguration,
        profile: TargetProfile,
        report: GenerationReport,
    ) -> None:
        capability_dir = self.root / profile.capability_dir
        self._clear_directory(capability_dir, profile.file_extension)
        capability_dir.mkdir(parents=True, exist_ok=True)

        for role, integration_id in configuration.role_assignments.items():
            try:
                capability = build_capability(role, integration_id)
            except TemplateMissingError as e:
                logger.warning(str(e))
                report.add_warning(str(e))
                continue

            path = self.root / profile.capability_path(role)
            try:
                text = format_artifact(
                    capability.header_fields(), capability.content, structured=profile.capability_headers
                )
                path.write_text(text, encoding="utf-8")
            except (TaskforgeError, OSError) as e:
                log_error_with_context(e, {"operation": "generate_capability", "role": role, "path": str(path)})
                report.add_warning(f"Failed to generate subagent '{role}': {e}")
                continue

            report.capability_files.append(path)
            log_capability_generated(role, integration_id, path)

    # ------------------------------------------------------------------
    # Connectors
    # ------------------------------------------------------------------

    def generate_connectors(
        self,
        configuration: ProjectConfiguration,
        profile: TargetProfile,
        report: GenerationReport,
        *,
        variant: str = LOCAL_VARIANT,
    ) -> None:
        names = connector_names_for(configuration.role_assignments)
        report.connector_names = names

        if profile.connector_delivery == FILE_DELIVERY and profile.connector_config_path:
            configs, warnings = build_connector_config(names, variant)
            for warning in warnings:
                report.add_warning(warning)
            report.connector_config_path = write_connector_file(self.root / profile.connector_config_path, configs)
        else:
            logger.debug(f"{profile.name} registers MCP servers through its CLI; no connector file written")

        report.env_example_path = write_env_example(self.root, names, project_name=configuration.project_name)

    # ------------------------------------------------------------------
    # Full pass
    # ------------------------------------------------------------------

    @log_performance("regenerate")
    def regenerate(
        self,
        configuration: ProjectConfiguration,
        *,
        context: str = LOCAL_CONTEXT,
        variant: str = LOCAL_VARIANT,
    ) -> GenerationReport:
        """Regenerate every derived file for ``configuration``.

        Structural problems (unknown profile, role, integration, context or
        variant) raise ``ConfigurationError`` before anything is written.
        Per-item problems become warnings on the returned report.
        """
        _check_context(context)
        check_variant(variant)
        apply_required_defaults(configuration)
        validate_configuration(configuration)
        profile = get_profile(configuration.target_profile_id)
        report = GenerationReport(profile_id=profile.id, context=context)

        try:
            with log_operation("regenerate", profile_id=profile.id, context=context, variant=variant):
                self.generate_tasks(configuration, profile, report)
                self.generate_capabilities(configuration, profile, report)
                self.generate_connectors(configuration, profile, report, variant=variant)
        except Exception as e:
            log_error_with_context(e, {
                "operation": "regenerate",
                "root": str(self.root),
                "profile_id": profile.id,
            })
            raise

        log_regeneration(
            profile.id,
            len(report.task_files),
            len(report.capability_files),
            len(report.warnings),
        )
        logger.info(
            f"Generated {len(report.task_files)} tasks and {len(report.capability_files)} "
            f"capabilities for {profile.name}"
        )
        return report
