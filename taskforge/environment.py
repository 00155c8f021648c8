"""Environment variables used by connectors.

Connector descriptors reference secrets as ``${VAR}`` placeholders. This
module lists those variables, checks a project's ``.env`` for them and
renders the ``.env.example`` template written next to the generated files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from dotenv import dotenv_values

from .connectors import PLACEHOLDER_PATTERN, get_connector

logger = logging.getLogger("taskforge.environment")

ENV_FILE = ".env"
ENV_EXAMPLE_FILE = ".env.example"

# Non-secret test settings every project needs regardless of connectors
TEST_VARIABLES = (
    ("TEST_BASE_URL", "https://staging.example.com"),
    ("TEST_OWNER_EMAIL", "qa-owner@example.com"),
    ("TEST_OWNER_PASSWORD", ""),
)


def load_environment(root: Path | str, *, include_process: bool = True) -> Dict[str, str]:
    """Merge ``<root>/.env`` over the process environment.

    Variables declared without a value in ``.env`` are ignored.
    """
    merged: Dict[str, str] = dict(os.environ) if include_process else {}
    path = Path(root) / ENV_FILE
    if path.is_file():
        values = dotenv_values(path)
        merged.update({key: value for key, value in values.items() if value is not None})
        logger.debug(f"Loaded {len(values)} variables from {path}")
    return merged


def _variables_for(name: str) -> List[str]:
    descriptor = get_connector(name)
    if descriptor is None:
        return []
    variables: List[str] = []
    for template in descriptor.env_template.values():
        for variable in PLACEHOLDER_PATTERN.findall(template):
            if variable not in variables:
                variables.append(variable)
    return variables


def required_secrets(names: Iterable[str]) -> List[str]:
    """Variables referenced by the connectors in ``names``, in first-use order."""
    secrets: List[str] = []
    for name in names:
        for variable in _variables_for(name):
            if variable not in secrets:
                secrets.append(variable)
    return secrets


def find_missing_secrets(env: Mapping[str, str], names: Iterable[str]) -> List[str]:
    """Variables the connectors need that are unset or empty in ``env``."""
    return [variable for variable in required_secrets(names) if not env.get(variable)]


def render_env_example(names: Iterable[str], *, project_name: Optional[str] = None) -> str:
    """Render ``.env.example`` content for the connector set."""
    title = f"Environment for {project_name}" if project_name else "Environment"
    lines = [
        f"# {title}",
        "# Copy this file to .env and fill in the values. Never commit .env.",
        "",
    ]

    for name in dict.fromkeys(names):
        descriptor = get_connector(name)
        variables = _variables_for(name)
        if descriptor is None or not variables:
            continue
        lines.append(f"# {descriptor.display_name}")
        if descriptor.description:
            lines.append(f"# {descriptor.description}")
        lines.extend(f"{variable}=" for variable in variables)
        lines.append("")

    lines.append("# Test settings")
    lines.extend(f"{key}={value}" for key, value in TEST_VARIABLES)
    return "\n".join(lines) + "\n"


def write_env_example(root: Path | str, names: Iterable[str], *, project_name: Optional[str] = None) -> Path:
    """Write ``.env.example`` under ``root``."""
    path = Path(root) / ENV_EXAMPLE_FILE
    path.write_text(render_env_example(names, project_name=project_name), encoding="utf-8")
    return path
