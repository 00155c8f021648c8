"""Target profile registry.

One descriptor per supported AI coding assistant. Everything downstream
(formatting, invocation text, file layout, connector delivery) branches on
descriptor fields only; the profile id is looked up exactly once.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, List, Mapping

from .errors import ConfigurationError
from .models import TargetProfile

DEFAULT_PROFILE_ID = "claude-code"

FILE_DELIVERY = "file"
CLI_DELIVERY = "cli"

DELEGATE_STYLE = "delegate"
EXTERNAL_STYLE = "external"

# Placeholders available to the templates below: {role}, {hint}, {path}, {cli}
_DELEGATE_TEMPLATE = (
    '**DELEGATE TO SUBAGENT**: Use the Task tool with `subagent_type: "{role}"` to delegate this step.\n'
    "{hint}"
)

_INLINE_TEMPLATE = (
    "**TEAM COMMUNICATION**: Read `{path}` and follow its instructions to communicate with the team.\n"
    "Use the tools and guidelines specified in that file within this context. Do NOT spawn a sub-agent."
)


PROFILES: Mapping[str, TargetProfile] = MappingProxyType({
    profile.id: profile
    for profile in (
        TargetProfile(
            id="claude-code",
            name="Claude Code",
            cli_command="claude",
            task_dir=".claude/commands",
            capability_dir=".claude/agents",
            task_headers=True,
            capability_headers=True,
            connector_delivery=FILE_DELIVERY,
            connector_config_path=".mcp.json",
            invocation_style=DELEGATE_STYLE,
            delegate_template=_DELEGATE_TEMPLATE,
            external_template="",
            inline_template=_INLINE_TEMPLATE,
        ),
        TargetProfile(
            id="cursor",
            name="Cursor",
            cli_command="cursor-agent",
            task_dir=".cursor/commands",
            capability_dir=".cursor/agents",
            task_headers=False,
            capability_headers=False,
            connector_delivery=FILE_DELIVERY,
            connector_config_path=".cursor/mcp.json",
            invocation_style=EXTERNAL_STYLE,
            delegate_template="",
            external_template=(
                "Run the {role} agent:\n"
                "```bash\n"
                '{cli} -p "$(cat {path})" --output-format text\n'
                "```"
            ),
            inline_template=_INLINE_TEMPLATE,
        ),
        TargetProfile(
            id="codex",
            name="Codex CLI",
            cli_command="codex",
            task_dir=".codex/prompts",
            capability_dir=".codex/agents",
            task_headers=True,
            capability_headers=False,
            connector_delivery=CLI_DELIVERY,
            home_env_var="CODEX_HOME",
            home_dir=".codex",
            invocation_style=EXTERNAL_STYLE,
            delegate_template="",
            external_template=(
                "Run the {role} agent:\n"
                "```bash\n"
                '{cli} -p "$(cat {path})"\n'
                "```"
            ),
            inline_template=_INLINE_TEMPLATE,
        ),
    )
})


def get_profile(profile_id: str) -> TargetProfile:
    """Get a target profile by id."""
    profile = PROFILES.get(profile_id)
    if profile is None:
        raise ConfigurationError(
            f"Unknown target profile '{profile_id}'. Expected one of: {', '.join(PROFILES)}",
            field="targetProfileId",
        )
    return profile


def default_profile() -> TargetProfile:
    """Get the profile used when a configuration names none."""
    return PROFILES[DEFAULT_PROFILE_ID]


def profile_options() -> List[Dict[str, str]]:
    """Get all profiles as selection options."""
    return [{"value": profile.id, "label": profile.name} for profile in PROFILES.values()]
