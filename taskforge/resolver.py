"""Task definition resolver.

Resolves a task template against a project's role assignments. Resolution is
a two-pass pipeline:

1. role-conditional blocks and mandatory-role markers are resolved here
   (``resolve_task``), producing a typed result rather than raising;
2. invocation tokens are replaced for the target profile by
   :mod:`taskforge.invocation`.

Template grammar handled in pass 1::

    {{REQUIRES:issue-tracker}}           mandatory-role marker (own line)
    {{#issue-tracker}} ... {{/issue-tracker}}   kept when the role is configured
    {{^issue-tracker}} ... {{/issue-tracker}}   kept when it is not
    {{INTEGRATION:issue-tracker}}        display name of the assigned integration
"""

from __future__ import annotations

import re
from typing import Callable, List, Mapping, Optional, Tuple, Union

from .capabilities import get_capability, integration_display_name
from .invocation import substitute_invocations
from .models import MissingCapability, ResolvedTask, TargetProfile, TaskTemplate

ROLE = r"[a-z0-9][a-z0-9-]*"

REQUIRES_PATTERN = re.compile(r"^[ \t]*\{\{REQUIRES:(" + ROLE + r")\}\}[ \t]*\n?", re.MULTILINE)
BLOCK_PATTERN = re.compile(r"\{\{([#^])(" + ROLE + r")\}\}\n?(.*?)\{\{/\2\}\}\n?", re.DOTALL)
INTEGRATION_PATTERN = re.compile(r"\{\{INTEGRATION:(" + ROLE + r")\}\}")
CONDITIONAL_PATTERN = re.compile(
    r"\{\{(?:[#^/]" + ROLE + r"|REQUIRES:" + ROLE + r"|INTEGRATION:" + ROLE + r")\}\}"
)

_BLANK_RUNS = re.compile(r"\n{3,}")

TaskResolution = Union[ResolvedTask, MissingCapability]


def required_roles(template: TaskTemplate) -> List[str]:
    """Mandatory roles marked in the template, in order of appearance."""
    roles: List[str] = []
    for match in REQUIRES_PATTERN.finditer(template.base_content):
        if match.group(1) not in roles:
            roles.append(match.group(1))
    return roles


def conditional_roles(template: TaskTemplate) -> List[str]:
    """Roles that guard at least one conditional block."""
    roles: List[str] = []
    for match in re.finditer(r"\{\{[#^](" + ROLE + r")\}\}", template.base_content):
        if match.group(1) not in roles:
            roles.append(match.group(1))
    return roles


def has_conditional_syntax(text: str) -> bool:
    """Check if any pass-1 token survives in ``text``."""
    return CONDITIONAL_PATTERN.search(text) is not None


def _resolve_blocks(text: str, is_configured: Callable[[str], bool]) -> str:
    def _replace(match: re.Match) -> str:
        sign, role, body = match.group(1), match.group(2), match.group(3)
        keep = is_configured(role) if sign == "#" else not is_configured(role)
        return body if keep else ""

    # Repeat until stable so blocks nested inside other blocks are resolved too
    previous = None
    while previous != text:
        previous = text
        text = BLOCK_PATTERN.sub(_replace, text)
    return text


def _capability_label(role: str) -> str:
    capability = get_capability(role)
    return capability.display_name if capability else role


def _tidy(text: str) -> str:
    return _BLANK_RUNS.sub("\n\n", text).strip("\n")


def resolve_task(template: TaskTemplate, role_assignments: Mapping[str, str]) -> TaskResolution:
    """Resolve conditional content of ``template`` for ``role_assignments``.

    Returns ``MissingCapability`` for the first mandatory role that is not
    assigned; otherwise a ``ResolvedTask`` whose text still carries the
    invocation tokens.
    """
    for role in required_roles(template):
        if role not in role_assignments:
            return MissingCapability(slug=template.slug, role=role)

    text = REQUIRES_PATTERN.sub("", template.base_content)
    text = _resolve_blocks(text, lambda role: role in role_assignments)

    def _integration(match: re.Match) -> str:
        role = match.group(1)
        integration_id = role_assignments.get(role)
        if integration_id is None:
            return _capability_label(role)
        return integration_display_name(integration_id)

    text = INTEGRATION_PATTERN.sub(_integration, text)
    return ResolvedTask(slug=template.slug, content=_tidy(text))


def base_content_of(template: TaskTemplate) -> str:
    """Configuration-independent view of a task.

    Every role-present block is kept, role-absent alternatives are dropped and
    integration names fall back to the capability's display name. Used when
    ``resolve_task`` reports a missing capability, so the task file still
    shows the complete workflow.
    """
    text = REQUIRES_PATTERN.sub("", template.base_content)
    text = _resolve_blocks(text, lambda role: True)
    text = INTEGRATION_PATTERN.sub(lambda match: _capability_label(match.group(1)), text)
    return _tidy(text)


def build_task_content(
    template: TaskTemplate,
    role_assignments: Mapping[str, str],
    profile: TargetProfile,
    *,
    inline_team_communication: bool = False,
) -> Tuple[str, Optional[MissingCapability]]:
    """Run both resolution passes for one task.

    Never fails on a missing capability: the base content is used instead and
    the ``MissingCapability`` result is returned alongside for reporting.
    """
    resolution = resolve_task(template, role_assignments)
    missing: Optional[MissingCapability] = None
    if isinstance(resolution, MissingCapability):
        missing = resolution
        content = base_content_of(template)
    else:
        content = resolution.content

    content = substitute_invocations(
        content,
        profile,
        inline_team_communication=inline_team_communication,
    )
    return content, missing
