"""Invocation substitution.

Task templates delegate work to capabilities through abstract tokens such as
``{{INVOKE_ISSUE_TRACKER}}``. This module replaces them with the instruction
text of a target profile: an in-context delegation instruction, or a shell
line that feeds a generated capability file to the assistant's CLI.
"""

from __future__ import annotations

import re
from typing import Dict

from .capabilities import CAPABILITIES, get_capability
from .errors import InvocationError
from .models import TargetProfile
from .profiles import DELEGATE_STYLE

INVOCATION_PATTERN = re.compile(r"\{\{(INVOKE|INLINE)_([A-Z0-9_]+)\}\}")

TEAM_COMMUNICATOR = "team-communicator"


def token_key(role: str) -> str:
    """Token suffix for a role: 'issue-tracker' -> 'ISSUE_TRACKER'."""
    return role.upper().replace("-", "_")


def invocation_token(role: str) -> str:
    """Full delegation token for a role."""
    return "{{INVOKE_" + token_key(role) + "}}"


_ROLE_BY_KEY: Dict[str, str] = {token_key(role): role for role in CAPABILITIES}


def invocation_text(profile: TargetProfile, role: str, *, inline: bool = False) -> str:
    """Instruction text that invokes ``role`` under ``profile``."""
    capability = get_capability(role)
    if capability is None:
        raise InvocationError(f"Unknown subagent role: {role}")

    values = {
        "role": role,
        "hint": capability.delegation_hint,
        "path": profile.capability_path(role),
        "cli": profile.cli_command,
    }
    if inline:
        return profile.inline_template.format(**values)
    if profile.invocation_style == DELEGATE_STYLE:
        return profile.delegate_template.format(**values)
    return profile.external_template.format(**values)


def substitute_invocations(
    content: str,
    profile: TargetProfile,
    *,
    inline_team_communication: bool = False,
) -> str:
    """Replace every invocation token in ``content`` for ``profile``.

    With ``inline_team_communication`` the team communicator is invoked in
    the current context instead of a separate process; every other role is
    unaffected. Raises ``InvocationError`` if a token names an unknown role.
    """

    def _replace(match: re.Match) -> str:
        kind, key = match.group(1), match.group(2)
        role = _ROLE_BY_KEY.get(key)
        if role is None:
            raise InvocationError(f"Unknown invocation placeholder: {match.group(0)}")
        if kind == "INLINE":
            if role != TEAM_COMMUNICATOR:
                raise InvocationError(f"No inline variant for placeholder: {match.group(0)}")
            return invocation_text(profile, role, inline=True)
        inline = inline_team_communication and role == TEAM_COMMUNICATOR
        return invocation_text(profile, role, inline=inline)

    result = INVOCATION_PATTERN.sub(_replace, content)

    leftover = INVOCATION_PATTERN.search(result)
    if leftover:
        raise InvocationError(f"Unresolved invocation placeholder: {leftover.group(0)}")
    return result
