"""Unit tests for task resolution and invocation substitution."""

import pytest

from taskforge.errors import InvocationError
from taskforge.invocation import (
    INVOCATION_PATTERN,
    invocation_text,
    invocation_token,
    substitute_invocations,
    token_key,
)
from taskforge.models import MissingCapability, ResolvedTask, TaskMetadata, TaskTemplate
from taskforge.profiles import get_profile
from taskforge.resolver import (
    base_content_of,
    build_task_content,
    has_conditional_syntax,
    resolve_task,
)

REQUIRED = {
    "browser-automation": "playwright",
    "test-code-generator": "playwright",
    "test-debugger-fixer": "playwright",
}


def _template(content, slug="sample"):
    return TaskTemplate(slug=slug, title="Sample", metadata=TaskMetadata(description="Sample"), base_content=content)


SAMPLE = _template(
    "{{REQUIRES:browser-automation}}\n"
    "# Sample\n"
    "\n"
    "Intro.\n"
    "\n"
    "{{#issue-tracker}}\n"
    "File bugs in {{INTEGRATION:issue-tracker}}.\n"
    "\n"
    "{{INVOKE_ISSUE_TRACKER}}\n"
    "{{/issue-tracker}}\n"
    "{{^issue-tracker}}\n"
    "Write bugs to a file.\n"
    "{{/issue-tracker}}\n"
    "\n"
    "Outro.\n"
)


class TestResolveTask:
    """Test cases for resolver pass 1."""

    def test_present_block_kept(self):
        """Test that blocks for configured roles are kept with integration names."""
        result = resolve_task(SAMPLE, {**REQUIRED, "issue-tracker": "linear"})

        assert isinstance(result, ResolvedTask)
        assert "File bugs in Linear." in result.content
        assert "Write bugs to a file." not in result.content
        assert "{{INVOKE_ISSUE_TRACKER}}" in result.content
        assert not has_conditional_syntax(result.content)

    def test_absent_block_kept(self):
        """Test that alternatives for unconfigured roles are kept."""
        result = resolve_task(SAMPLE, REQUIRED)

        assert isinstance(result, ResolvedTask)
        assert "Write bugs to a file." in result.content
        assert "File bugs" not in result.content
        assert "{{INVOKE_" not in result.content

    def test_blank_lines_collapsed(self):
        """Test that removed blocks leave no runs of blank lines."""
        result = resolve_task(SAMPLE, REQUIRED)

        assert "\n\n\n" not in result.content
        assert result.content == "# Sample\n\nIntro.\n\nWrite bugs to a file.\n\nOutro."

    def test_missing_required_role(self):
        """Test that a missing mandatory role is a result, not an exception."""
        result = resolve_task(SAMPLE, {})

        assert result == MissingCapability(slug="sample", role="browser-automation")

    def test_first_missing_role_reported(self):
        """Test that the first unmet marker is reported."""
        template = _template("{{REQUIRES:team-communicator}}\n{{REQUIRES:issue-tracker}}\nBody")

        result = resolve_task(template, {"issue-tracker": "jira"})

        assert result.role == "team-communicator"

    def test_nested_blocks(self):
        """Test blocks nested inside other blocks."""
        template = _template(
            "{{#issue-tracker}}\nA\n{{#team-communicator}}\nB\n{{/team-communicator}}\n{{/issue-tracker}}\nC"
        )

        assert resolve_task(template, {"issue-tracker": "jira"}).content == "A\nC"
        assert resolve_task(template, {"issue-tracker": "jira", "team-communicator": "slack"}).content == "A\nB\nC"
        assert resolve_task(template, {}).content == "C"


class TestBaseContent:
    """Test cases for the fallback rendering."""

    def test_base_content_keeps_present_blocks(self):
        """Test the configuration-independent view."""
        content = base_content_of(SAMPLE)

        assert "File bugs in Issue Tracker." in content
        assert "Write bugs to a file." not in content
        assert not has_conditional_syntax(content)
        assert "{{INVOKE_ISSUE_TRACKER}}" in content


class TestInvocation:
    """Test cases for resolver pass 2."""

    def test_token_key(self):
        """Test token naming."""
        assert token_key("issue-tracker") == "ISSUE_TRACKER"
        assert invocation_token("team-communicator") == "{{INVOKE_TEAM_COMMUNICATOR}}"

    def test_delegate_style(self):
        """Test in-context delegation for the default profile."""
        text = invocation_text(get_profile("claude-code"), "issue-tracker")

        assert 'subagent_type: "issue-tracker"' in text
        assert "issue tracker" in text

    def test_external_style(self):
        """Test external process invocation for cursor."""
        text = invocation_text(get_profile("cursor"), "issue-tracker")

        assert 'cursor-agent -p "$(cat .cursor/agents/issue-tracker.md)" --output-format text' in text
        assert text.startswith("Run the issue-tracker agent")

    def test_codex_external_style(self):
        """Test external process invocation for codex."""
        text = invocation_text(get_profile("codex"), "test-debugger-fixer")

        assert 'codex -p "$(cat .codex/agents/test-debugger-fixer.md)"' in text

    def test_inline_team_communicator(self):
        """Test that only the team communicator switches to the inline variant."""
        content = "{{INVOKE_TEAM_COMMUNICATOR}}\n{{INVOKE_ISSUE_TRACKER}}"

        result = substitute_invocations(content, get_profile("cursor"), inline_team_communication=True)

        assert "Read `.cursor/agents/team-communicator.md`" in result
        assert "Do NOT spawn a sub-agent" in result
        assert "cursor-agent -p" in result
        assert "cat .cursor/agents/team-communicator.md" not in result

    def test_inline_token_always_inline(self):
        """Test the explicit inline token."""
        result = substitute_invocations("{{INLINE_TEAM_COMMUNICATOR}}", get_profile("claude-code"))

        assert "Do NOT spawn a sub-agent" in result

    def test_inline_token_for_other_role(self):
        """Test that only the team communicator has an inline token."""
        with pytest.raises(InvocationError):
            substitute_invocations("{{INLINE_ISSUE_TRACKER}}", get_profile("claude-code"))

    def test_unknown_token(self):
        """Test that an unknown role token is an error."""
        with pytest.raises(InvocationError):
            substitute_invocations("{{INVOKE_TIME_TRAVELLER}}", get_profile("claude-code"))

    def test_no_tokens_remain(self):
        """Test the post-condition for every profile."""
        content = "\n".join(invocation_token(role) for role in REQUIRED)

        for profile_id in ("claude-code", "cursor", "codex"):
            result = substitute_invocations(content, get_profile(profile_id))
            assert INVOCATION_PATTERN.search(result) is None
            assert "{{" not in result


class TestBuildTaskContent:
    """Test cases for the two-pass pipeline."""

    def test_degraded_task_uses_base_content(self):
        """Test that a missing mandatory role still yields content."""
        content, missing = build_task_content(SAMPLE, {}, get_profile("claude-code"))

        assert missing is not None
        assert missing.role == "browser-automation"
        assert "File bugs in Issue Tracker." in content
        assert 'subagent_type: "issue-tracker"' in content
        assert "{{" not in content

    def test_resolved_task(self):
        """Test a fully resolved task."""
        content, missing = build_task_content(SAMPLE, {**REQUIRED, "issue-tracker": "jira"}, get_profile("cursor"))

        assert missing is None
        assert "File bugs in Jira Cloud." in content
        assert "cursor-agent" in content
