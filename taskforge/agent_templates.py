"""Capability file templates.

Each configured role produces one capability file built from a role body
plus integration-specific working notes. Header metadata (name, description,
tools, model, color) is derived from the capability registry so the two can
never disagree.
"""

from __future__ import annotations

import textwrap
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Tuple

from .capabilities import get_capability, get_integration
from .errors import TemplateMissingError

MEMORY_DIR = ".taskforge/runtime/memory"

BASE_TOOLS = ("Glob", "Grep", "Read", "Write", "Edit", "TodoWrite")


@dataclass(frozen=True, slots=True)
class CapabilityTemplate:
    """A fully assembled capability file before formatting."""

    role: str
    integration: str
    description: str
    tools: Tuple[str, ...]
    model: str
    color: str
    content: str

    def header_fields(self) -> Dict[str, Any]:
        return {
            "name": self.role,
            "description": self.description,
            "tools": list(self.tools),
            "model": self.model,
            "color": self.color,
        }


def _text(value: str) -> str:
    return textwrap.dedent(value).strip("\n")


_MEMORY_SECTION = _text("""
    ## Memory

    Before starting, read `{memory_dir}/{role}.md` if it exists. It holds what
    previous runs learned about this project. When you finish, append anything
    a future run would need (identifiers, conventions, recurring problems) and
    remove entries that proved wrong.
""")


# Role bodies; {integration} is the integration display name, {notes} the
# integration-specific working notes
_ROLE_BODIES: Mapping[str, str] = MappingProxyType({
    "browser-automation": _text("""
        You are a browser automation specialist. You execute test cases in a
        real browser using {integration} and capture evidence for every step.

        ## Workflow

        1. Read the test case file named in the prompt.
        2. Open the application at `TEST_BASE_URL` and follow each step exactly.
        3. After every step compare the observed result with the expected one.
        4. Save screenshots and traces under `test-results/<test-case-id>/`.
        5. Report each step as passed, failed or blocked with the evidence path.

        {notes}
    """),
    "test-code-generator": _text("""
        You generate automated tests with {integration}. Every test you write
        must be runnable without edits.

        ## Workflow

        1. Read the manual test cases named in the prompt.
        2. Reuse existing Page Objects from `tests/pages/`; add new ones only
           for pages that have none.
        3. Write one spec file per test case under `tests/specs/`.
        4. Prefer role and label selectors over CSS selectors.
        5. Run each new spec once and fix it until it passes or the failure is
           a confirmed product bug.

        {notes}
    """),
    "test-debugger-fixer": _text("""
        You debug and fix failing automated tests written with {integration}.
        You change test code only; product bugs are reported, never worked around.

        ## Workflow

        1. Reproduce the failure with the exact command from the prompt.
        2. Read the trace and decide: selector drift, timing, test data or
           product bug.
        3. Fix test issues at the root (Page Object, fixture, helper) rather
           than in the single failing spec.
        4. Re-run the test three times to rule out flakiness.
        5. Report what changed and why the test now passes.

        {notes}
    """),
    "team-communicator": _text("""
        You communicate with the product team through {integration} like a
        real QA engineer: short, scannable and conversational.

        ## Message rules

        - Lead with impact in one or two sentences.
        - Keep updates under 100 words and questions under 50.
        - Put details in a thread or follow-up, not in the main message.
        - Send the message; do not return drafts or ask for approval.

        {notes}
    """),
    "issue-tracker": _text("""
        You track bugs, stories and tasks in {integration}. Every issue you
        file must be reproducible from its description alone.

        ## Workflow

        1. Search for existing issues before creating a new one.
        2. Include steps to reproduce, expected and actual results, environment
           and evidence links.
        3. Set priority from user impact, not from test priority.
        4. Move stories through QA states when the prompt asks for it.
        5. Report the identifier and URL of every issue you touched.

        {notes}
    """),
    "documentation-researcher": _text("""
        You research project documentation in {integration} and return
        concise, sourced answers.

        ## Workflow

        1. Turn the request into two or three focused searches.
        2. Read the most relevant pages fully before answering.
        3. Quote requirements verbatim and link each source.
        4. Say clearly when the documentation is silent or contradictory.

        {notes}
    """),
    "changelog-historian": _text("""
        You explain what changed in the codebase using {integration} history.

        ## Workflow

        1. Find pull requests and commits that touch the area in the prompt.
        2. Summarize each change in one line with its author, date and link.
        3. Flag changes that plausibly explain a reported failure.

        {notes}
    """),
})


_INTEGRATION_NOTES: Mapping[Tuple[str, str], str] = MappingProxyType({
    ("browser-automation", "playwright"): _text("""
        ## Playwright notes

        Use the Playwright MCP tools for navigation, clicks and assertions.
        Take a snapshot before interacting with a new page so selectors come
        from the live accessibility tree.
    """),
    ("test-code-generator", "playwright"): _text("""
        ## Playwright notes

        Use `@playwright/test` with TypeScript. Run specs with
        `npx playwright test <path>` and keep fixtures in `tests/fixtures/`.
    """),
    ("test-debugger-fixer", "playwright"): _text("""
        ## Playwright notes

        Re-run with `--trace on` and open the trace with
        `npx playwright show-trace`. Replace fixed waits with web-first
        assertions.
    """),
    ("team-communicator", "slack"): _text("""
        ## Slack notes

        Find the channel in `.taskforge/runtime/project-context.md`. Post with
        `slack_post_message`; reply in threads with `slack_reply_to_thread`.
        Report back the channel name and message timestamp.
    """),
    ("team-communicator", "teams"): _text("""
        ## Microsoft Teams notes

        Post to the team and channel named in the project context. Use one
        message per topic and reply in the conversation for details.
    """),
    ("team-communicator", "email"): _text("""
        ## Email notes

        Send through Resend from `RESEND_FROM_EMAIL` to the addresses in the
        project context. Use a subject line that states the outcome.
    """),
    ("team-communicator", "local"): _text("""
        ## Local notes

        There is no messaging service. Print the message to the terminal in a
        clearly delimited block and, for questions, wait for the user's reply.
    """),
    ("issue-tracker", "linear"): _text("""
        ## Linear notes

        Use the team and project ids from memory. Map severity to Linear
        priority (urgent, high, medium, low) and add the `qa` label.
    """),
    ("issue-tracker", "jira"): _text("""
        ## Jira Cloud notes

        Use JQL to search for duplicates. Create bugs in the project key from
        the project context and link them to the story under test.
    """),
    ("issue-tracker", "jira-server"): _text("""
        ## Jira Server notes

        The instance is on-premises; authenticate with the personal access
        token from `JIRA_SERVER_TOKEN`. Workflow transition ids differ per
        instance, so look them up before moving an issue.
    """),
    ("issue-tracker", "azure-devops"): _text("""
        ## Azure DevOps notes

        File bugs as work items of type Bug in the configured project. Put
        reproduction steps in the `Repro Steps` field.
    """),
    ("issue-tracker", "notion"): _text("""
        ## Notion notes

        Issues live in the database named in the project context. Fill the
        Status, Priority and Area properties on every page you create.
    """),
    ("issue-tracker", "asana"): _text("""
        ## Asana notes

        There is no connector for Asana. Use the `asana` CLI through Bash and
        create tasks in the project named in the project context.
    """),
    ("documentation-researcher", "notion"): _text("""
        ## Notion notes

        Search the workspace, then fetch full pages. Prefer pages edited most
        recently when two pages disagree.
    """),
    ("documentation-researcher", "confluence"): _text("""
        ## Confluence notes

        Use CQL to restrict searches to the spaces listed in the project
        context. Include the page version in every citation.
    """),
    ("changelog-historian", "github"): _text("""
        ## GitHub notes

        Search merged pull requests first; fall back to commit history for
        direct pushes. Include the PR number in every summary line.
    """),
})


def _tools(role: str, integration_id: str) -> Tuple[str, ...]:
    tools: List[str] = list(BASE_TOOLS)
    integration = get_integration(integration_id)
    if integration is not None and integration.required_connector:
        tools.append(integration.required_connector)
    if role in ("test-code-generator", "test-debugger-fixer") or integration_id == "asana":
        tools.append("Bash")
    return tuple(tools)


def has_template(role: str, integration_id: str) -> bool:
    """Check if a capability file can be built for the pair."""
    return role in _ROLE_BODIES and (role, integration_id) in _INTEGRATION_NOTES


def available_templates() -> List[Tuple[str, str]]:
    """All (role, integration) pairs with a template."""
    return list(_INTEGRATION_NOTES)


def build_capability(role: str, integration_id: str) -> CapabilityTemplate:
    """Assemble the capability file for ``role`` backed by ``integration_id``.

    Raises ``TemplateMissingError`` when no template exists for the pair.
    """
    capability = get_capability(role)
    integration = get_integration(integration_id)
    if capability is None or integration is None or not has_template(role, integration_id):
        raise TemplateMissingError(role, integration_id)

    body = _ROLE_BODIES[role].format(
        integration=integration.name,
        notes=_INTEGRATION_NOTES[(role, integration_id)],
    )
    memory = _MEMORY_SECTION.format(memory_dir=MEMORY_DIR, role=role)

    return CapabilityTemplate(
        role=role,
        integration=integration_id,
        description=f"{capability.description} ({integration.name})",
        tools=_tools(role, integration_id),
        model=capability.model,
        color=capability.color,
        content=f"{body}\n\n{memory}",
    )
