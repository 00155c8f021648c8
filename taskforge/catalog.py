"""Task template catalog.

One entry per supported task. Content uses the resolver grammar for
role-conditional sections and ``{{INVOKE_<ROLE>}}`` tokens for delegation;
see :mod:`taskforge.resolver` and :mod:`taskforge.invocation`.
"""

from __future__ import annotations

import textwrap
from types import MappingProxyType
from typing import List, Mapping, Optional

from .models import CLOUD_CONTEXT, LOCAL_CONTEXT, TaskMetadata, TaskTemplate

CLOUD_ONLY = MappingProxyType({LOCAL_CONTEXT: False})


def _content(text: str) -> str:
    return textwrap.dedent(text).strip("\n")


GENERATE_TEST_PLAN = TaskTemplate(
    slug="generate-test-plan",
    title="Generate Test Plan",
    metadata=TaskMetadata(
        description="Generate a concise feature test plan covering scope, risks and test types",
        argument_hint="<feature description or documentation link>",
    ),
    base_content=_content("""
        # Generate Test Plan

        Create a test plan for the feature described in `$ARGUMENTS`.

        ### Step 1: Load project context

        Read `.taskforge/runtime/project-context.md` and the existing test plans
        in `test-plans/` so the new plan follows established conventions.

        {{#documentation-researcher}}
        ### Step 2: Gather documentation

        Search {{INTEGRATION:documentation-researcher}} for requirements, designs and
        acceptance criteria related to the feature.

        {{INVOKE_DOCUMENTATION_RESEARCHER}}
        {{/documentation-researcher}}
        {{^documentation-researcher}}
        ### Step 2: Gather documentation

        No documentation source is configured. Work from the arguments and the
        application itself; list every assumption you make in the plan.
        {{/documentation-researcher}}

        ### Step 3: Write the plan

        Save the plan to `test-plans/<feature-slug>.md` with these sections:
        scope, out of scope, risks, test types, environments and exit criteria.

        {{#team-communicator}}
        ### Step 4: Share the plan

        Post a short summary of the plan and a link to the file for review.

        {{INVOKE_TEAM_COMMUNICATOR}}
        {{/team-communicator}}
    """),
)


GENERATE_TEST_CASES = TaskTemplate(
    slug="generate-test-cases",
    title="Generate Test Cases",
    metadata=TaskMetadata(
        description="Generate manual test cases and automated tests from a test plan",
        argument_hint="<test plan path> [--manual-only]",
    ),
    base_content=_content("""
        {{REQUIRES:test-code-generator}}
        # Generate Test Cases

        Turn the test plan at `$ARGUMENTS` into test cases.

        ### Step 1: Read the test plan

        Identify every scenario, its priority and the data it needs.

        {{#documentation-researcher}}
        ### Step 2: Check documentation for edge cases

        {{INVOKE_DOCUMENTATION_RESEARCHER}}
        {{/documentation-researcher}}

        ### Step 3: Write manual test cases

        Create one markdown file per scenario in `test-cases/` using the
        `TC-<number>-<slug>.md` naming scheme. Each case lists preconditions,
        steps and expected results.

        ### Step 4: Automate high-priority cases

        Delegate automation of every case marked `automate: true`.

        {{INVOKE_TEST_CODE_GENERATOR}}
    """),
)


EXPLORE_APPLICATION = TaskTemplate(
    slug="explore-application",
    title="Explore Application",
    metadata=TaskMetadata(
        description="Explore an application area to learn its behaviour and record findings",
        argument_hint="<area or URL> [--depth quick|moderate|deep]",
    ),
    base_content=_content("""
        {{REQUIRES:browser-automation}}
        # Explore Application

        Explore `$ARGUMENTS` and record what you learn.

        ### Step 1: Define the focus area

        Decide which pages, flows and user roles are in scope and pick an
        exploration depth (quick, moderate or deep).

        ### Step 2: Run the exploration

        {{INVOKE_BROWSER_AUTOMATION}}

        ### Step 3: Record findings

        Update `.taskforge/runtime/knowledge-base.md` with navigation paths,
        selectors that proved stable and any surprising behaviour.

        {{#issue-tracker}}
        ### Step 4: Log product bugs

        File each confirmed defect in {{INTEGRATION:issue-tracker}}.

        {{INVOKE_ISSUE_TRACKER}}
        {{/issue-tracker}}
        {{^issue-tracker}}
        ### Step 4: Log product bugs

        List each confirmed defect in `reports/bugs.md` with reproduction steps.
        {{/issue-tracker}}

        {{#team-communicator}}
        ### Step 5: Ask about unclear behaviour

        {{INVOKE_TEAM_COMMUNICATOR}}
        {{/team-communicator}}
    """),
)


RUN_TESTS = TaskTemplate(
    slug="run-tests",
    title="Run Tests",
    metadata=TaskMetadata(
        description="Run automated tests, fix test issues and report product bugs",
        argument_hint="[file pattern | tag | all]",
        allowed_tools=("Bash", "Read", "Write", "Edit", "Glob", "Grep"),
    ),
    base_content=_content("""
        {{REQUIRES:browser-automation}}
        {{REQUIRES:test-debugger-fixer}}
        # Run Tests

        Run the automated tests selected by `$ARGUMENTS` (default: all).

        ### Step 1: Execute the suite

        Run `npx playwright test` with the selection and collect the JSON report
        from `test-results/`.

        ### Step 2: Triage failures

        Classify every failure as a product bug, a test issue or an
        environment problem.

        ### Step 3: Fix test issues

        For each failure classified as a test issue:

        {{INVOKE_TEST_DEBUGGER_FIXER}}

        ### Step 4: Re-run fixed tests

        {{INVOKE_BROWSER_AUTOMATION}}

        {{#issue-tracker}}
        ### Step 5: Report product bugs

        {{INVOKE_ISSUE_TRACKER}}
        {{/issue-tracker}}

        {{#team-communicator}}
        ### Step 6: Notify the team

        Share pass/fail counts and the list of new bugs.

        {{INVOKE_TEAM_COMMUNICATOR}}
        {{/team-communicator}}
    """),
)


TRIAGE_RESULTS = TaskTemplate(
    slug="triage-results",
    title="Triage Results",
    metadata=TaskMetadata(
        description="Analyze existing test results and classify failures",
        argument_hint="<results path>",
    ),
    base_content=_content("""
        # Triage Results

        Analyze the results at `$ARGUMENTS`.

        ### Step 1: Normalize results

        Read the report and build a list of failures with test name, error and
        last passing run.

        {{#changelog-historian}}
        ### Step 2: Correlate with recent changes

        {{INVOKE_CHANGELOG_HISTORIAN}}
        {{/changelog-historian}}

        ### Step 3: Classify failures

        Mark each failure as product bug, test issue, flaky or environment.

        {{#issue-tracker}}
        ### Step 4: Check for existing issues

        Search {{INTEGRATION:issue-tracker}} before filing anything new.

        {{INVOKE_ISSUE_TRACKER}}
        {{/issue-tracker}}
    """),
)


VERIFY_CHANGES_MANUAL = TaskTemplate(
    slug="verify-changes-manual",
    title="Verify Changes",
    metadata=TaskMetadata(
        description="Verify a code change by running the relevant tests and exploring affected areas",
        argument_hint="<PR link, branch or change description>",
    ),
    base_content=_content("""
        {{REQUIRES:browser-automation}}
        # Verify Changes

        Verify the change described by `$ARGUMENTS`.

        ### Step 1: Understand the change

        {{#changelog-historian}}
        {{INVOKE_CHANGELOG_HISTORIAN}}
        {{/changelog-historian}}
        {{^changelog-historian}}
        Read the diff or description and list the affected areas.
        {{/changelog-historian}}

        ### Step 2: Run affected tests

        {{INVOKE_BROWSER_AUTOMATION}}

        ### Step 3: Report the verdict

        Summarize what was verified, what failed and what could not be checked.

        {{#team-communicator}}
        {{INVOKE_TEAM_COMMUNICATOR}}
        {{/team-communicator}}
    """),
    visibility=MappingProxyType({LOCAL_CONTEXT: "verify-changes"}),
)


VERIFY_CHANGES_SLACK = TaskTemplate(
    slug="verify-changes-slack",
    title="Verify Changes (Team Request)",
    metadata=TaskMetadata(
        description="Verify a change requested from a team conversation and reply in thread",
        argument_hint="<message payload>",
    ),
    base_content=_content("""
        {{REQUIRES:team-communicator}}
        {{REQUIRES:browser-automation}}
        # Verify Changes (Team Request)

        A teammate asked for verification in a conversation: `$ARGUMENTS`.

        ### Step 1: Acknowledge the request

        {{INVOKE_TEAM_COMMUNICATOR}}

        ### Step 2: Verify

        {{INVOKE_BROWSER_AUTOMATION}}

        ### Step 3: Reply with results

        Reply in the same thread with the verdict and evidence.

        {{INVOKE_TEAM_COMMUNICATOR}}
    """),
    visibility=CLOUD_ONLY,
)


HANDLE_MESSAGE = TaskTemplate(
    slug="handle-message",
    title="Handle Message",
    metadata=TaskMetadata(
        description="Handle an incoming team message and route it to the right task",
        argument_hint="<message payload>",
    ),
    base_content=_content("""
        {{REQUIRES:team-communicator}}
        # Handle Message

        Process the incoming message in `$ARGUMENTS`.

        ### Step 1: Classify the message

        Decide whether it is a question, a verification request, a bug report
        or feedback on earlier results.

        ### Step 2: Act

        Answer questions from the knowledge base. Route verification requests
        to `verify-changes-slack`.

        {{#issue-tracker}}
        File bug reports in {{INTEGRATION:issue-tracker}}:

        {{INVOKE_ISSUE_TRACKER}}
        {{/issue-tracker}}

        ### Step 3: Respond

        {{INVOKE_TEAM_COMMUNICATOR}}
    """),
    visibility=CLOUD_ONLY,
)


PROCESS_EVENT = TaskTemplate(
    slug="process-event",
    title="Process Event",
    metadata=TaskMetadata(
        description="Process an external event such as a deployment or issue update",
        argument_hint="<event payload>",
    ),
    base_content=_content("""
        # Process Event

        Process the event in `$ARGUMENTS`.

        ### Step 1: Identify the event type

        Deployment events trigger a smoke run; issue updates refresh the
        knowledge base.

        ### Step 2: React

        {{#issue-tracker}}
        For issue updates, fetch the latest state:

        {{INVOKE_ISSUE_TRACKER}}
        {{/issue-tracker}}

        {{#team-communicator}}
        ### Step 3: Notify

        {{INVOKE_TEAM_COMMUNICATOR}}
        {{/team-communicator}}
    """),
    visibility=CLOUD_ONLY,
)


ONBOARD_TESTING = TaskTemplate(
    slug="onboard-testing",
    title="Onboard Testing",
    metadata=TaskMetadata(
        description="Onboard a project: explore the app, write a test plan and first automated tests",
        argument_hint="<application URL>",
    ),
    base_content=_content("""
        {{REQUIRES:browser-automation}}
        {{REQUIRES:test-code-generator}}
        # Onboard Testing

        Set up testing for the application at `$ARGUMENTS`.

        ### Step 1: Explore

        {{INVOKE_BROWSER_AUTOMATION}}

        ### Step 2: Plan

        Write `test-plans/smoke.md` covering the critical user journeys found.

        ### Step 3: Automate

        {{INVOKE_TEST_CODE_GENERATOR}}

        {{#team-communicator}}
        ### Step 4: Announce

        Tell the team which journeys are now covered.

        {{INVOKE_TEAM_COMMUNICATOR}}
        {{/team-communicator}}
    """),
)


TASK_TEMPLATES: Mapping[str, TaskTemplate] = MappingProxyType({
    template.slug: template
    for template in (
        GENERATE_TEST_PLAN,
        GENERATE_TEST_CASES,
        EXPLORE_APPLICATION,
        RUN_TESTS,
        TRIAGE_RESULTS,
        VERIFY_CHANGES_MANUAL,
        VERIFY_CHANGES_SLACK,
        HANDLE_MESSAGE,
        PROCESS_EVENT,
        ONBOARD_TESTING,
    )
})


def all_tasks() -> List[TaskTemplate]:
    """Get every task in catalog order."""
    return list(TASK_TEMPLATES.values())


def get_task(slug: str) -> Optional[TaskTemplate]:
    """Get a task template by slug."""
    return TASK_TEMPLATES.get(slug)


def visible_tasks(context: str) -> List[TaskTemplate]:
    """Tasks that produce a file in ``context``."""
    return [template for template in TASK_TEMPLATES.values() if template.output_slug(context) is not None]


__all__ = [
    "CLOUD_CONTEXT",
    "LOCAL_CONTEXT",
    "TASK_TEMPLATES",
    "all_tasks",
    "get_task",
    "visible_tasks",
]
