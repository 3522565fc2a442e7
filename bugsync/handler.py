"""Deciding labels, comments and bug transitions for one normalized Event.

Nothing is cached between invocations: every call re-reads the bug, its
links and the pull request labels, so a repeated event converges on the same
state instead of repeating side effects.
"""

import logging

from bugsync.cherrypick import handle_cherrypick
from bugsync.clients.base import BugNotFoundError, BugTracker, BugzillaError, CodeHost, CodeHostError
from bugsync.comments import DEFAULT_FOOTER, REFRESH_HINT, Reply, bug_link, pr_link, quote_error, remote_error
from bugsync.models import BranchPolicy, Bug, BugUpdate, Event, Outcome, PullRequest, matches_any
from bugsync.validation import bug_state_text, validate_bug

log = logging.getLogger(__name__)

VALID_LABEL = "bugzilla/valid-bug"
INVALID_LABEL = "bugzilla/invalid-bug"
SEVERITY_PREFIX = "bugzilla/severity-"

MISSING_TEXT = (
    "No Bugzilla bug is referenced in the title of this pull request.\n"
    "To reference a bug, add 'Bug XXX:' to the title of this pull request and request another bug refresh "
    "with <code>/bugzilla refresh</code>."
)
INVALID_FOOTER = (
    "Comment <code>/bugzilla refresh</code> to re-evaluate validity if changes to the Bugzilla bug are made, "
    "or edit the title of this pull request to link to a different bug."
)
ASSIGN_DEPRECATED = (
    "The <code>/bugzilla assign-qa</code> command is deprecated, "
    "please use <code>/bugzilla cc-qa</code> to request a review from the QA contact instead."
)


def handle(event: Event, gc: CodeHost, bc: BugTracker, policy: BranchPolicy, footer: str = DEFAULT_FOOTER) -> Outcome:
    """Act on event and post at most one comment explaining what happened."""
    reply = Reply(gc, event, footer)
    if event.cherrypick:
        outcome = handle_cherrypick(event, gc, bc, policy, reply)
    elif event.merged:
        outcome = handle_merge(event, gc, bc, policy, reply)
    else:
        outcome = handle_refresh(event, gc, bc, policy, reply)
    log.info("%s/%s#%d: %s", event.org, event.repo, event.number, outcome.status)
    return outcome


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


def _is_managed(label: str) -> bool:
    return label in (VALID_LABEL, INVALID_LABEL) or label.startswith(SEVERITY_PREFIX)


def strip_labels(gc: CodeHost, event: Event) -> None:
    for label in gc.get_issue_labels(event.org, event.repo, event.number):
        if _is_managed(label):
            gc.remove_label(event.org, event.repo, event.number, label)


def sync_labels(gc: CodeHost, event: Event, valid: bool, severity: str) -> None:
    """Leave exactly one of valid/invalid and the severity label matching the bug."""
    current = set(gc.get_issue_labels(event.org, event.repo, event.number))
    wanted = {VALID_LABEL if valid else INVALID_LABEL}
    if severity:
        wanted.add(f"{SEVERITY_PREFIX}{severity}")
    for label in sorted(current):
        if _is_managed(label) and label not in wanted:
            gc.remove_label(event.org, event.repo, event.number, label)
    for label in sorted(wanted - current):
        gc.add_label(event.org, event.repo, event.number, label)


# ---------------------------------------------------------------------------
# Title-triggered flow (open, edit, slash-command)
# ---------------------------------------------------------------------------


def _validations_section(validations: list[str]) -> str:
    if not validations:
        return "<details><summary>No validations were run on this bug</summary></details>"
    lines = "\n".join(f"* {validation}" for validation in validations)
    return f"<details><summary>{len(validations)} validation(s) were run on this bug</summary>\n\n{lines}</details>"


def process_logins(logins: list[str], email: str) -> str:
    if len(logins) == 1:
        return f"Requesting review from QA contact:\n/cc @{logins[0]}"
    where = f"matching the public email listed for the QA contact in Bugzilla ({email}), skipping review request."
    if not logins:
        return f"No GitHub users were found {where}"
    listing = "\n".join(f"\t- {login}" for login in logins)
    return f"Multiple GitHub users were found {where} List of users with matching email:\n{listing}"


def qa_review_request(gc: CodeHost, bug: Bug, deprecated: bool) -> str:
    parts = [ASSIGN_DEPRECATED] if deprecated else []
    if not bug.qa_contact:
        parts.append("No QA contact is listed for this bug in Bugzilla, skipping review request.")
        return "\n".join(parts)
    try:
        logins = gc.find_logins_by_email(bug.qa_contact)
    except CodeHostError as exc:
        log.warning("QA contact lookup for %s failed: %s", bug.qa_contact, exc)
        parts.append(
            f"An error was encountered looking up the GitHub user for the QA contact in Bugzilla ({bug.qa_contact}), "
            f"skipping review request:\n{quote_error(exc)}"
        )
        return "\n".join(parts)
    parts.append(process_logins(logins, bug.qa_contact))
    return "\n".join(parts)


def _linked(bc: BugTracker, bug: Bug, event: Event) -> bool:
    return any(
        (link.org, link.repo, link.number) == (event.org, event.repo, event.number)
        for link in bc.get_external_bugs(bug.id)
    )


def handle_refresh(event: Event, gc: CodeHost, bc: BugTracker, policy: BranchPolicy, reply: Reply) -> Outcome:
    if event.missing:
        strip_labels(gc, event)
        reply.post(MISSING_TEXT)
        return Outcome(status="missing", comment=reply.posted)

    bug_id = event.bug_id
    try:
        bug = bc.get_bug(bug_id)
    except BugNotFoundError:
        reply.post(
            f"No Bugzilla bug with ID {bug_id} exists in the tracker at {bc.endpoint}.\n"
            f"Once a valid bug is referenced in the title of this pull request, {REFRESH_HINT}."
        )
        return Outcome(status="not_found", comment=reply.posted)
    except BugzillaError as exc:
        log.warning("fetching bug %d failed: %s", bug_id, exc)
        reply.post(remote_error(f"searching for bug {bug_id}", bc.endpoint, exc))
        return Outcome(status="error", comment=reply.posted)

    dependents = []
    if policy.checks_dependents():
        for dependent_id in bug.depends_on:
            try:
                dependents.append(bc.get_bug(dependent_id))
            except BugzillaError as exc:
                log.warning("fetching dependent bug %d of %d failed: %s", dependent_id, bug.id, exc)
                action = f"searching for dependent bug {dependent_id} for bug {bug.id}"
                reply.post(remote_error(action, bc.endpoint, exc))
                return Outcome(status="error", comment=reply.posted)

    verdict = validate_bug(bug, dependents, policy, bc.endpoint)
    sync_labels(gc, event, verdict.valid, bug.severity)
    link = bug_link(bug.id, bc.endpoint)

    if not verdict.valid:
        reasons = "\n".join(f" - {reason}" for reason in verdict.reasons)
        reply.post(f"This pull request references {link}, which is invalid:\n{reasons}\n\n{INVALID_FOOTER}")
        return Outcome(status="invalid", comment=reply.posted)

    text = f"This pull request references {link}, which is valid."
    target = policy.state_after_validation
    if target is not None and not target.matches(bug.status, bug.resolution):
        try:
            bc.update_bug(bug.id, BugUpdate(status=target.status or None, resolution=target.resolution or None))
        except BugzillaError as exc:
            action = f"updating to the {target.pretty()} state for bug {bug.id}"
            reply.post(f"{text}\n\n" + remote_error(action, bc.endpoint, exc))
            return Outcome(status="error", comment=reply.posted)
        text += f" The bug has been moved to the {target.pretty()} state."

    if policy.add_external_link:
        try:
            added = not _linked(bc, bug, event) and bc.add_pull_request_as_external_bug(
                bug.id, event.org, event.repo, event.number
            )
        except BugzillaError as exc:
            action = f"adding this pull request to the external tracker bugs for bug {bug.id}"
            reply.post(f"{text}\n\n" + remote_error(action, bc.endpoint, exc))
            return Outcome(status="error", comment=reply.posted)
        if added:
            text += " The bug has been updated to refer to the pull request using the external bug tracker."

    text += "\n\n" + _validations_section(verdict.validations)
    if event.assign or event.cc:
        text += "\n\n" + qa_review_request(gc, bug, deprecated=event.assign)
    reply.post(text)
    return Outcome(status="valid", comment=reply.posted)


# ---------------------------------------------------------------------------
# Merge flow
# ---------------------------------------------------------------------------


def _describe_unmerged(pr: PullRequest) -> str:
    return f" * {pr_link(pr.org, pr.repo, pr.number)} is {pr.state}"


def _recognized(policy: BranchPolicy, bug: Bug) -> bool:
    """Only migrate bugs in a state the policy expects before merge."""
    allowed = policy.allowed_states()
    return allowed is None or matches_any(allowed, bug.status, bug.resolution)


def handle_merge(event: Event, gc: CodeHost, bc: BugTracker, policy: BranchPolicy, reply: Reply) -> Outcome:
    target = policy.state_after_merge
    if target is None or event.missing:
        return Outcome(status="ignored")

    bug_id = event.bug_id
    link = bug_link(bug_id, bc.endpoint)
    try:
        linked = bc.get_external_bugs(bug_id)
    except BugzillaError as exc:
        log.warning("listing external bugs of %d failed: %s", bug_id, exc)
        reply.post(remote_error(f"searching for external tracker bugs for bug {bug_id}", bc.endpoint, exc))
        return Outcome(status="error", comment=reply.posted)
    if not linked:
        log.info("bug %d has no linked pull requests, nothing to aggregate", bug_id)
        return Outcome(status="ignored")

    merged: list[PullRequest] = []
    unmerged: list[PullRequest] = []
    for external in linked:
        try:
            pr = gc.get_pull_request(external.org, external.repo, external.number)
        except CodeHostError as exc:
            reply.post(
                "An error was encountered checking the state of "
                f"{pr_link(external.org, external.repo, external.number)}, linked to {link}:\n{quote_error(exc)}\n"
                f"Please contact an administrator to resolve this issue, then {REFRESH_HINT}."
            )
            return Outcome(status="error", comment=reply.posted)
        (merged if pr.merged else unmerged).append(pr)

    merged_links = ", ".join(pr_link(pr.org, pr.repo, pr.number) for pr in merged)
    if unmerged:
        lead = (
            f"Some pull requests linked via external trackers have merged: {merged_links}."
            if merged
            else "No pull requests linked via external trackers have merged."
        )
        pending = "\n".join(_describe_unmerged(pr) for pr in unmerged)
        reply.post(
            f"{lead} The following pull requests linked via external trackers have not merged:\n{pending}\n\n"
            f"{link} has not been moved to the {target.pretty()} state."
        )
        return Outcome(status="partial_merge", comment=reply.posted)

    try:
        bug = bc.get_bug(bug_id)
    except BugzillaError as exc:
        reply.post(remote_error(f"searching for bug {bug_id}", bc.endpoint, exc))
        return Outcome(status="error", comment=reply.posted)

    if target.matches(bug.status, bug.resolution):
        return Outcome(status="unchanged")
    if not _recognized(policy, bug):
        reply.post(
            f"{link} is in an unrecognized state ({bug_state_text(bug)}) "
            f"and will not be moved to the {target.pretty()} state."
        )
        return Outcome(status="unrecognized_state", comment=reply.posted)

    try:
        bc.update_bug(bug.id, BugUpdate(status=target.status or None, resolution=target.resolution or None))
    except BugzillaError as exc:
        reply.post(remote_error(f"updating to the {target.pretty()} state for bug {bug.id}", bc.endpoint, exc))
        return Outcome(status="error", comment=reply.posted)
    reply.post(
        f"All pull requests linked via external trackers have merged: {merged_links}. "
        f"{link} has been moved to the {target.pretty()} state."
    )
    return Outcome(status="merged", comment=reply.posted)
