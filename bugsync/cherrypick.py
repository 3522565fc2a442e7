"""Cloning a bug for a cherry-pick pull request onto its destination release."""

import logging

from bugsync.clients.base import BugNotFoundError, BugTracker, BugzillaError, CodeHost, CodeHostError
from bugsync.comments import REFRESH_COMMAND, REFRESH_HINT, Reply, bug_link, remote_error, remote_failure
from bugsync.events import TITLE_MATCH, extract_bug_id
from bugsync.models import BranchPolicy, Bug, BugComment, Event, Outcome

log = logging.getLogger(__name__)

FAILED = "Failed to create a cherry-pick bug in Bugzilla: "


def clone_description(bug: Bug, comments: list[BugComment]) -> str:
    first = comments[0].text if comments else ""
    return f"This is a clone of Bug #{bug.id}. This is the description of that bug:\n{first}"


def retitle(title: str, bug_id: int) -> str:
    """Point title at bug_id, replacing the first bug reference if there is one."""
    if TITLE_MATCH.search(title):
        return TITLE_MATCH.sub(f"Bug {bug_id}:", title, count=1)
    return f"Bug {bug_id}: {title}"


def find_existing_clone(bc: BugTracker, bug: Bug, target_release: str) -> Bug | None:
    """A bug blocked by bug that depends on it and is already versioned for target_release."""
    for blocker in bc.get_bugs(bug.blocks):
        if bug.id in blocker.depends_on and target_release in blocker.version:
            return blocker
    return None


def handle_cherrypick(event: Event, gc: CodeHost, bc: BugTracker, policy: BranchPolicy, reply: Reply) -> Outcome:
    source_url = f"https://github.com/{event.org}/{event.repo}/pull/{event.cherrypick_from}"
    try:
        source_pr = gc.get_pull_request(event.org, event.repo, event.cherrypick_from)
    except CodeHostError as exc:
        log.warning("cannot read cherry-pick source %s: %s", source_url, exc)
        reply.post(
            "Error creating a cherry-pick bug in Bugzilla: failed to check the state of cherrypicked pull request "
            f"at {source_url}: {exc}.\nPlease contact an administrator to resolve this issue, then {REFRESH_HINT}."
        )
        return Outcome(status="error", comment=reply.posted)

    source_id = extract_bug_id(source_pr.title)
    if source_id is None:
        log.info("cherry-pick source %s references no bug, nothing to clone", source_url)
        return Outcome(status="ignored")

    try:
        bug = bc.get_bug(source_id)
        comments = bc.get_comments(source_id)
    except BugNotFoundError:
        reply.post(FAILED + f"No Bugzilla bug with ID {source_id} exists in the tracker at {bc.endpoint}.")
        return Outcome(status="not_found", comment=reply.posted)
    except BugzillaError as exc:
        reply.post(FAILED + remote_error(f"searching for bug {source_id}", bc.endpoint, exc))
        return Outcome(status="error", comment=reply.posted)

    target_release = policy.target_release
    if target_release is None:
        reply.post(
            f"Could not make automatic cherrypick of {bug_link(bug.id, bc.endpoint)} for this PR "
            f"as no target release is configured for the {event.cherrypick_to} branch."
        )
        return Outcome(status="error", comment=reply.posted)

    try:
        existing = find_existing_clone(bc, bug, target_release)
    except BugzillaError as exc:
        reply.post(FAILED + remote_error(f"searching for existing clones of bug {bug.id}", bc.endpoint, exc))
        return Outcome(status="error", comment=reply.posted)
    if existing is not None:
        log.info("bug %d already has clone %d for %s", bug.id, existing.id, target_release)
        reply.post(
            f"Not creating new clone for {bug_link(bug.id, bc.endpoint)} as {bug_link(existing.id, bc.endpoint)} "
            "has been detected as a clone for the correct target version of this cherrypick. "
            f"Running refresh:\n{REFRESH_COMMAND}"
        )
        return Outcome(status="clone_reused", comment=reply.posted)

    try:
        clone_id = bc.clone_bug(bug, clone_description(bug, comments), [target_release])
    except BugzillaError as exc:
        lead = (
            "An error was encountered creating a cherry-pick bug in Bugzilla: encountered error cloning "
            f"{bug_link(bug.id, bc.endpoint)} for cherrypick for bug {bug.id}"
        )
        reply.post(remote_failure(lead, bc.endpoint, exc))
        return Outcome(status="error", comment=reply.posted)

    log.info("cloned bug %d as %d for %s", bug.id, clone_id, target_release)
    reply.post(
        f"{bug_link(bug.id, bc.endpoint)} has been cloned as {bug_link(clone_id, bc.endpoint)}. "
        f"Retitling PR to link against new bug.\n/retitle {retitle(event.body, clone_id)}"
    )
    return Outcome(status="cloned", comment=reply.posted)
