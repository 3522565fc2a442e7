"""Turning GitHub webhook payloads into a normalized Event."""

import logging
import re

from bugsync.clients.base import CodeHost
from bugsync.clients.github import pull_request_from_node
from bugsync.comments import DEFAULT_FOOTER, format_response
from bugsync.models import Event

log = logging.getLogger(__name__)

# Leftmost "Bug 123:" wins, so a quoted revert subject never overrides the outer reference.
TITLE_MATCH = re.compile(r"(?i)\bbug (\d+):")

# Note the cherry-pick automation leaves in the body of PRs it opens.
CHERRYPICK_MATCH = re.compile(r"This is an automated cherry-pick of #(\d+)")

COMMAND_MATCH = re.compile(r"(?mi)^/bugzilla (refresh|assign-qa|cc-qa)\s*$")


def extract_bug_id(text: str) -> int | None:
    match = TITLE_MATCH.search(text)
    return int(match.group(1)) if match else None


def cherrypick_match(body: str, base_ref: str) -> tuple[bool, int | None, str | None]:
    """Return (is_cherrypick, source PR number, destination branch)."""
    match = CHERRYPICK_MATCH.search(body or "")
    if match is None:
        return False, None, None
    return True, int(match.group(1)), base_ref


def pr_location(payload: dict) -> tuple[str, str, str]:
    """(org, repo, base branch) of a pull_request delivery."""
    base = payload["pull_request"]["base"]
    return base["repo"]["owner"]["login"], base["repo"]["name"], base["ref"]


def digest_pr(payload: dict, validate_by_default: bool = False) -> Event | None:
    """Normalize a pull_request delivery, or return None if there is nothing to do."""
    action = payload.get("action")
    if action not in ("opened", "edited", "closed"):
        return None

    org, repo, base_ref = pr_location(payload)
    pr = pull_request_from_node(payload["pull_request"], org, repo)
    common = dict(
        org=org,
        repo=repo,
        base_ref=base_ref,
        number=pr.number,
        body=pr.title,
        html_url=pr.html_url,
        login=pr.author,
    )

    if action == "closed":
        if not pr.merged:
            return None
        bug_id = extract_bug_id(pr.title)
        return Event(**common, merged=True, bug_id=bug_id, missing=bug_id is None)

    if action == "opened":
        is_cherrypick, source, target = cherrypick_match(pr.body, base_ref)
        if is_cherrypick:
            log.info("%s/%s#%d is a cherry-pick of #%d", org, repo, pr.number, source)
            return Event(**common, cherrypick=True, cherrypick_from=source, cherrypick_to=target)

    changes = payload.get("changes") or {}
    title_changed = "title" in changes
    if action == "edited" and not title_changed:
        return None

    bug_id = extract_bug_id(pr.title)
    if title_changed:
        previous = extract_bug_id(changes["title"].get("from", ""))
        if previous == bug_id:
            log.debug("title of %s/%s#%d changed but still references %s", org, repo, pr.number, bug_id)
            return None
    if bug_id is None and not (title_changed or validate_by_default):
        return None
    return Event(**common, bug_id=bug_id, missing=bug_id is None)


def digest_comment(gc: CodeHost, payload: dict, footer: str = DEFAULT_FOOTER) -> Event | None:
    """Normalize an issue_comment delivery carrying a /bugzilla command.

    A command on a plain issue gets an immediate reply and no event.
    """
    if payload.get("action") != "created":
        return None
    comment = payload["comment"]
    body = comment.get("body") or ""
    match = COMMAND_MATCH.search(body)
    if match is None:
        return None
    command = match.group(1).lower()

    org = payload["repository"]["owner"]["login"]
    repo = payload["repository"]["name"]
    issue = payload["issue"]
    number = issue["number"]
    login = comment.get("user", {}).get("login", "")
    html_url = comment.get("html_url", "")

    if "pull_request" not in issue:
        reply = format_response(
            login, "Bugzilla bug referencing is only supported for Pull Requests, not issues.", body, html_url, footer
        )
        gc.create_comment(org, repo, number, reply)
        return None

    pr = gc.get_pull_request(org, repo, number)
    bug_id = extract_bug_id(pr.title)
    return Event(
        org=org,
        repo=repo,
        base_ref=pr.base_ref,
        number=number,
        body=body,
        html_url=html_url,
        login=login,
        bug_id=bug_id,
        missing=bug_id is None,
        merged=pr.merged,
        assign=command == "assign-qa",
        cc=command == "cc-qa",
    )
