"""Tests for cloning bugs onto the release targeted by a cherry-pick pull request."""

import pytest
from fakes import ENDPOINT, FakeBugzilla, FakeGitHub

from bugsync.cherrypick import clone_description, retitle
from bugsync.handler import handle
from bugsync.models import BranchPolicy, Bug, BugComment, Event, PullRequest

POLICY = BranchPolicy(target_release="v1")


def _link(bug_id: int) -> str:
    return f"[Bugzilla bug {bug_id}]({ENDPOINT}/show_bug.cgi?id={bug_id})"


def _said(gc: FakeGitHub) -> str:
    assert len(gc.comments) == 1, gc.comments
    body = gc.comments[0][3]
    return body.removeprefix("@user: ").split("\n\n<details>\n\nIn response to", 1)[0]


def _source(title: str = "Bug 123: fixed it!") -> PullRequest:
    return PullRequest(org="org", repo="repo", number=1, title=title, state="closed", merged=True, base_ref="master")


def _original(**overrides) -> Bug:
    fields = {
        "id": 123,
        "status": "CLOSED",
        "severity": "urgent",
        "product": "Test",
        "component": ["TestComponent"],
        "version": ["v2"],
        "summary": "Something broke",
    }
    fields.update(overrides)
    return Bug(**fields)


@pytest.fixture
def cherrypick() -> Event:
    return Event(
        org="org",
        repo="repo",
        base_ref="v1",
        number=2,
        body="[v1] Bug 123: fixed it!",
        html_url="https://github.com/org/repo/pull/2",
        login="user",
        cherrypick=True,
        cherrypick_from=1,
        cherrypick_to="v1",
    )


def _bugzilla(**kwargs) -> FakeBugzilla:
    kwargs.setdefault("bugs", [_original()])
    kwargs.setdefault("comments", {123: [BugComment(bug_id=123, count=0, text="This is a bug")]})
    return FakeBugzilla(**kwargs)


class TestCloneDescription:
    def test_uses_first_comment(self) -> None:
        comments = [BugComment(bug_id=5, count=0, text="first"), BugComment(bug_id=5, count=1, text="second")]
        assert clone_description(Bug(id=5), comments) == (
            "This is a clone of Bug #5. This is the description of that bug:\nfirst"
        )

    def test_no_comments(self) -> None:
        assert clone_description(Bug(id=5), []) == "This is a clone of Bug #5. This is the description of that bug:\n"


class TestRetitle:
    def test_replaces_reference(self) -> None:
        assert retitle("[v1] Bug 123: fixed it!", 124) == "[v1] Bug 124: fixed it!"

    def test_replaces_only_first_reference(self) -> None:
        assert retitle('Bug 1: Revert "Bug 2: thing"', 9) == 'Bug 9: Revert "Bug 2: thing"'

    def test_prefixes_when_unreferenced(self) -> None:
        assert retitle("fixed it!", 124) == "Bug 124: fixed it!"


class TestCherrypick:
    def test_clones_bug(self, cherrypick: Event) -> None:
        gc = FakeGitHub(prs=[_source()])
        bc = _bugzilla()
        outcome = handle(cherrypick, gc, bc, POLICY)
        assert outcome.status == "cloned"
        assert _said(gc) == (
            f"{_link(123)} has been cloned as {_link(124)}. Retitling PR to link against new bug.\n"
            "/retitle [v1] Bug 124: fixed it!"
        )
        clone = bc.bugs[124]
        assert clone.version == ["v1"]
        assert clone.depends_on == [123]
        assert clone.product == "Test"
        assert clone.component == ["TestComponent"]
        assert clone.severity == "urgent"
        assert bc.bugs[123].blocks == [124]
        assert bc.created[0].description == (
            "This is a clone of Bug #123. This is the description of that bug:\nThis is a bug"
        )

    def test_carries_sub_components(self, cherrypick: Event) -> None:
        bc = _bugzilla(sub_components={123: {"TestComponent": ["TestSubComponent"]}})
        handle(cherrypick, FakeGitHub(prs=[_source()]), bc, POLICY)
        assert bc.created[0].sub_components == {"TestComponent": ["TestSubComponent"]}
        assert bc.get_sub_components(124) == {"TestComponent": ["TestSubComponent"]}

    def test_missing_source_pull_request(self, cherrypick: Event) -> None:
        gc = FakeGitHub()
        bc = _bugzilla()
        outcome = handle(cherrypick, gc, bc, POLICY)
        assert outcome.status == "error"
        assert _said(gc) == (
            "Error creating a cherry-pick bug in Bugzilla: failed to check the state of cherrypicked pull request "
            "at https://github.com/org/repo/pull/1: pull request number 1 does not exist.\n"
            "Please contact an administrator to resolve this issue, then request a bug refresh with "
            "<code>/bugzilla refresh</code>."
        )
        assert bc.created == []

    def test_source_without_reference_ignored(self, cherrypick: Event) -> None:
        gc = FakeGitHub(prs=[_source(title="fixed it!")])
        bc = _bugzilla()
        assert handle(cherrypick, gc, bc, POLICY).status == "ignored"
        assert gc.comments == []
        assert bc.created == []

    def test_source_bug_missing(self, cherrypick: Event) -> None:
        gc = FakeGitHub(prs=[_source()])
        outcome = handle(cherrypick, gc, FakeBugzilla(), POLICY)
        assert outcome.status == "not_found"
        assert _said(gc) == (
            "Failed to create a cherry-pick bug in Bugzilla: "
            f"No Bugzilla bug with ID 123 exists in the tracker at {ENDPOINT}."
        )

    def test_source_bug_error(self, cherrypick: Event) -> None:
        gc = FakeGitHub(prs=[_source()])
        outcome = handle(cherrypick, gc, _bugzilla(errors={123}), POLICY)
        assert outcome.status == "error"
        assert _said(gc) == (
            "Failed to create a cherry-pick bug in Bugzilla: An error was encountered searching for bug 123 "
            f"on the Bugzilla server at {ENDPOINT}:\n"
            "> injected error for bug 123\n"
            "Please contact an administrator to resolve this issue, then request a bug refresh with "
            "<code>/bugzilla refresh</code>."
        )

    def test_clone_failure(self, cherrypick: Event) -> None:
        gc = FakeGitHub(prs=[_source()])
        outcome = handle(cherrypick, gc, _bugzilla(fail_create=True), POLICY)
        assert outcome.status == "error"
        assert _said(gc) == (
            "An error was encountered creating a cherry-pick bug in Bugzilla: encountered error cloning "
            f"{_link(123)} for cherrypick for bug 123 on the Bugzilla server at {ENDPOINT}:\n"
            "> injected create failure\n"
            "Please contact an administrator to resolve this issue, then request a bug refresh with "
            "<code>/bugzilla refresh</code>."
        )

    def test_no_target_release(self, cherrypick: Event) -> None:
        gc = FakeGitHub(prs=[_source()])
        bc = _bugzilla()
        outcome = handle(cherrypick, gc, bc, BranchPolicy())
        assert outcome.status == "error"
        assert _said(gc) == (
            f"Could not make automatic cherrypick of {_link(123)} for this PR "
            "as no target release is configured for the v1 branch."
        )
        assert bc.created == []

    def test_reuses_existing_clone(self, cherrypick: Event) -> None:
        gc = FakeGitHub(prs=[_source()])
        bugs = [_original(blocks=[124]), _original(id=124, version=["v1"], depends_on=[123])]
        bc = _bugzilla(bugs=bugs)
        outcome = handle(cherrypick, gc, bc, POLICY)
        assert outcome.status == "clone_reused"
        assert _said(gc) == (
            f"Not creating new clone for {_link(123)} as {_link(124)} has been detected as a clone "
            "for the correct target version of this cherrypick. Running refresh:\n/bugzilla refresh"
        )
        assert bc.created == []

    def test_clone_for_other_release_not_reused(self, cherrypick: Event) -> None:
        gc = FakeGitHub(prs=[_source()])
        bugs = [_original(blocks=[124]), _original(id=124, version=["v3"], depends_on=[123])]
        bc = _bugzilla(bugs=bugs)
        outcome = handle(cherrypick, gc, bc, POLICY)
        assert outcome.status == "cloned"
        assert _said(gc).startswith(f"{_link(123)} has been cloned as {_link(125)}.")
        assert bc.bugs[125].version == ["v1"]
        assert bc.bugs[123].blocks == [124, 125]
