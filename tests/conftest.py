"""Shared test fixtures."""

import pytest

from bugsync.models import Bug, Event


@pytest.fixture
def event() -> Event:
    return Event(
        org="org",
        repo="repo",
        base_ref="branch",
        number=1,
        body="Bug 123: fixed it!",
        html_url="https://github.com/org/repo/pull/1",
        login="user",
        bug_id=123,
    )


@pytest.fixture
def bug() -> Bug:
    return Bug(
        id=123,
        status="NEW",
        is_open=True,
        target_release=["v1"],
        severity="medium",
        product="Product",
        component=["Component"],
        version=["v0"],
        summary="Something broke",
    )

