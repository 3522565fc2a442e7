"""In-memory GitHub and Bugzilla stand-ins that record every mutation."""

from bugsync.clients.base import BugNotFoundError, BugTracker, BugzillaError, CodeHost, PullRequestNotFoundError
from bugsync.models import Bug, BugComment, BugCreate, BugUpdate, ExternalBug, PullRequest

ENDPOINT = "https://bugzilla.example.com"


class FakeGitHub(CodeHost):
    def __init__(
        self,
        prs: list[PullRequest] | None = None,
        labels: list[str] | None = None,
        logins: dict[str, list[str]] | None = None,
    ) -> None:
        self.prs = {(pr.org, pr.repo, pr.number): pr for pr in prs or []}
        self.labels: dict[tuple[str, str, int], list[str]] = {}
        self.initial_labels = list(labels or [])
        self.logins = logins or {}
        self.comments: list[tuple[str, str, int, str]] = []
        self.added: list[str] = []
        self.removed: list[str] = []

    def _labels(self, org: str, repo: str, number: int) -> list[str]:
        return self.labels.setdefault((org, repo, number), list(self.initial_labels))

    def get_pull_request(self, org: str, repo: str, number: int) -> PullRequest:
        try:
            return self.prs[(org, repo, number)]
        except KeyError:
            raise PullRequestNotFoundError(org, repo, number) from None

    def get_issue_labels(self, org: str, repo: str, number: int) -> list[str]:
        return list(self._labels(org, repo, number))

    def add_label(self, org: str, repo: str, number: int, label: str) -> None:
        self._labels(org, repo, number).append(label)
        self.added.append(label)

    def remove_label(self, org: str, repo: str, number: int, label: str) -> None:
        self._labels(org, repo, number).remove(label)
        self.removed.append(label)

    def create_comment(self, org: str, repo: str, number: int, body: str) -> None:
        self.comments.append((org, repo, number, body))

    def find_logins_by_email(self, email: str) -> list[str]:
        return self.logins.get(email, [])


class FakeBugzilla(BugTracker):
    """Bugs keyed by ID. IDs listed in errors raise BugzillaError on any access."""

    def __init__(
        self,
        bugs: list[Bug] | None = None,
        comments: dict[int, list[BugComment]] | None = None,
        external: dict[int, list[ExternalBug]] | None = None,
        sub_components: dict[int, dict[str, list[str]]] | None = None,
        errors: set[int] | None = None,
        fail_updates: bool = False,
        fail_create: bool = False,
    ) -> None:
        self.endpoint = ENDPOINT
        self.bugs = {bug.id: bug for bug in bugs or []}
        self.comments = comments or {}
        self.external = external or {}
        self.sub_components = sub_components or {}
        self.errors = errors or set()
        self.fail_updates = fail_updates
        self.fail_create = fail_create
        self.updates: list[tuple[int, BugUpdate]] = []
        self.created: list[BugCreate] = []
        self.linked: list[tuple[int, str]] = []

    def _check(self, bug_id: int) -> None:
        if bug_id in self.errors:
            raise BugzillaError(f"injected error for bug {bug_id}")
        if bug_id not in self.bugs:
            raise BugNotFoundError(bug_id)

    def get_bug(self, bug_id: int) -> Bug:
        self._check(bug_id)
        return self.bugs[bug_id]

    def get_comments(self, bug_id: int) -> list[BugComment]:
        self._check(bug_id)
        return self.comments.get(bug_id, [])

    def update_bug(self, bug_id: int, update: BugUpdate) -> None:
        self._check(bug_id)
        if self.fail_updates:
            raise BugzillaError("injected update failure")
        self.updates.append((bug_id, update))
        changes = update.model_dump(exclude_none=True, exclude={"depends_on_add"})
        bug = self.bugs[bug_id].model_copy(update=changes)
        if update.depends_on_add:
            bug = bug.model_copy(update={"depends_on": [*bug.depends_on, *update.depends_on_add]})
            for parent in update.depends_on_add:
                source = self.bugs[parent]
                self.bugs[parent] = source.model_copy(update={"blocks": [*source.blocks, bug_id]})
        self.bugs[bug_id] = bug

    def create_bug(self, bug: BugCreate) -> int:
        if self.fail_create:
            raise BugzillaError("injected create failure")
        new_id = max(self.bugs, default=0) + 1
        self.created.append(bug)
        if bug.sub_components:
            self.sub_components[new_id] = bug.sub_components
        self.bugs[new_id] = Bug(
            id=new_id,
            status="NEW",
            product=bug.product,
            component=bug.component,
            version=bug.version,
            severity=bug.severity,
            summary=bug.summary,
            is_open=True,
        )
        return new_id

    def get_external_bugs(self, bug_id: int) -> list[ExternalBug]:
        self._check(bug_id)
        return list(self.external.get(bug_id, []))

    def add_pull_request_as_external_bug(self, bug_id: int, org: str, repo: str, number: int) -> bool:
        self._check(bug_id)
        link = ExternalBug(bug_id=bug_id, org=org, repo=repo, number=number)
        links = self.external.setdefault(bug_id, [])
        if link in links:
            return False
        links.append(link)
        self.linked.append((bug_id, link.external_id))
        return True

    def get_sub_components(self, bug_id: int) -> dict[str, list[str]]:
        self._check(bug_id)
        return self.sub_components.get(bug_id, {})
