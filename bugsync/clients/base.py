"""Abstract base classes for the code host and the bug tracker."""

from abc import ABC, abstractmethod

from bugsync.models import Bug, BugComment, BugCreate, BugUpdate, ExternalBug, PullRequest


class CodeHostError(RuntimeError):
    pass


class PullRequestNotFoundError(CodeHostError):
    def __init__(self, org: str, repo: str, number: int) -> None:
        super().__init__(f"pull request number {number} does not exist")
        self.org = org
        self.repo = repo
        self.number = number


class BugzillaError(RuntimeError):
    pass


class BugNotFoundError(BugzillaError):
    def __init__(self, bug_id: int) -> None:
        super().__init__(f"bug {bug_id} does not exist")
        self.bug_id = bug_id


class CodeHost(ABC):
    @abstractmethod
    def get_pull_request(self, org: str, repo: str, number: int) -> PullRequest: ...

    @abstractmethod
    def get_issue_labels(self, org: str, repo: str, number: int) -> list[str]: ...

    @abstractmethod
    def add_label(self, org: str, repo: str, number: int, label: str) -> None: ...

    @abstractmethod
    def remove_label(self, org: str, repo: str, number: int, label: str) -> None: ...

    @abstractmethod
    def create_comment(self, org: str, repo: str, number: int, body: str) -> None: ...

    @abstractmethod
    def find_logins_by_email(self, email: str) -> list[str]: ...


class BugTracker(ABC):
    endpoint: str

    @abstractmethod
    def get_bug(self, bug_id: int) -> Bug: ...

    @abstractmethod
    def get_comments(self, bug_id: int) -> list[BugComment]: ...

    @abstractmethod
    def update_bug(self, bug_id: int, update: BugUpdate) -> None: ...

    @abstractmethod
    def create_bug(self, bug: BugCreate) -> int: ...

    @abstractmethod
    def get_external_bugs(self, bug_id: int) -> list[ExternalBug]: ...

    @abstractmethod
    def add_pull_request_as_external_bug(self, bug_id: int, org: str, repo: str, number: int) -> bool:
        """Link the pull request to the bug. Returns False if the link already existed."""

    @abstractmethod
    def get_sub_components(self, bug_id: int) -> dict[str, list[str]]: ...

    def get_bugs(self, bug_ids: list[int]) -> list[Bug]:
        return [self.get_bug(bug_id) for bug_id in bug_ids]

    def clone_bug(self, source: Bug, description: str, version: list[str]) -> int:
        """Create a copy of source that depends on it, returning the new bug ID."""
        sub_components = self.get_sub_components(source.id)
        new_id = self.create_bug(
            BugCreate(
                product=source.product,
                component=source.component,
                version=version,
                severity=source.severity,
                summary=source.summary,
                description=description,
                sub_components=sub_components,
            )
        )
        self.update_bug(new_id, BugUpdate(depends_on_add=[source.id]))
        return new_id
