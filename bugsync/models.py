"""Shared pydantic models passed between the clients, the normalizer and the handler."""

from pydantic import BaseModel, ConfigDict, model_validator


class BugState(BaseModel):
    """A (status, resolution) pair as configured in branch policy.

    An empty resolution matches any resolution for the status; an empty status
    with a resolution matches that resolution under any status.
    """

    model_config = ConfigDict(frozen=True)

    status: str = ""
    resolution: str = ""

    def matches(self, status: str, resolution: str) -> bool:
        if not self.resolution:
            return self.status == status
        if not self.status:
            return self.resolution == resolution
        return self.status == status and self.resolution == resolution

    def pretty(self) -> str:
        if self.status and self.resolution:
            return f"{self.status} ({self.resolution})"
        if self.resolution:
            return f"any status with resolution {self.resolution}"
        return self.status


def pretty_states(states: list[BugState]) -> str:
    return ", ".join(state.pretty() for state in states)


def matches_any(states: list[BugState], status: str, resolution: str) -> bool:
    return any(state.matches(status, resolution) for state in states)


class BranchPolicy(BaseModel):
    """Per-branch rules. A field left as None is unconstrained."""

    model_config = ConfigDict(frozen=True)

    validate_by_default: bool | None = None
    is_open: bool | None = None
    target_release: str | None = None
    valid_states: list[BugState] | None = None
    dependent_bug_states: list[BugState] | None = None
    dependent_bug_target_releases: list[str] | None = None
    state_after_validation: BugState | None = None
    state_after_merge: BugState | None = None
    add_external_link: bool | None = None

    def allowed_states(self) -> list[BugState] | None:
        """Valid states plus the post-validation state, or None if neither is set."""
        if self.valid_states is None and self.state_after_validation is None:
            return None
        allowed = list(self.valid_states or [])
        if self.state_after_validation is not None and self.state_after_validation not in allowed:
            allowed.append(self.state_after_validation)
        return allowed

    def checks_dependents(self) -> bool:
        return self.dependent_bug_states is not None or self.dependent_bug_target_releases is not None


class Bug(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    status: str = ""
    resolution: str = ""
    is_open: bool = False
    target_release: list[str] = []
    severity: str = ""
    product: str = ""
    component: list[str] = []
    version: list[str] = []
    summary: str = ""
    depends_on: list[int] = []
    blocks: list[int] = []
    qa_contact: str | None = None  # email address

    def state(self) -> BugState:
        return BugState(status=self.status, resolution=self.resolution)


class BugComment(BaseModel):
    model_config = ConfigDict(frozen=True)

    bug_id: int
    count: int
    text: str


class ExternalBug(BaseModel):
    """A pull request linked to a bug through the external tracker."""

    model_config = ConfigDict(frozen=True)

    bug_id: int
    org: str
    repo: str
    number: int

    @property
    def external_id(self) -> str:
        return f"{self.org}/{self.repo}/pull/{self.number}"


class BugUpdate(BaseModel):
    """Fields to change on a bug. None means leave untouched."""

    model_config = ConfigDict(frozen=True)

    status: str | None = None
    resolution: str | None = None
    depends_on_add: list[int] | None = None


class BugCreate(BaseModel):
    model_config = ConfigDict(frozen=True)

    product: str
    component: list[str]
    version: list[str]
    severity: str
    summary: str
    description: str
    sub_components: dict[str, list[str]] = {}


class PullRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    org: str
    repo: str
    number: int
    title: str
    body: str = ""
    state: str = "open"  # "open" | "closed"
    merged: bool = False
    base_ref: str = ""
    html_url: str = ""
    author: str = ""


class Event(BaseModel):
    """Normalized intent for one webhook delivery.

    body is the text quoted back in the reply: the PR title for pull request
    deliveries, the comment body for slash-commands.
    """

    model_config = ConfigDict(frozen=True)

    org: str
    repo: str
    base_ref: str
    number: int
    body: str
    html_url: str = ""
    login: str = ""
    bug_id: int | None = None
    missing: bool = False
    merged: bool = False
    cherrypick: bool = False
    cherrypick_from: int | None = None
    cherrypick_to: str | None = None
    assign: bool = False
    cc: bool = False

    @model_validator(mode="after")
    def _check_reference(self) -> "Event":
        if self.missing and self.bug_id is not None:
            raise ValueError("an event cannot both reference a bug and be missing one")
        if self.cherrypick and self.bug_id is not None:
            raise ValueError("cherry-pick events resolve their bug from the source pull request")
        if self.cherrypick and self.cherrypick_from is None:
            raise ValueError("cherry-pick events need the source pull request number")
        return self


class ValidationVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool
    validations: list[str] = []
    reasons: list[str] = []


class Outcome(BaseModel):
    """What handling an event did, for the transport to log or return."""

    model_config = ConfigDict(frozen=True)

    status: str
    comment: str | None = None
