"""Human-readable descriptions of the command vocabulary and branch policy."""

from pydantic import BaseModel, ConfigDict

from bugsync.models import BranchPolicy, pretty_states
from bugsync.policy import WILDCARD, PolicyConfig

DESCRIPTION = "Ensures that pull requests reference a valid Bugzilla bug in their title."


class Command(BaseModel):
    model_config = ConfigDict(frozen=True)

    usage: str
    description: str
    deprecated: bool = False


COMMANDS = [
    Command(usage="/bugzilla refresh", description="Check Bugzilla for a valid bug referenced in the PR title"),
    Command(
        usage="/bugzilla assign-qa",
        description="(DEPRECATED) Assign PR to QA contact specified in Bugzilla",
        deprecated=True,
    ),
    Command(usage="/bugzilla cc-qa", description="Request PR review from QA contact specified in Bugzilla"),
]


def _join(items: list[str]) -> str:
    """"a", "a and b", "a, b, and c"."""
    if len(items) <= 2:
        return " and ".join(items)
    return ", ".join(items[:-1]) + f", and {items[-1]}"


def _conditions(policy: BranchPolicy) -> list[str]:
    conditions = []
    if policy.is_open is not None:
        conditions.append("be open" if policy.is_open else "be closed")
    if policy.target_release is not None:
        conditions.append(f'target the "{policy.target_release}" release')
    if policy.valid_states is not None:
        conditions.append(f"be in one of the following states: {pretty_states(policy.valid_states)}")
    if policy.checks_dependents():
        conditions.append("depend on at least one other bug")
    if policy.dependent_bug_states is not None:
        conditions.append(
            f"have all dependent bugs in one of the following states: {pretty_states(policy.dependent_bug_states)}"
        )
    if policy.dependent_bug_target_releases is not None:
        releases = ", ".join(policy.dependent_bug_target_releases)
        conditions.append(f"have all dependent bugs target a release in {releases}")
    return conditions


def _behaviors(policy: BranchPolicy) -> list[str]:
    behaviors = []
    if policy.state_after_validation is not None:
        behaviors.append(f"moved to the {policy.state_after_validation.pretty()} state")
    if policy.add_external_link:
        behaviors.append("updated to refer to the pull request using the external bug tracker")
    if policy.state_after_merge is not None:
        behaviors.append(
            f"moved to the {policy.state_after_merge.pretty()} state when all linked pull requests are merged"
        )
    return behaviors


def describe_policy(policy: BranchPolicy) -> str:
    conditions = _conditions(policy)
    text = f"valid bugs must {_join(conditions)}." if conditions else "any referenced bug is valid."
    behaviors = _behaviors(policy)
    if behaviors:
        text += f" After being linked to a pull request, bugs will be {_join(behaviors)}."
    return text


def describe_repo(config: PolicyConfig, org: str, repo: str) -> list[str]:
    """One line per configured branch of org/repo, the wildcard branch first."""
    lines = []
    for branch in config.configured_branches(org, repo):
        where = "by default" if branch == WILDCARD else f'on the "{branch}" branch'
        lines.append(f"{where}, {describe_policy(config.options_for(org, repo, branch))}")
    return lines
