"""Evaluating a bug against a branch policy.

Each policy rule is a Check. They run in CHECKS order and each one does
nothing when its policy field is unset, so the verdict's lines always come
out in the same order for the same inputs.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from bugsync.comments import bug_link
from bugsync.models import BranchPolicy, Bug, ValidationVerdict, matches_any, pretty_states


def bug_state_text(bug: Bug) -> str:
    return f"{bug.status} ({bug.resolution})" if bug.resolution else bug.status


def _quoted(releases: list[str]) -> str:
    return ", ".join(f'"{release}"' for release in releases)


class Findings(BaseModel):
    validations: list[str] = []
    reasons: list[str] = []


class Check(ABC):
    @abstractmethod
    def applies(self, policy: BranchPolicy) -> bool: ...

    @abstractmethod
    def evaluate(
        self, bug: Bug, dependents: list[Bug], policy: BranchPolicy, endpoint: str, found: Findings
    ) -> None: ...


class OpenCheck(Check):
    def applies(self, policy: BranchPolicy) -> bool:
        return policy.is_open is not None

    def evaluate(self, bug: Bug, dependents: list[Bug], policy: BranchPolicy, endpoint: str, found: Findings) -> None:
        if policy.is_open and bug.is_open:
            found.validations.append("bug is open, matching expected state (open)")
        elif policy.is_open:
            found.reasons.append("expected the bug to be open, but it isn't")
        elif not bug.is_open:
            found.validations.append("bug isn't open, matching expected state (not open)")
        else:
            found.reasons.append("expected the bug to not be open, but it is")


class TargetReleaseCheck(Check):
    def applies(self, policy: BranchPolicy) -> bool:
        return policy.target_release is not None

    def evaluate(self, bug: Bug, dependents: list[Bug], policy: BranchPolicy, endpoint: str, found: Findings) -> None:
        want = policy.target_release
        if want in bug.target_release:
            found.validations.append(
                f"bug target release ({want}) matches configured target release for branch ({want})"
            )
        elif bug.target_release:
            found.reasons.append(
                f'expected the bug to target the "{want}" release, but it targets {_quoted(bug.target_release)} instead'
            )
        else:
            found.reasons.append(f'expected the bug to target the "{want}" release, but no target release was set')


class StateCheck(Check):
    """A bug already moved to the post-validation state also counts as valid."""

    def applies(self, policy: BranchPolicy) -> bool:
        return policy.valid_states is not None

    def evaluate(self, bug: Bug, dependents: list[Bug], policy: BranchPolicy, endpoint: str, found: Findings) -> None:
        allowed = policy.allowed_states() or []
        if matches_any(allowed, bug.status, bug.resolution):
            found.validations.append(
                f"bug is in the state {bug_state_text(bug)}, "
                f"which is one of the valid states ({pretty_states(allowed)})"
            )
        else:
            found.reasons.append(
                f"expected the bug to be in one of the following states: {pretty_states(allowed)}, "
                f"but it is {bug_state_text(bug)} instead"
            )


class DependentsCheck(Check):
    def applies(self, policy: BranchPolicy) -> bool:
        return policy.checks_dependents()

    def evaluate(self, bug: Bug, dependents: list[Bug], policy: BranchPolicy, endpoint: str, found: Findings) -> None:
        states = policy.dependent_bug_states
        releases = policy.dependent_bug_target_releases
        if not dependents:
            wanted = []
            if states is not None:
                wanted.append(f"in one of the following states: {pretty_states(states)}")
            if releases is not None:
                wanted.append(f"targeting a release in {', '.join(releases)}")
            found.reasons.append(
                f"expected {bug_link(bug.id, endpoint)} to depend on a bug {' and '.join(wanted)}, "
                "but no dependents were found"
            )
            return

        all_satisfied = True
        for dependent in dependents:
            link = bug_link(dependent.id, endpoint)
            if states is not None:
                if matches_any(states, dependent.status, dependent.resolution):
                    found.validations.append(
                        f"dependent bug {link} is in the state {bug_state_text(dependent)}, "
                        f"which is one of the valid states ({pretty_states(states)})"
                    )
                else:
                    all_satisfied = False
                    found.reasons.append(
                        f"expected dependent {link} to be in one of the following states: {pretty_states(states)}, "
                        f"but it is {bug_state_text(dependent)} instead"
                    )
            if releases is not None:
                matching = [r for r in dependent.target_release if r in releases]
                if matching:
                    found.validations.append(
                        f'dependent {link} targets the "{matching[0]}" release, '
                        f"which is one of the valid target releases: {', '.join(releases)}"
                    )
                elif dependent.target_release:
                    all_satisfied = False
                    found.reasons.append(
                        f"expected dependent {link} to target a release in {', '.join(releases)}, "
                        f"but it targets {_quoted(dependent.target_release)} instead"
                    )
                else:
                    all_satisfied = False
                    found.reasons.append(
                        f"expected dependent {link} to target a release in {', '.join(releases)}, "
                        "but no target release was set"
                    )
        if all_satisfied:
            found.validations.append("bug has dependents")


CHECKS: tuple[Check, ...] = (OpenCheck(), TargetReleaseCheck(), StateCheck(), DependentsCheck())


def validate_bug(bug: Bug, dependents: list[Bug], policy: BranchPolicy, endpoint: str) -> ValidationVerdict:
    """Evaluate bug (and its already-fetched direct dependencies) against policy."""
    found = Findings()
    for check in CHECKS:
        if check.applies(policy):
            check.evaluate(bug, dependents, policy, endpoint, found)
    return ValidationVerdict(valid=not found.reasons, validations=found.validations, reasons=found.reasons)
