"""Branch policy resolution from a layered TOML file.

Layout (every table is optional):

    [default."*"]                          # all orgs, all branches
    [default."release-4.4"]                # all orgs, one branch
    [orgs.my-org.default."*"]
    [orgs.my-org.default."release-4.4"]
    [orgs.my-org.repos.my-repo.branches."*"]
    [orgs.my-org.repos.my-repo.branches."release-4.4"]

Later layers in that list override fields set by earlier ones.
"""

from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path

import tomlkit
from pydantic import BaseModel, ConfigDict

from bugsync.models import BranchPolicy

WILDCARD = "*"


def _layer(table: object, key: str) -> dict:
    if not isinstance(table, Mapping):
        return {}
    value = table.get(key)
    if not isinstance(value, Mapping):
        return {}
    # Validate each layer on its own, then keep only the fields it set.
    return BranchPolicy.model_validate(dict(value)).model_dump(exclude_unset=True)


class PolicyConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    default: dict = {}
    orgs: dict = {}

    def _layers(self, org: str, repo: str, branch: str) -> list[dict]:
        org_table = self.orgs.get(org, {})
        org_default = org_table.get("default", {})
        branches = org_table.get("repos", {}).get(repo, {}).get("branches", {})
        layers = []
        for table in (self.default, org_default, branches):
            layers.append(_layer(table, WILDCARD))
            if branch != WILDCARD:
                layers.append(_layer(table, branch))
        return layers

    def options_for(self, org: str, repo: str, branch: str) -> BranchPolicy:
        merged: dict = {}
        for layer in self._layers(org, repo, branch):
            merged.update(layer)
        return BranchPolicy.model_validate(merged)

    def configured_branches(self, org: str, repo: str) -> list[str]:
        """Branch names with explicit config for the repo, "*" first.

        Once an org has its own table, the global per-branch tables are not listed for it.
        """
        names: set[str] = set()
        if org in self.orgs:
            org_table = self.orgs[org]
            tables = [org_table.get("default", {}), org_table.get("repos", {}).get(repo, {}).get("branches", {})]
        else:
            tables = [self.default]
        for table in tables:
            names.update(k for k, v in table.items() if isinstance(v, Mapping))
        names.discard(WILDCARD)
        return [WILDCARD, *sorted(names)]


def parse_policy(text: str) -> PolicyConfig:
    doc = tomlkit.parse(text).unwrap()
    return PolicyConfig(default=doc.get("default", {}), orgs=doc.get("orgs", {}))


@lru_cache(maxsize=4)
def load_policy(path: Path) -> PolicyConfig:
    """Load the policy file, returning an empty (fully unconstrained) config if missing."""
    if not path.exists():
        return PolicyConfig()
    return parse_policy(path.read_text())
