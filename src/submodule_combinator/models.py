"""
Data models for the Git submodule combination tool.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple


GITLINK_MODE = "160000"
GITLINK_TYPE = "commit"


@dataclass(frozen=True)
class SubmoduleEntry:
    """A submodule gitlink as recorded in a specific tree.

    Two entries read from different trees describe the same submodule when
    their paths match, so only ``path`` takes part in equality and hashing.
    """

    path: str
    object: str = field(compare=False)
    mode: str = field(default=GITLINK_MODE, compare=False)
    type: str = field(default=GITLINK_TYPE, compare=False)

    @property
    def short_object(self) -> str:
        return self.object[:8]


@dataclass(frozen=True)
class Revision:
    """A commit hash plus the branch names currently pointing at it."""

    sha1: str
    branches: Tuple[str, ...] = ()

    def has_branch(self, name: str) -> bool:
        return name in self.branches

    @property
    def short_sha(self) -> str:
        return self.sha1[:8]

    def display(self) -> str:
        if not self.branches:
            return self.sha1
        return f"{self.sha1} ({', '.join(self.branches)})"

    def __str__(self) -> str:
        return self.display()


class Combination:
    """One complete choice of revision for every submodule in a root tree."""

    def __init__(self, assignments: Optional[Dict[SubmoduleEntry, Revision]] = None) -> None:
        self._assignments: Dict[SubmoduleEntry, Revision] = dict(assignments or {})

    @property
    def entries(self) -> List[SubmoduleEntry]:
        return list(self._assignments.keys())

    @property
    def paths(self) -> List[str]:
        return [entry.path for entry in self._assignments]

    def revision_for(self, path: str) -> Optional[Revision]:
        """Return the revision chosen for the submodule at ``path``, if any."""
        for entry, revision in self._assignments.items():
            if entry.path == path:
                return revision
        return None

    def items(self) -> Iterator[Tuple[SubmoduleEntry, Revision]]:
        return iter(self._assignments.items())

    def merged(self, other: Combination) -> Combination:
        """Return a new combination holding the assignments of both."""
        union = dict(self._assignments)
        union.update(other._assignments)
        return Combination(union)

    def describe(self) -> List[str]:
        return [f"{entry.path} {revision.display()}" for entry, revision in self._assignments.items()]

    def __iter__(self) -> Iterator[SubmoduleEntry]:
        return iter(self._assignments)

    def __len__(self) -> int:
        return len(self._assignments)

    def __getitem__(self, entry: SubmoduleEntry) -> Revision:
        return self._assignments[entry]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Combination):
            return NotImplemented
        if len(self) != len(other):
            return False
        for entry, revision in self._assignments.items():
            theirs = other.revision_for(entry.path)
            if theirs is None or theirs.sha1 != revision.sha1:
                return False
        return True

    def __hash__(self) -> int:
        return hash(frozenset((entry.path, revision.sha1) for entry, revision in self._assignments.items()))

    def __repr__(self) -> str:
        inner = ", ".join(f"{e.path}={r.short_sha}" for e, r in self._assignments.items())
        return f"Combination({inner})"


@dataclass
class ExistingConfiguration:
    """Submodule configuration recorded at an existing superproject commit."""

    commit: str
    entries: List[SubmoduleEntry] = field(default_factory=list)


@dataclass
class SubmoduleConfig:
    """Per-submodule interest configuration.

    ``branches`` holds regular expressions; a revision is interesting when any
    of its branch names fully matches any of them.
    """

    submodule_name: str
    branches: List[str] = field(default_factory=list)

    def branch_matches_interest(self, branch_name: str) -> bool:
        return any(re.fullmatch(pattern, branch_name) for pattern in self.branches)

    def revision_matches_interest(self, revision: Revision) -> bool:
        return any(self.branch_matches_interest(b) for b in revision.branches)


@dataclass
class PlannedCombination:
    """A candidate combination together with the commit it will branch from."""

    combination: Combination
    base_commit: str
    # None when no existing configuration was comparable and the root is used
    difference: Optional[int] = None


@dataclass
class CombinationPlan:
    """Everything computed for a run before the working tree is touched."""

    root_ref: str
    root_commit: str
    module_branches: Dict[SubmoduleEntry, List[Revision]] = field(default_factory=dict)
    generated_count: int = 0
    existing_count: int = 0
    candidates: List[PlannedCombination] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return self.generated_count - len(self.candidates)


@dataclass
class MaterializedCombination:
    """Information about a combination committed to the superproject."""

    commit: str
    base_commit: Optional[str]
    message: str
    combination: Combination
    branch: Optional[str] = None


def short_sha(sha: Optional[str]) -> str:
    return sha[:8] if sha else ""


def format_assignments(combination: Combination, sep: str = ", ") -> str:
    return sep.join(f"{path}@{combination.revision_for(path).short_sha}" for path in combination.paths)


class CombinatorError(Exception):
    """Base exception for submodule combination runs."""

    pass


class GitRepositoryError(CombinatorError):
    """Exception raised for Git repository related errors."""

    pass


class SubmoduleError(CombinatorError):
    """Exception raised for submodule related errors."""

    pass
