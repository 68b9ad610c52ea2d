"""
Index of submodule configurations already recorded in superproject history.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, TYPE_CHECKING

from .models import Combination, ExistingConfiguration, SubmoduleEntry

if TYPE_CHECKING:
    from .git_manager import GitManager


logger = logging.getLogger(__name__)


def difference(combination: Combination, entries: Sequence[SubmoduleEntry]) -> int:
    """
    Compute how many submodules differ between a candidate and a recorded configuration.

    Returns:
        -1 if the two do not cover the same submodule paths (not comparable),
        otherwise the number of submodules whose revision hash differs.
    """
    if len(entries) != len(combination):
        return -1

    count = 0
    for entry in entries:
        revision = combination.revision_for(entry.path)
        if revision is None:
            return -1
        if entry.object != revision.sha1:
            count += 1
    return count


def matches(combination: Combination, entries: Sequence[SubmoduleEntry]) -> bool:
    """Does the configuration check out exactly the same submodule revisions?"""
    return difference(combination, entries) == 0


class ExistingCombinationIndex:
    """Maps each reachable superproject commit to the submodules recorded at it.

    Built once per run; combinations committed later in the same run are not
    added to it.
    """

    def __init__(self, configurations: Optional[Sequence[ExistingConfiguration]] = None) -> None:
        # Insertion order is the scan order used for tie-breaking
        self._entries: Dict[str, List[SubmoduleEntry]] = {}
        for config in configurations or []:
            self._entries[config.commit] = list(config.entries)

    @classmethod
    def build(cls, git_manager: GitManager) -> ExistingCombinationIndex:
        """Scan every commit reachable from any ref of the superproject."""
        commits = git_manager.list_all_commits()
        logger.info(f"Indexing submodule configurations of {len(commits)} commit(s)")
        index = cls()
        for sha in commits:
            index._entries[sha] = git_manager.list_submodules(sha)
        return index

    @property
    def configurations(self) -> Iterator[ExistingConfiguration]:
        for sha, entries in self._entries.items():
            yield ExistingConfiguration(commit=sha, entries=list(entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, commit: object) -> bool:
        return commit in self._entries

    def find_matching_commit(self, combination: Combination) -> Optional[str]:
        """Return the first indexed commit recording exactly this combination."""
        for sha, entries in self._entries.items():
            if matches(combination, entries):
                return sha
        return None

    def remove_existing(self, combinations: Sequence[Combination]) -> List[Combination]:
        """
        Drop candidates that already exist somewhere in history.

        Returns:
            The surviving candidates, in their original order
        """
        remaining = []
        for combination in combinations:
            sha = self.find_matching_commit(combination)
            if sha is not None:
                logger.debug(f"Combination {combination!r} already exists at {sha[:8]}")
                continue
            remaining.append(combination)

        logger.info(
            f"{len(combinations) - len(remaining)} of {len(combinations)} combination(s) already exist"
        )
        return remaining

    def select_base(self, combination: Combination, default: str) -> Tuple[str, Optional[int]]:
        """
        Pick the existing commit whose configuration differs least from the candidate.

        A difference of 1 is the best possible reuse and ends the scan early.
        Equal differences keep the commit scanned first.

        Returns:
            Tuple of (commit, difference); (default, None) when no configuration
            is comparable.
        """
        best_sha: Optional[str] = None
        best: Optional[int] = None
        for sha, entries in self._entries.items():
            value = difference(combination, entries)
            if value > 0 and (best is None or value < best):
                best = value
                best_sha = sha
            if best == 1:
                break

        if best_sha is None:
            return default, None
        return best_sha, best
