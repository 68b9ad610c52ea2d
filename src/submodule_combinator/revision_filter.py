"""
Strategies deciding which submodule revisions are worth combining.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from .models import Revision, SubmoduleConfig


logger = logging.getLogger(__name__)


class RevisionFilter(ABC):
    """Abstract predicate over a submodule and its candidate revisions."""

    @abstractmethod
    def filter_revisions(self, name: str, revisions: Iterable[Revision]) -> List[Revision]:
        """
        Return the subset of revisions considered interesting for a submodule.

        Args:
            name: Path of the submodule in the superproject tree
            revisions: Candidate (tip) revisions discovered in the submodule

        Returns:
            A new list; the input is left untouched. An empty list is valid and
            means the submodule contributes no candidates.
        """
        pass


class RootBranchFilter(RevisionFilter):
    """Keep only revisions carrying a branch with the same name as the superproject root.

    When combining the superproject's ``origin/release-2``, each submodule only
    contributes its ``origin/release-2``.
    """

    def __init__(self, root_branch: str) -> None:
        self.root_branch = root_branch

    def filter_revisions(self, name: str, revisions: Iterable[Revision]) -> List[Revision]:
        kept = [r for r in revisions if r.has_branch(self.root_branch)]
        if not kept:
            logger.warning(f"Submodule {name} has no revision on branch {self.root_branch}")
        return kept


class ConfiguredInterestFilter(RevisionFilter):
    """Apply a per-submodule interest configuration; unconfigured submodules pass through."""

    def __init__(self, configs: Optional[Iterable[SubmoduleConfig]] = None) -> None:
        self._configs: Dict[str, SubmoduleConfig] = {}
        for config in configs or []:
            self._configs[config.submodule_name] = config

    def get_submodule_config(self, name: str) -> Optional[SubmoduleConfig]:
        return self._configs.get(name)

    def filter_revisions(self, name: str, revisions: Iterable[Revision]) -> List[Revision]:
        config = self.get_submodule_config(name)
        if config is None:
            return list(revisions)
        return [r for r in revisions if config.revision_matches_interest(r)]
