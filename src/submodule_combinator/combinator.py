"""
Main combination logic for a superproject and its submodules.

A common use of submodules is a parent "configuration" project tying together
the right versions of its children. Speculatively committing every combination
of the children's branches makes it possible to build them all and find out
which ones no longer work together.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from .combination_generator import count_combinations, create_combinations
from .existing_combinations import ExistingCombinationIndex
from .git_manager import GitManager
from .materializer import CombinationMaterializer, RunContext
from .models import (
    CombinationPlan,
    MaterializedCombination,
    PlannedCombination,
    Revision,
    SubmoduleConfig,
    SubmoduleEntry,
    SubmoduleError,
)
from .revision_filter import ConfiguredInterestFilter, RevisionFilter, RootBranchFilter


logger = logging.getLogger(__name__)


class SubmoduleCombinator:
    """Creates, in the local superproject, any submodule combinations not yet committed."""

    def __init__(
        self,
        root_path: Optional[Path] = None,
        revision_filter: Optional[RevisionFilter] = None,
        *,
        root_ref: str = "HEAD",
        select_nearest_base: bool = True,
        create_branches: bool = True,
        git_manager: Optional[GitManager] = None,
        git_manager_factory: Callable[[Path], GitManager] = GitManager,
        run_context: Optional[RunContext] = None,
    ) -> None:
        self.root_path = Path(root_path or Path.cwd())
        self.revision_filter = revision_filter or ConfiguredInterestFilter()
        self.root_ref = root_ref
        self.select_nearest_base = select_nearest_base
        self.create_branches = create_branches
        self.git_manager_factory = git_manager_factory
        self.git_manager = git_manager or GitManager(self.root_path, search_parent_directories=True)
        self.run_context = run_context or RunContext()
        self.materializer = CombinationMaterializer(
            self.git_manager, self.run_context, git_manager_factory
        )

    @classmethod
    def for_root_branch(
        cls, root_branch: str, root_path: Optional[Path] = None, **kwargs
    ) -> SubmoduleCombinator:
        """Combine only the submodule branches named like ``root_branch``.

        Every combination branches from the head of ``root_branch``.
        """
        return cls(
            root_path,
            RootBranchFilter(root_branch),
            root_ref=root_branch,
            select_nearest_base=False,
            **kwargs,
        )

    @classmethod
    def for_submodule_configs(
        cls,
        configs: Iterable[SubmoduleConfig],
        root_path: Optional[Path] = None,
        **kwargs,
    ) -> SubmoduleCombinator:
        """Combine every configured-interesting revision, branching off the closest commit."""
        return cls(
            root_path,
            ConfiguredInterestFilter(configs),
            root_ref="HEAD",
            select_nearest_base=True,
            **kwargs,
        )

    @property
    def workspace(self) -> Path:
        return self.git_manager.working_dir

    def get_module_branches(self) -> Dict[SubmoduleEntry, List[Revision]]:
        """
        Find the interesting tip revisions of every submodule present at the root.

        Returns:
            Mapping of submodule entry (as recorded at the root) to its
            candidate revisions, in tree order
        """
        module_branches: Dict[SubmoduleEntry, List[Revision]] = {}

        for submodule in self.git_manager.list_submodules(self.root_ref):
            subdir = self.workspace / submodule.path
            if not (subdir / ".git").exists():
                raise SubmoduleError(
                    f"Submodule {submodule.path} at {subdir} is not initialized"
                )

            tips = self.git_manager_factory(subdir).list_branch_tips()
            module_branches[submodule] = self.revision_filter.filter_revisions(
                submodule.path, tips
            )

        for entry, revisions in module_branches.items():
            listing = " ".join(r.display() for r in revisions) or "(none)"
            logger.info(f"Submodule {entry.path} branches {listing}")

        return module_branches

    def validate_repository_state(self) -> List[str]:
        """
        Check that nothing uncommitted would be lost by the forced checkouts of a run.

        Returns:
            List of validation errors (empty if all good)
        """
        errors = []
        dirty = self.git_manager.get_dirty_paths()
        if dirty:
            errors.append(f"superproject: uncommitted changes in {', '.join(dirty)}")

        for submodule in self.git_manager.list_submodules(self.root_ref):
            subdir = self.workspace / submodule.path
            if not (subdir / ".git").exists():
                errors.append(f"{submodule.path}: not initialized")
                continue
            if not self.git_manager_factory(subdir).is_index_clean():
                errors.append(f"{submodule.path}: has uncommitted changes")

        return errors

    def get_existing_combinations(self) -> ExistingCombinationIndex:
        """Look at the entire history and find all submodule combinations in it."""
        return ExistingCombinationIndex.build(self.git_manager)

    def plan_combinations(self) -> CombinationPlan:
        """
        Work out which combinations to create and where each one starts from.

        Nothing in the working tree is modified.
        """
        root_commit = self.git_manager.resolve(self.root_ref)
        logger.info(f"Planning combinations for {self.root_ref} ({root_commit[:8]})")

        module_branches = self.get_module_branches()
        combinations = create_combinations(module_branches)
        logger.info(
            f"There are {count_combinations(module_branches)} submodule/revision combinations possible"
        )

        index = self.get_existing_combinations()
        combinations = index.remove_existing(combinations)
        logger.info(f"There are {len(combinations)} configurations that could be generated")

        plan = CombinationPlan(
            root_ref=self.root_ref,
            root_commit=root_commit,
            module_branches=module_branches,
            generated_count=count_combinations(module_branches),
            existing_count=len(index),
        )
        for combination in combinations:
            if self.select_nearest_base:
                base, diff = index.select_base(combination, root_commit)
            else:
                base, diff = root_commit, None
            plan.candidates.append(
                PlannedCombination(combination=combination, base_commit=base, difference=diff)
            )
        return plan

    def execute_plan(self, plan: CombinationPlan) -> List[MaterializedCombination]:
        """Commit every planned combination in turn; stops at the first failure."""
        created: List[MaterializedCombination] = []
        total = len(plan.candidates)
        for i, planned in enumerate(plan.candidates, 1):
            logger.info(f"Creating combination {i}/{total} from {planned.base_commit[:8]}")
            self.git_manager.checkout_commit(planned.base_commit, force=True)
            created.append(
                self.materializer.materialize(
                    planned.combination,
                    create_branch=self.create_branches,
                    base_commit=planned.base_commit,
                )
            )
        logger.info(f"Created {len(created)} combination commit(s)")
        return created

    def create_submodule_combinations(self) -> List[MaterializedCombination]:
        """Create, and commit to the repository, every missing submodule combination."""
        return self.execute_plan(self.plan_combinations())
