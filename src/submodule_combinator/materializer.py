"""
Persisting a chosen combination as a new superproject commit.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .git_manager import GitManager
from .models import Combination, MaterializedCombination


logger = logging.getLogger(__name__)


COMMIT_MESSAGE_HEADER = "Generated submodule combination of:"
BRANCH_PREFIX = "combine"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RunContext:
    """Branch naming state for one combination run."""

    run_started_ms: int = field(default_factory=_now_ms)
    sequence: int = 0

    def next_branch_name(self) -> str:
        self.sequence += 1
        return f"{BRANCH_PREFIX}-{self.run_started_ms}-{self.sequence}"


def build_commit_message(combination: Combination) -> str:
    # Blank line keeps the header alone as the commit subject
    lines = [COMMIT_MESSAGE_HEADER, ""]
    lines.extend(f"  {line}" for line in combination.describe())
    return "\n".join(lines) + "\n"


class CombinationMaterializer:
    """Checks out, stages and commits one combination in the superproject."""

    def __init__(
        self,
        git_manager: GitManager,
        run_context: Optional[RunContext] = None,
        git_manager_factory: Callable[[Path], GitManager] = GitManager,
    ) -> None:
        self.git_manager = git_manager
        self.run_context = run_context or RunContext()
        self.git_manager_factory = git_manager_factory

    def materialize(
        self,
        combination: Combination,
        create_branch: bool = True,
        base_commit: Optional[str] = None,
    ) -> MaterializedCombination:
        """
        Record ``combination`` as a new commit on top of the current checkout.

        The base commit must already be checked out. Any failure propagates
        immediately and the working tree is left as the last successful step
        produced it.
        """
        branch_name = None
        if create_branch:
            branch_name = self.run_context.next_branch_name()
            self.git_manager.create_branch(branch_name)
            self.git_manager.checkout_commit(branch_name)

        message = build_commit_message(combination)
        logger.info(message.rstrip())

        workspace = self.git_manager.working_dir
        for entry, revision in combination.items():
            submodule_gm = self.git_manager_factory(workspace / entry.path)
            submodule_gm.checkout_commit(revision.sha1, force=True)
            self.git_manager.add_paths([entry.path])

        commit = self.git_manager.commit(message)
        logger.info(f"Committed combination {commit[:8]}" + (f" on {branch_name}" if branch_name else ""))

        return MaterializedCombination(
            commit=commit,
            base_commit=base_commit,
            message=message,
            combination=combination,
            branch=branch_name,
        )
