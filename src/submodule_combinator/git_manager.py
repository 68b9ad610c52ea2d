"""
Git repository management and operations.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union
from git import Repo, InvalidGitRepositoryError, NoSuchPathError
from git.exc import GitCommandError

from .models import GITLINK_TYPE, GitRepositoryError, Revision, SubmoduleEntry


logger = logging.getLogger(__name__)


class GitManager:
    """Manages Git operations for a superproject or one of its submodules."""

    def __init__(self, repo_path: Optional[Path] = None, search_parent_directories: bool = False) -> None:
        """Initialize Git manager with optional repository path."""
        self.repo_path = Path(repo_path or Path.cwd()).resolve()
        self.search_parent_directories = search_parent_directories
        self._repo: Optional[Repo] = None

    # --- Path normalization helpers ---
    def _to_repo_relative_str(self, p: Union[str, Path]) -> str:
        """Return a POSIX-style path relative to repo root for any given path.

        If `p` is absolute and inside the repository working directory, it is
        converted to a relative path. If `p` is already relative, it is
        normalized to POSIX separators.
        """
        base = Path(self.repo.working_dir).resolve()
        pp = Path(p)
        if not pp.is_absolute():
            return pp.as_posix()
        try:
            return pp.resolve().relative_to(base).as_posix()
        except ValueError:
            logger.debug(f"Path '{pp.as_posix()}' not under repo root '{base}'; passing as-is")
            return pp.as_posix()

    @property
    def repo(self) -> Repo:
        """Get the Git repository instance."""
        if self._repo is None:
            self._repo = self._discover_repository()
        return self._repo

    @property
    def working_dir(self) -> Path:
        return Path(self.repo.working_dir)

    def _discover_repository(self) -> Repo:
        """Open the repository at ``repo_path``.

        Parent directories are only searched when asked for: an uninitialized
        submodule directory must not resolve to the enclosing superproject.
        """
        logger.debug(f"Discovering repository in: {self.repo_path}")
        try:
            repo = Repo(self.repo_path, search_parent_directories=self.search_parent_directories)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            where = " or any parent directory" if self.search_parent_directories else ""
            raise GitRepositoryError(f"No Git repository found at {self.repo_path}{where}") from e
        logger.info(f"Found Git repository at: {repo.working_dir}")
        return repo

    def get_current_branch(self) -> Optional[str]:
        """Get the current branch name, or None when HEAD is detached."""
        try:
            if self.repo.head.is_detached:
                return None
            return self.repo.active_branch.name
        except (TypeError, ValueError) as e:
            logger.error(f"Error getting current branch: {e}")
            raise GitRepositoryError(f"Could not determine current branch: {e}") from e

    def get_head_commit(self) -> str:
        return self.resolve("HEAD")

    # --- Revision discovery ---
    def resolve(self, ref: str) -> str:
        """Resolve a revision expression to exactly one commit hash."""
        try:
            output = self.repo.git.rev_parse("--verify", f"{ref}^{{commit}}")
        except GitCommandError as e:
            logger.error(f"Failed to resolve {ref} in {self.repo_path}: {e}")
            raise GitRepositoryError(f"Could not resolve {ref}: {e}") from e

        lines = [ln.strip() for ln in output.splitlines() if ln.strip()]
        if len(lines) != 1:
            raise GitRepositoryError(f"Ambiguous result resolving {ref}: {output!r}")
        return lines[0]

    def list_all_commits(self) -> List[str]:
        """Return every commit reachable from any ref, newest first."""
        try:
            output = self.repo.git.rev_list("--all")
        except GitCommandError as e:
            logger.error(f"Error listing commits in {self.repo_path}: {e}")
            raise GitRepositoryError(f"Failed to list commits: {e}") from e
        return [ln.strip() for ln in output.splitlines() if ln.strip()]

    def list_submodules(self, commitish: str) -> List[SubmoduleEntry]:
        """Return the gitlink entries recorded in the tree of ``commitish``.

        Uses `git ls-tree -r -z` so paths with spaces or unusual characters are
        returned verbatim. Each record looks like "160000 commit <sha>\\t<path>".
        """
        try:
            output = self.repo.git.ls_tree("-r", "-z", commitish)
        except GitCommandError as e:
            logger.error(f"Error listing tree of {commitish} in {self.repo_path}: {e}")
            raise GitRepositoryError(f"Failed to list submodules at {commitish}: {e}") from e

        entries: List[SubmoduleEntry] = []
        for record in output.split("\0"):
            if not record:
                continue
            meta, sep, path = record.partition("\t")
            parts = meta.split()
            if not sep or len(parts) != 3 or not path:
                raise GitRepositoryError(f"Malformed ls-tree record at {commitish}: {record!r}")
            mode, obj_type, obj = parts
            if obj_type != GITLINK_TYPE:
                continue
            entries.append(SubmoduleEntry(path=path, object=obj, mode=mode, type=obj_type))
        return entries

    def list_branch_revisions(self) -> List[Revision]:
        """Group local heads and remote-tracking branches by the commit they point at.

        Local branches are reported by short name (e.g. "main"), remote ones
        with their remote prefix (e.g. "origin/main"). Symbolic refs such as
        "origin/HEAD" are skipped.
        """
        by_sha: Dict[str, List[str]] = {}
        try:
            for head in self.repo.heads:
                by_sha.setdefault(head.commit.hexsha, []).append(head.name)
            for remote in self.repo.remotes:
                for ref in remote.refs:
                    if ref.remote_head == "HEAD":
                        continue
                    by_sha.setdefault(ref.commit.hexsha, []).append(ref.name)
        except (GitCommandError, ValueError) as e:
            logger.error(f"Error listing branches in {self.repo_path}: {e}")
            raise GitRepositoryError(f"Failed to list branches: {e}") from e

        return [Revision(sha1=sha, branches=tuple(names)) for sha, names in by_sha.items()]

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        try:
            return self.repo.is_ancestor(ancestor, descendant)
        except GitCommandError as e:
            raise GitRepositoryError(f"Failed to compare {ancestor} and {descendant}: {e}") from e

    def filter_tip_branches(self, revisions: List[Revision]) -> List[Revision]:
        """Drop revisions that are ancestors of another revision in the list.

        Given
            ----A----B
                 \\---C
        only B and C are kept: A is already contained in both.
        """
        tips = list(revisions)
        i = 0
        while i < len(tips):
            removed_i = False
            j = i + 1
            while j < len(tips):
                ri, rj = tips[i], tips[j]
                if ri.sha1 == rj.sha1:
                    j += 1
                    continue
                if self.is_ancestor(ri.sha1, rj.sha1):
                    del tips[i]
                    removed_i = True
                    break
                if self.is_ancestor(rj.sha1, ri.sha1):
                    del tips[j]
                    continue
                j += 1
            if not removed_i:
                i += 1
        return tips

    def list_branch_tips(self) -> List[Revision]:
        """Return the tip revisions of all branches in this repository."""
        revisions = self.list_branch_revisions()
        tips = self.filter_tip_branches(revisions)
        logger.debug(
            f"{len(tips)} tip revision(s) out of {len(revisions)} in {self.repo_path}"
        )
        return tips

    # --- Working tree mutation ---
    def checkout_commit(self, commitish: str, force: bool = False) -> None:
        """Checkout a commit-ish in this repository."""
        args = ["-f", commitish] if force else [commitish]
        try:
            self.repo.git.checkout(*args)
            logger.debug(f"Checked out {commitish} in {self.repo_path}")
        except GitCommandError as e:
            logger.error(f"Failed to checkout {commitish} in {self.repo.working_dir}: {e}")
            raise GitRepositoryError(f"Failed to checkout {commitish}: {e}") from e

    def create_branch(self, branch_name: str) -> None:
        """Create a local branch at HEAD; fails if the name is taken."""
        try:
            self.repo.git.branch(branch_name)
            logger.info(f"Created branch {branch_name} in {self.repo_path}")
        except GitCommandError as e:
            logger.error(f"Error creating branch {branch_name}: {e}")
            raise GitRepositoryError(f"Cannot create branch {branch_name}: {e}") from e

    def add_paths(self, paths: List[Union[str, Path]]) -> None:
        """Stage the given paths in this repository."""
        try:
            for p in paths:
                # Porcelain 'git add' records gitlinks for submodule paths
                self.repo.git.add("--", self._to_repo_relative_str(p))
        except GitCommandError as e:
            logger.error(f"Failed to add paths {paths} in {self.repo.working_dir}: {e}")
            raise GitRepositoryError(f"Failed to stage paths: {e}") from e

    def commit(self, message: str) -> str:
        """Commit the index with ``message`` and return the new commit hash."""
        try:
            self.repo.git.commit("-m", message)
        except GitCommandError as e:
            logger.error(f"Commit failed in {self.repo.working_dir}: {e}")
            raise GitRepositoryError(f"Cannot commit: {e}") from e
        return self.repo.head.commit.hexsha

    # --- Working tree / index cleanliness ---
    def is_index_clean(self) -> bool:
        """Return True if there are no staged or unstaged changes (untracked ignored)."""
        try:
            return not self.repo.is_dirty(index=True, working_tree=True, untracked_files=False)
        except GitCommandError as e:
            raise GitRepositoryError(f"Failed to inspect working tree: {e}") from e

    def get_dirty_paths(self) -> List[str]:
        """Return list of paths that are staged or unstaged (untracked ignored)."""
        try:
            output = self.repo.git.status("--porcelain")
        except GitCommandError as e:
            raise GitRepositoryError(f"Failed to read status: {e}") from e
        dirty: List[str] = []
        for line in output.splitlines():
            # First two columns are status codes; path follows
            if not line.strip() or line.startswith("??"):
                continue
            path = line[3:].strip()
            if path:
                dirty.append(path)
        return dirty
