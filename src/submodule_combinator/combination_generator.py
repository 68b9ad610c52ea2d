"""
Cartesian-product generation of submodule revision combinations.
"""

from __future__ import annotations

from typing import List, Mapping, Sequence, Tuple

from .models import Combination, Revision, SubmoduleEntry


def create_combinations(
    module_branches: Mapping[SubmoduleEntry, Sequence[Revision]],
) -> List[Combination]:
    """
    Build every combination choosing exactly one revision per submodule.

    e.g.
    given modA -> branchA, branchB
          modB -> branchC, branchD

    supplies
        (modA->branchA), (modB->branchC)
        (modA->branchA), (modB->branchD)
        (modA->branchB), (modB->branchC)
        (modA->branchB), (modB->branchD)

    The first submodule varies slowest. The input mapping is not modified.
    A root without submodules yields no combinations at all, and a submodule
    without candidates empties the whole product.
    """
    if not module_branches:
        return []
    return _combine(list(module_branches.items()))


def _combine(
    remaining: Sequence[Tuple[SubmoduleEntry, Sequence[Revision]]],
) -> List[Combination]:
    if not remaining:
        # One empty assignment, so the level above merges with it unchanged
        return [Combination()]

    entry, revisions = remaining[0]
    this_level = [Combination({entry: revision}) for revision in revisions]
    children = _combine(remaining[1:])

    return [partial.merged(child) for partial in this_level for child in children]


def count_combinations(module_branches: Mapping[SubmoduleEntry, Sequence[Revision]]) -> int:
    """Return how many combinations create_combinations would produce."""
    if not module_branches:
        return 0
    total = 1
    for revisions in module_branches.values():
        total *= len(revisions)
    return total
