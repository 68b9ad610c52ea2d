"""
Git Submodule Combinator - Speculative combinations of independently evolving submodules.

This package enumerates every interesting combination of submodule branch
revisions for a superproject, skips the ones already recorded in history and
commits the rest, so incompatible combinations can be found before they are
chosen for integration.
"""

__version__ = "0.1.0"

from .combinator import SubmoduleCombinator
from .models import (
    Combination,
    CombinationPlan,
    CombinatorError,
    ExistingConfiguration,
    MaterializedCombination,
    PlannedCombination,
    Revision,
    SubmoduleConfig,
    SubmoduleEntry,
)
from .git_manager import GitManager
from .revision_filter import RevisionFilter, RootBranchFilter, ConfiguredInterestFilter
from .combination_generator import create_combinations
from .existing_combinations import ExistingCombinationIndex, difference
from .materializer import CombinationMaterializer, RunContext

__all__ = [
    "SubmoduleCombinator",
    "Combination",
    "CombinationPlan",
    "CombinatorError",
    "ExistingConfiguration",
    "MaterializedCombination",
    "PlannedCombination",
    "Revision",
    "SubmoduleConfig",
    "SubmoduleEntry",
    "GitManager",
    "RevisionFilter",
    "RootBranchFilter",
    "ConfiguredInterestFilter",
    "create_combinations",
    "ExistingCombinationIndex",
    "difference",
    "CombinationMaterializer",
    "RunContext",
]
