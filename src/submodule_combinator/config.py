"""
Run settings and submodule interest configuration.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import click

from .combinator import SubmoduleCombinator
from .models import SubmoduleConfig


def parse_submodule_configs(items: Iterable[str]) -> List[SubmoduleConfig]:
    """Parse ``NAME=PATTERN[,PATTERN...]`` items into submodule configs.

    Items naming the same submodule are merged, keeping first-seen order.
    """
    configs: Dict[str, SubmoduleConfig] = {}
    for item in items:
        name, sep, value = item.partition("=")
        name = name.strip()
        patterns = [p.strip() for p in value.split(",") if p.strip()]
        if not sep or not name or not patterns:
            raise click.BadParameter(
                f"Expected NAME=PATTERN[,PATTERN...], got {item!r}",
                param_hint="--submodule-config",
            )
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise click.BadParameter(
                    f"Invalid branch pattern {pattern!r} for {name}: {e}",
                    param_hint="--submodule-config",
                ) from e
        configs.setdefault(name, SubmoduleConfig(submodule_name=name)).branches.extend(patterns)
    return list(configs.values())


@dataclass
class CombinatorSettings:
    """Options selecting and shaping a combination run."""

    repo_path: Optional[Path] = None
    root_branch: Optional[str] = None
    submodule_configs: List[SubmoduleConfig] = field(default_factory=list)
    create_branches: bool = True


def build_combinator(settings: CombinatorSettings) -> SubmoduleCombinator:
    """Pick the root-branch variant when a root branch is given, else the configured one."""
    if settings.root_branch:
        return SubmoduleCombinator.for_root_branch(
            settings.root_branch,
            settings.repo_path,
            create_branches=settings.create_branches,
        )
    return SubmoduleCombinator.for_submodule_configs(
        settings.submodule_configs,
        settings.repo_path,
        create_branches=settings.create_branches,
    )
