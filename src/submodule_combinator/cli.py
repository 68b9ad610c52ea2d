"""
Command-line interface for the Git submodule combination tool.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from datetime import datetime

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import CombinatorSettings, build_combinator, parse_submodule_configs
from .models import (
    CombinationPlan,
    CombinatorError,
    MaterializedCombination,
    Revision,
    SubmoduleEntry,
    format_assignments,
    short_sha,
)
from . import __version__ as PACKAGE_VERSION


console = Console()
logger = logging.getLogger(__name__)

LOG_STEM = "submodule-combinator"


def _print_version(ctx, param, value):
    """Eager option callback to print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    click.echo(f"submodule-combinator {PACKAGE_VERSION}")
    ctx.exit()


def _default_log_path() -> Path:
    """Determine default log file path (~/.submodule-combinator/submodule-combinator.log)."""
    env_path = os.environ.get("SUBMODULE_COMBINATOR_LOG")
    if env_path:
        p = Path(env_path).expanduser()
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    base = Path.home() / f".{LOG_STEM}"
    base.mkdir(parents=True, exist_ok=True)
    return base / f"{LOG_STEM}.log"


class SafeConsoleFormatter(logging.Formatter):
    """Formatter that replaces characters not encodable by the target console encoding.

    Keeps legacy Windows code pages (e.g. cp1252) from raising UnicodeEncodeError
    on emoji. File handlers keep full UTF-8 output.
    """

    def __init__(self, fmt: Optional[str] = None, encoding: Optional[str] = None):
        super().__init__(fmt=fmt)
        self.encoding = encoding or getattr(sys.stderr, "encoding", None) or "utf-8"

    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        return msg.encode(self.encoding, errors="replace").decode(self.encoding, errors="replace")


class SafeConsoleFilter(logging.Filter):
    """Sanitize record messages for console, since RichHandler renders the message text itself."""

    def __init__(self, encoding: Optional[str] = None):
        super().__init__()
        self.encoding = encoding or getattr(sys.stderr, "encoding", None) or "utf-8"

    def filter(self, record: logging.LogRecord) -> bool:  # always keep the record
        message = record.getMessage()
        safe = message.encode(self.encoding, errors="replace").decode(self.encoding, errors="replace")
        if safe != message:
            # Replace the message and clear args to avoid double formatting
            record.msg = safe
            record.args = ()
        return True


def setup_logging(verbose: bool = False, console_level: Optional[str] = None, log_file: Optional[Path] = None) -> Path:
    """Setup logging with a per-run file plus a stable, rotated aggregate log.

    - Per-run log file: <stem>-YYYYMMDD_HHMMSS.log
    - Stable aggregate log: <stem>.log (rotated)
    - Console logging only with --verbose or --log-level

    Returns the per-run log path.
    """
    provided = Path(log_file) if log_file else _default_log_path()
    if provided.exists() and provided.is_dir():
        base_dir = provided
        base_stem = LOG_STEM
        aggregate_path = base_dir / f"{base_stem}.log"
    else:
        base_dir = provided.parent
        base_stem = provided.stem or LOG_STEM
        aggregate_path = provided
    base_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    per_run_path = base_dir / f"{base_stem}-{timestamp}.log"

    root = logging.getLogger()
    # Clear existing handlers to avoid duplication in tests / repeated invocations
    root.handlers.clear()
    root.setLevel(logging.DEBUG)

    file_fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    run_file_handler = logging.FileHandler(str(per_run_path), encoding="utf-8")
    run_file_handler.setLevel(logging.DEBUG)
    run_file_handler.setFormatter(file_fmt)
    root.addHandler(run_file_handler)

    aggregate_handler = RotatingFileHandler(
        str(aggregate_path), maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    aggregate_handler.setLevel(logging.DEBUG)
    aggregate_handler.setFormatter(file_fmt)
    root.addHandler(aggregate_handler)

    if verbose or console_level:
        # Choice restricts console_level to names the logging module knows
        ch_level = logging.getLevelName((console_level or "info").upper())
        console_handler = RichHandler(console=console, rich_tracebacks=True)
        console_handler.setLevel(ch_level)
        stream = getattr(console, "file", sys.stderr)
        enc = getattr(stream, "encoding", None) or getattr(sys.stderr, "encoding", None) or "utf-8"
        console_handler.setFormatter(SafeConsoleFormatter("%(message)s", encoding=enc))
        console_handler.addFilter(SafeConsoleFilter(encoding=enc))
        root.addHandler(console_handler)

    return per_run_path


def _maybe_print_log_notice(verbose: bool, console_level: Optional[str], log_path: Path) -> None:
    """Inform user about logging destination and how to enable console logs."""
    if verbose or console_level:
        return
    console.print(f"[dim]Logs are written to {log_path}. Console logs are disabled by default. Use -v or --log-level to enable.[/dim]")


def _filter_options(func):
    """Options shared by commands that select which submodule revisions are combined."""
    func = click.option(
        "--submodule-config",
        "submodule_config_items",
        multiple=True,
        help="Interesting branches of a submodule: NAME=REGEX[,REGEX]. Repeatable. "
        "Submodules without an entry consider all their branch tips.",
    )(func)
    func = click.option(
        "--root-branch",
        type=str,
        default=None,
        help="Only combine submodule revisions on the branch of this name, "
        "branching every combination from its head in the superproject.",
    )(func)
    return func


def _settings_from_options(
    ctx: click.Context,
    root_branch: Optional[str],
    submodule_config_items: Tuple[str, ...],
    create_branches: bool = True,
) -> CombinatorSettings:
    configs = parse_submodule_configs(submodule_config_items)
    if root_branch and configs:
        console.print("⚠️  --submodule-config is ignored when --root-branch is given", style="yellow")
    return CombinatorSettings(
        repo_path=ctx.obj.get("repo_path"),
        root_branch=root_branch,
        submodule_configs=configs,
        create_branches=create_branches,
    )


@click.group()
@click.option(
    "--version",
    "-V",
    is_flag=True,
    callback=_print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose console logging (INFO)")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Console log level. By default, console logging is disabled.",
)
@click.option(
    "--repo-path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to the superproject (defaults to current directory)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_level: Optional[str], repo_path: Optional[Path]) -> None:
    """Git Submodule Combinator - Commit every untried combination of submodule branches."""
    log_path = setup_logging(verbose, console_level=log_level)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["console_level"] = log_level
    ctx.obj["log_path"] = log_path
    ctx.obj["repo_path"] = repo_path.resolve() if isinstance(repo_path, Path) else None
    logger.debug(f"CLI init: cwd={Path.cwd()} repo_path={ctx.obj['repo_path']}")


@cli.command()
@_filter_options
@click.option("--no-branch", is_flag=True, help="Commit on a detached HEAD instead of a new combine-* branch")
@click.option("--dry-run", is_flag=True, help="Show what would be done without executing")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation")
@click.option("--force", is_flag=True, help="Proceed even when uncommitted changes would be overwritten")
@click.pass_context
def combine(
    ctx: click.Context,
    root_branch: Optional[str],
    submodule_config_items: Tuple[str, ...],
    no_branch: bool,
    dry_run: bool,
    assume_yes: bool,
    force: bool,
) -> None:
    """
    Commit every submodule combination not yet present in history.

    Example: submodule-combinator combine --root-branch origin/release-2
    """
    try:
        _maybe_print_log_notice(ctx.obj.get("verbose"), ctx.obj.get("console_level"), ctx.obj.get("log_path"))
        settings = _settings_from_options(ctx, root_branch, submodule_config_items, not no_branch)
        combinator = build_combinator(settings)

        validation_errors = combinator.validate_repository_state()
        if validation_errors and not (force or dry_run):
            console.print("\n❌ **Validation Errors:**", style="bold red")
            for error in validation_errors:
                console.print(f"  • {error}")
            console.print("\nUse --force to proceed anyway, or fix the issues above.")
            sys.exit(1)
        elif validation_errors:
            console.print("\n⚠️  **Validation Warnings:**", style="bold yellow")
            for error in validation_errors:
                console.print(f"  • {error}")

        console.print("\n📋 **Planning Combinations**")
        mode = f"root branch {root_branch}" if root_branch else "configured branches, nearest base"
        console.print(f"Mode: {mode}")
        gm = combinator.git_manager
        console.print(
            f"Superproject: {gm.working_dir} on {gm.get_current_branch() or 'detached HEAD'} "
            f"({short_sha(gm.get_head_commit())})"
        )

        plan = combinator.plan_combinations()
        _display_module_branches(plan.module_branches)
        _display_plan(plan)

        if dry_run:
            console.print("\n🔍 **Dry Run Complete** - No changes made")
            return

        if not plan.candidates:
            console.print("\n✅ **Nothing to do:** every combination already exists", style="bold green")
            return

        if not assume_yes and not click.confirm(
            f"\nCreate {len(plan.candidates)} combination commit(s)?"
        ):
            console.print("Operation cancelled.")
            return

        created = combinator.execute_plan(plan)
        _display_created(created)
        console.print(f"\n🎉 **Created {len(created)} combination(s)**", style="bold green")

    except CombinatorError as e:
        console.print(f"\n❌ **Combination Error:** {e}", style="bold red")
        logger.debug("Combination run aborted due to CombinatorError", exc_info=True)
        sys.exit(1)
    except (click.Abort, KeyboardInterrupt):
        console.print("\n\n🚫 **Operation cancelled by user**", style="bold yellow")
        logger.debug("Operation cancelled by user", exc_info=True)
        sys.exit(130)
    except click.ClickException:
        raise
    except Exception as e:
        console.print(f"\n💥 **Unexpected Error:** {e}", style="bold red")
        if ctx.obj.get("verbose"):
            console.print_exception()
        logger.debug("Unexpected error during combine", exc_info=True)
        sys.exit(1)


@cli.command()
@_filter_options
@click.pass_context
def candidates(
    ctx: click.Context, root_branch: Optional[str], submodule_config_items: Tuple[str, ...]
) -> None:
    """Show the interesting revisions of every submodule."""
    try:
        _maybe_print_log_notice(ctx.obj.get("verbose"), ctx.obj.get("console_level"), ctx.obj.get("log_path"))
        settings = _settings_from_options(ctx, root_branch, submodule_config_items)
        combinator = build_combinator(settings)
        _display_module_branches(combinator.get_module_branches())
    except CombinatorError as e:
        console.print(f"\n❌ **Error listing candidates:** {e}", style="bold red")
        logger.debug("Error in candidates command", exc_info=True)
        sys.exit(1)


@cli.command()
@click.option("--limit", type=int, default=None, help="Show at most this many commits")
@click.pass_context
def existing(ctx: click.Context, limit: Optional[int]) -> None:
    """List the submodule configuration recorded at every reachable commit."""
    try:
        _maybe_print_log_notice(ctx.obj.get("verbose"), ctx.obj.get("console_level"), ctx.obj.get("log_path"))
        combinator = build_combinator(CombinatorSettings(repo_path=ctx.obj.get("repo_path")))
        index = combinator.get_existing_combinations()

        console.print(f"\n📦 **{len(index)} Recorded Configuration(s)**")
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Commit", style="cyan")
        table.add_column("Submodules", justify="right")
        table.add_column("Configuration", style="dim")

        for i, config in enumerate(index.configurations):
            if limit is not None and i >= limit:
                break
            table.add_row(
                short_sha(config.commit),
                str(len(config.entries)),
                ", ".join(f"{e.path}@{e.short_object}" for e in config.entries),
            )
        console.print(table)
    except CombinatorError as e:
        console.print(f"\n❌ **Error reading history:** {e}", style="bold red")
        logger.debug("Error in existing command", exc_info=True)
        sys.exit(1)


@cli.command()
def version() -> None:
    """Print the current submodule-combinator version."""
    console.print(f"submodule-combinator {PACKAGE_VERSION}")


def _display_module_branches(module_branches: Dict[SubmoduleEntry, List[Revision]]) -> None:
    """Display the candidate revisions per submodule."""
    console.print("\n🔍 **Submodule Candidates**")
    if not module_branches:
        console.print("No submodules found at the root.", style="yellow")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Submodule", style="cyan")
    table.add_column("Recorded", style="dim")
    table.add_column("Revision", style="green")
    table.add_column("Branches", style="yellow")

    for entry, revisions in module_branches.items():
        if not revisions:
            table.add_row(entry.path, entry.short_object, "-", "no interesting revision")
            continue
        for i, revision in enumerate(revisions):
            table.add_row(
                entry.path if i == 0 else "",
                entry.short_object if i == 0 else "",
                revision.short_sha,
                ", ".join(revision.branches),
            )
    console.print(table)


def _display_plan(plan: CombinationPlan) -> None:
    """Display the combination execution plan."""
    console.print(
        f"\n📋 **{plan.generated_count} possible, {plan.skipped_count} already exist, "
        f"{len(plan.candidates)} to create**"
    )
    if not plan.candidates:
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Order", justify="center")
    table.add_column("Base", style="cyan")
    table.add_column("Differs", justify="center", style="yellow")
    table.add_column("Assignments", style="green")

    for i, planned in enumerate(plan.candidates, 1):
        table.add_row(
            str(i),
            short_sha(planned.base_commit),
            "root" if planned.difference is None else str(planned.difference),
            format_assignments(planned.combination),
        )
    console.print(table)


def _display_created(created: List[MaterializedCombination]) -> None:
    """Display the commits created by a run."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Commit", style="green")
    table.add_column("Branch", style="cyan")
    table.add_column("Base", style="dim")
    table.add_column("Assignments")

    for result in created:
        table.add_row(
            short_sha(result.commit),
            result.branch or "(detached)",
            short_sha(result.base_commit),
            format_assignments(result.combination),
        )
    console.print(table)


def main() -> None:
    """Main entry point for the CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n\n🚫 **Operation cancelled by user**", style="bold yellow")
        logger.debug("Top-level cancellation (KeyboardInterrupt)", exc_info=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
