"""publish / status / reset commands."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import typer

from relpub.cli.commands._helpers import unwrap_or_exit
from relpub.cli.context import build_context
from relpub.output.console import Style
from relpub.services.publish.gh import ensure_gh_available
from relpub.services.publish.model import COMPLETE_MARKER
from relpub.services.publish.progress import ProgressStore
from relpub.services.publish.service import plan_from_config
from relpub.services.publish.service import publish as run_publish

_CONFIG_OPTION_HELP = "Path to publish.toml (default: search upward from the current directory)"


def publish(
    config: Path | None = typer.Option(None, "--config", "-c", help=_CONFIG_OPTION_HELP),
    ignore_uncommitted: bool = typer.Option(
        False,
        "--ignore-uncommitted",
        help="Do not require a clean working tree before the first step.",
    ),
) -> None:
    """Publish every configured repository, resuming an interrupted run."""
    ctx = build_context(config)
    unwrap_or_exit(ensure_gh_available(), ctx)

    plan = plan_from_config(ctx.config)
    if ignore_uncommitted:
        plan = replace(plan, ignore_uncommitted=True)

    store = unwrap_or_exit(ProgressStore.load(ctx.config.state_file), ctx)
    if not store.is_empty:
        ctx.console.info(f"resuming from {store.path}")

    unwrap_or_exit(
        run_publish(
            plan=plan,
            store=store,
            validation=ctx.config.validation,
            console=ctx.console,
        ),
        ctx,
    )
    ctx.console.newline()
    ctx.console.success(f"published {plan.tag} to {len(plan.repositories)} repositories")


def status(
    config: Path | None = typer.Option(None, "--config", "-c", help=_CONFIG_OPTION_HELP),
) -> None:
    """Show the recorded publish progress."""
    ctx = build_context(config)
    store = unwrap_or_exit(ProgressStore.load(ctx.config.state_file), ctx)

    if store.is_empty:
        ctx.console.print("no publish in progress", Style.DIM)
        return

    ctx.console.header(f"v{ctx.config.version} ({store.path})")
    for repo_id in ctx.config.directories:
        marker = store.get(repo_id)
        if marker == COMPLETE_MARKER:
            ctx.console.print(f"{repo_id}: done", Style.SUCCESS)
        elif marker is not None:
            ctx.console.print(f"{repo_id}: at {marker}", Style.WARNING)
        else:
            ctx.console.print(f"{repo_id}: -", Style.DIM)

    for repo_id in sorted(set(store.entries) - set(ctx.config.directories)):
        ctx.console.print(f"{repo_id}: at {store.get(repo_id)} (not configured)", Style.ERROR)


def reset(
    config: Path | None = typer.Option(None, "--config", "-c", help=_CONFIG_OPTION_HELP),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Forget recorded progress; the next publish starts from scratch."""
    ctx = build_context(config)
    store = unwrap_or_exit(ProgressStore.load(ctx.config.state_file), ctx)

    if store.is_empty:
        ctx.console.print("no publish in progress", Style.DIM)
        return

    if not yes and not typer.confirm(f"Discard progress in {store.path}?", default=False):
        raise typer.Exit(code=0)

    unwrap_or_exit(store.reset(), ctx)
    ctx.console.success("progress cleared")
