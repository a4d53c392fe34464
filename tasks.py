"""Invoke tasks for testing, linting, and running the migration.

Every task shells out to the `uv` CLI so local runs use the same environment
as CI.
"""

from __future__ import annotations

import shlex
from collections.abc import Mapping, Sequence

from invoke import Collection, Context, task


def _run_uv(
    ctx: Context,
    args: Sequence[str],
    *,
    echo: bool = True,
    env: Mapping[str, str] | None = None,
) -> None:
    """Execute a uv command with consistent quoting and PTY defaults.

    Args:
        ctx: Invoke execution context.
        args: Additional arguments to append after the `uv` executable.
        echo: Whether to echo the command before running it.
        env: Optional environment variables to layer onto the invocation.
    """
    run_env = dict(ctx.config.run.env or {})
    if env:
        run_env.update(env)
    ctx.run(shlex.join(("uv", *args)), echo=echo, pty=True, env=run_env)


@task
def sync(ctx: Context, dev: bool = True) -> None:
    """Synchronize the virtual environment, including dev extras by default."""
    args = ["sync"]
    if dev:
        args.extend(["--extra", "dev"])
    _run_uv(ctx, args)


@task(
    help={
        "k": "pytest -k expression for test selection.",
        "path": "Path or module to test (defaults to tests/).",
        "options": "Additional CLI flags forwarded verbatim to pytest.",
    }
)
def tests(ctx: Context, k: str = "", path: str = "tests", options: str = "") -> None:
    """Run the pytest suite via uv."""
    args: list[str] = ["run", "pytest"]
    if k:
        args.extend(["-k", k])
    if options:
        args.extend(shlex.split(options))
    if path:
        args.append(path)
    _run_uv(ctx, args)


@task(help={"all_files": "Run hooks against the entire repository."})
def precommit(ctx: Context, all_files: bool = False) -> None:
    """Run the pre-commit hooks from .pre-commit-config.yaml."""
    args: list[str] = ["run", "pre-commit", "run"]
    if all_files:
        args.append("--all-files")
    _run_uv(ctx, args)


@task(help={"fix": "Apply auto-fixes where possible (ruff --fix)."})
def lint(ctx: Context, fix: bool = False) -> None:
    """Check formatting and run Ruff lint rules."""
    _run_uv(ctx, ["run", "ruff", "format", "--check", "src", "tests"])
    args: list[str] = ["run", "ruff", "check", "src", "tests"]
    if fix:
        args.append("--fix")
    _run_uv(ctx, args)


@task
def mypy(ctx: Context) -> None:
    """Type-check the package."""
    _run_uv(ctx, ["run", "mypy", "src"])


@task
def ci(ctx: Context) -> None:
    """Replicate the CI workflow locally."""
    ctx.invoke(precommit, all_files=True)
    ctx.invoke(lint)
    ctx.invoke(mypy)
    ctx.invoke(tests)


@task(
    help={
        "config": "Configuration file passed to `stash-migrate run --config`.",
        "resume": "Resume from the last checkpoint.",
    }
)
def migrate(ctx: Context, config: str = "", resume: bool = False) -> None:
    """Run the migration with the project environment."""
    args: list[str] = ["run", "stash-migrate", "run"]
    if config:
        args.extend(["--config", config])
    if resume:
        args.append("--resume")
    _run_uv(ctx, args)


namespace = Collection(sync, tests, precommit, lint, mypy, ci, migrate)
