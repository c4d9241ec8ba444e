"""
SKBoot CLI -- push, pull, and boot containers.

Every option can also come from an environment variable (shown in
``--help``) or from a YAML file passed with ``--config``.

Entry point: skboot.cli:main
"""

from __future__ import annotations

import functools
import logging
import sys
from pathlib import Path
from typing import Callable

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import BOOT_CONFIG, __version__
from .errors import BootError
from .models import BootConfig
from .sync.engine import SyncEngine, load_config

console = Console()

CONFIG_FIELDS = (
    "region", "env", "env_file", "revision", "kms_key_id",
    "s3_bucket", "s3_prefix", "verbose", "dry_run",
)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def boot_options(fn: Callable) -> Callable:
    """Attach the shared configuration options to a command."""
    options = [
        click.option("--config", "config_file", default=BOOT_CONFIG or None,
                     type=click.Path(dir_okay=False, path_type=Path),
                     help="YAML file with default settings."),
        click.option("--region", envvar="AWS_DEFAULT_REGION", default=None,
                     help="AWS region to use. [default: us-east-1]"),
        click.option("--env", envvar="BOOT_ENV", default=None,
                     help="Environment name. [default: dev]"),
        click.option("--file", "env_file", envvar="BOOT_FILE", default=None,
                     help="Environment variables are stored in this file. [default: boot.env]"),
        click.option("--revision", envvar="BOOT_REVISION", default=None,
                     help="Name of the revision to use. [default: latest]"),
        click.option("--kms", "kms_key_id", envvar="BOOT_KMS_ID", default=None,
                     help="KMS key id (required for push)."),
        click.option("--s3-bucket", envvar="BOOT_S3_BUCKET", default=None,
                     help="S3 bucket to read from / write to."),
        click.option("--s3-prefix", envvar="BOOT_PREFIX", default=None,
                     help="Path prefix inside the bucket."),
        click.option("--s3-url", envvar="BOOT_S3_URL", default=None,
                     help="s3://bucket/prefix shorthand for --s3-bucket and --s3-prefix."),
        click.option("--dir", "dir_", envvar="BOOT_DIR", default=None,
                     type=click.Path(file_okay=False, path_type=Path),
                     help="Local directory to read/write. [default: .]"),
        click.option("--verbose", envvar="BOOT_VERBOSE", is_flag=True, default=None,
                     help="Display additional logging."),
        click.option("--dryrun", "dry_run", envvar="BOOT_DRYRUN", is_flag=True, default=None,
                     help="Dry run, don't actually make any changes."),
    ]
    for option in reversed(options):
        fn = option(fn)

    @functools.wraps(fn)
    def wrapper(config_file, s3_url, dir_, **kwargs):
        overrides = {name: kwargs.pop(name) for name in CONFIG_FIELDS}
        # flags only switch a setting on; unset leaves the YAML value
        for flag in ("verbose", "dry_run"):
            overrides[flag] = overrides[flag] or None
        try:
            config = load_config(config_file, s3_url=s3_url, dir=dir_, **overrides)
        except BootError as exc:
            _fail(exc)
        _setup_logging(config.verbose)
        return fn(config, **kwargs)

    return wrapper


def _fail(exc: BootError) -> None:
    console.print(f"[bold red]Error:[/] {escape(str(exc))}")
    sys.exit(1)


def _engine(config: BootConfig) -> SyncEngine:
    try:
        return SyncEngine(config)
    except BootError as exc:
        _fail(exc)


@click.group()
@click.version_option(version=__version__, prog_name="skboot")
def main():
    """SKBoot -- secret management for containers via S3, IAM, and KMS."""


@main.command("push")
@boot_options
def push_cmd(config: BootConfig):
    """Push the local directory to the remote revision."""
    engine = _engine(config)
    try:
        report = engine.push()
    except BootError as exc:
        _fail(exc)

    table = Table(title=f"{engine.store.name} ({', '.join(report.revisions)})")
    table.add_column("Key", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Encrypted")
    for obj in report.objects:
        table.add_row(
            escape(obj.key), str(obj.size),
            "[green]yes[/]" if obj.encrypted else "[yellow]no[/]",
        )
    console.print(table)
    if report.dry_run:
        console.print("  [dim]dry run: nothing was uploaded[/]")


@main.command("pull")
@boot_options
def pull_cmd(config: BootConfig):
    """Pull the remote revision into the local directory."""
    engine = _engine(config)
    try:
        report = engine.pull()
    except BootError as exc:
        _fail(exc)

    if report.dry_run:
        console.print(
            f"\n  Revision [cyan]{escape(report.revision)}[/]: "
            f"[bold]{len(report.env_keys)}[/] env var(s) would be loaded"
        )
        console.print("  [dim]dry run: nothing was written or loaded[/]")
    else:
        console.print(
            f"\n  Revision [cyan]{escape(report.revision)}[/]: "
            f"[bold]{len(report.written)}[/] file(s) written, "
            f"[bold]{len(report.env_keys)}[/] env var(s) loaded"
        )
    console.print()


@main.command(
    "container",
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
@boot_options
def container_cmd(config: BootConfig, command: tuple[str, ...]):
    """Boot the container: pull, then run COMMAND. Run from within docker."""
    engine = _engine(config)
    try:
        code = engine.container(command)
    except BootError as exc:
        _fail(exc)
    sys.exit(code)
