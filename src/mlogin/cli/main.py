"""
The ``mlogin`` command.

Usage:
    mlogin                          # keyless session, /bin/bash
    mlogin /jill/stor/logs/app.log  # shell next to an object
    mlogin -c "python3" -e none --memory 4096 /jill/stor/data.csv -- -q
"""

import asyncio
from typing import List, Optional

import typer

from mlogin.channel.escape import parse_escape_char
from mlogin.config import DEFAULT_COMMAND, DEFAULT_CWD, DEFAULT_ESCAPE_CHAR, Settings
from mlogin.logger import PROG_NAME, get_logger, setup_logging
from mlogin.session.jobs import JobOptions
from mlogin.session.orchestrator import SessionOptions, SessionOrchestrator
from mlogin.store.http_store import HttpStoreClient

logger = get_logger(__name__)


def configure_logging(settings: Settings, verbose: bool = False, quiet: bool = False):
    """Configure logging for the CLI."""
    if verbose:
        level = "DEBUG"
    elif quiet:
        level = "ERROR"
    else:
        level = settings.log_level
    setup_logging(level=level, log_file=settings.log_file)


async def _run_session(settings: Settings, options: SessionOptions) -> int:
    client = HttpStoreClient(
        url=settings.url,
        user=settings.user,
        token=settings.token,
        insecure=settings.tls_insecure,
    )
    try:
        return await SessionOrchestrator(client, options).run()
    finally:
        await client.close()


def login(
    path: Optional[str] = typer.Argument(
        None, help="Object to open the session against (omit for a keyless session)"
    ),
    arguments: Optional[List[str]] = typer.Argument(
        None, help="Extra arguments passed to the remote command"
    ),
    command: str = typer.Option(
        DEFAULT_COMMAND, "--command", "-c", help="Command to run in the job"
    ),
    cwd: str = typer.Option(
        DEFAULT_CWD, "--cwd", help="Working directory of the remote command"
    ),
    escape_char: str = typer.Option(
        DEFAULT_ESCAPE_CHAR,
        "--escape-char",
        "-e",
        help="Escape character, or 'none' to disable escapes",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress progress and advisory output"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging (DEBUG level)"
    ),
    disk: Optional[int] = typer.Option(None, "--disk", help="Disk quota in GB"),
    memory: Optional[int] = typer.Option(None, "--memory", help="Memory limit in MB"),
    init: Optional[str] = typer.Option(
        None, "--init", help="Command run in the job before the session starts"
    ),
    image: Optional[str] = typer.Option(
        None, "--image", help="Compute image version constraint"
    ),
    url: Optional[str] = typer.Option(
        None, "--url", "-u", help="Service URL (overrides MANTA_URL)"
    ),
    user: Optional[str] = typer.Option(
        None, "--user", "-a", help="Account name (overrides MANTA_USER)"
    ),
    insecure: bool = typer.Option(
        False, "--insecure", "-i", help="Skip TLS certificate verification"
    ),
):
    """Open an interactive shell inside a compute job."""
    try:
        escape = parse_escape_char(escape_char)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="'--escape-char'")

    settings = Settings.from_env()
    if url:
        settings.url = url
    if user:
        settings.user = user
    if insecure:
        settings.tls_insecure = True
    configure_logging(settings, verbose=verbose, quiet=quiet)

    missing = settings.missing()
    if missing:
        typer.echo(f"{PROG_NAME}: {', '.join(missing)} must be set", err=True)
        raise typer.Exit(code=1)

    options = SessionOptions(
        object_path=path,
        escape_char=escape,
        command=command,
        arguments=arguments or [],
        cwd=cwd,
        quiet=quiet,
        insecure=settings.tls_insecure,
        job=JobOptions(memory=memory, disk=disk, init=init, image=image),
    )
    logger.debug(f"Starting session against {path or '(keyless)'} on {settings.url}")

    status = asyncio.run(_run_session(settings, options))
    raise typer.Exit(code=status)
