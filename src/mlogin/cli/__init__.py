"""
mlogin CLI.

A single command: ``mlogin [OPTIONS] [PATH]``.
"""

import typer

from mlogin.cli.main import configure_logging, login  # noqa: F401

app = typer.Typer(
    help="mlogin - interactive shells inside remote compute jobs",
    add_completion=False,
)
app.command()(login)

if __name__ == "__main__":
    app()
