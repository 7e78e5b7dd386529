"""Main Typer application, the entry point for the ``webbench`` CLI."""

from __future__ import annotations

import typer

from webbench import __version__
from webbench.cli.request import request_cmd
from webbench.cli.run import run_cmd

app = typer.Typer(
    name="webbench",
    help="Hammer an HTTP server over raw TCP connections.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Benchmark a URL for a fixed time.")(run_cmd)
app.command("request", help="Print the raw request without sending it.")(request_cmd)


def _version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: True if --version was passed.
    """
    if value:
        typer.echo(f"webbench {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """webbench: hammer an HTTP server over raw TCP connections."""
