"""``webbench request``: print the raw request a run would send."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape

from webbench._internal.errors import WebbenchError
from webbench.cli.run import prepare_request
from webbench.protocol.request import Method, Version

console = Console(stderr=True)


def request_cmd(
    url: str = typer.Argument(..., help="Target URL, e.g. http://localhost:8080/."),
    proxy: str | None = typer.Option(
        None,
        "--proxy",
        "-p",
        help="Build the request for a proxy server (IP:PORT).",
    ),
    keep: bool = typer.Option(False, "--keep", "-k", help="Keep connections alive (HTTP/1.1)."),
    method: Method = typer.Option(Method.GET, "--method", "-m", help="Request method."),
    http: Version = typer.Option(Version.HTTP_11, "--http", help="HTTP version for the request."),
    header: list[str] | None = typer.Option(
        None,
        "--header",
        help="Extra request header 'Name: value'. Repeatable.",
    ),
    show_addresses: bool = typer.Option(
        False,
        "--addresses",
        "-a",
        help="Also list the resolved addresses.",
    ),
) -> None:
    """Print the raw request and exit without sending anything."""
    try:
        request, addresses, _keep_alive = prepare_request(
            url,
            proxy=proxy,
            keep=keep,
            method=method,
            http=http,
            headers=header,
        )
    except WebbenchError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    typer.echo(request.decode("latin-1"), nl=False)

    if show_addresses:
        for address in addresses:
            console.print(f"address: {address}", markup=False)
