"""``webbench run``: benchmark a URL with live terminal output."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import typer
from rich import filesize
from rich.console import Console, Group
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from webbench._internal.config import load_config
from webbench._internal.errors import WebbenchError
from webbench.engine.config import BenchConfig, SocketAddress
from webbench.engine.supervisor import BenchRunner, StopReason
from webbench.protocol.request import Method, Version, build_request, is_keep_alive, parse_header
from webbench.protocol.resolve import resolve_addresses

if TYPE_CHECKING:
    from webbench.engine.status import StatusSnapshot
    from webbench.engine.supervisor import BenchResult

console = Console(stderr=True)

_BINARY_SUFFIXES = ["B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB"]


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------


def prepare_request(
    url: str,
    *,
    proxy: str | None,
    keep: bool,
    method: Method,
    http: Version,
    headers: list[str] | None,
) -> tuple[bytes, tuple[SocketAddress, ...], bool]:
    """Turn CLI flags into the engine inputs.

    Returns:
        Tuple of (raw request, candidate addresses, keep-alive flag).

    Raises:
        WebbenchError: If the URL, a header or the proxy is invalid, or the
            host cannot be resolved.
    """
    proxy_address = SocketAddress.parse(proxy) if proxy else None
    keep_alive = is_keep_alive(keep, http)
    request = build_request(
        url,
        method=method,
        version=http,
        keep_alive=keep_alive,
        headers=[parse_header(h) for h in headers or []],
        absolute_form=proxy_address is not None,
    )
    addresses = resolve_addresses(url, proxy=proxy_address)
    return request, addresses, keep_alive


def format_bytes(size: float) -> str:
    """Render a byte count with binary units, e.g. ``1.50 KiB``."""
    whole = int(size)
    unit, suffix = filesize.pick_unit_and_suffix(whole, _BINARY_SUFFIXES, 1024)
    if unit == 1:
        return f"{whole} B"
    return f"{size / unit:.2f} {suffix}"


# ---------------------------------------------------------------------------
# Rich display
# ---------------------------------------------------------------------------


def _make_live_table(snapshot: StatusSnapshot | None, elapsed: float, duration: float) -> Table:
    """Build a Rich table with the current counters."""
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Elapsed", f"{elapsed:.0f}s / {duration:.0f}s")
    if snapshot is None:
        table.add_row("Status", "Starting...")
        return table

    table.add_row("Received", format_bytes(snapshot.bytes_received))
    table.add_row("Success", str(snapshot.successful_requests))
    table.add_row("Failed", str(snapshot.failed_requests))
    return table


def _print_summary(result: BenchResult) -> None:
    """Print the final counters and rates."""
    status = result.status

    if result.stop_reason is StopReason.TOO_MANY_FAILURES:
        console.print("[red]Too many failures.[/red]")
    elif result.stop_reason is StopReason.INTERRUPTED:
        console.print("[yellow]Interrupted by user.[/yellow]")

    table = Table(title="Benchmark Complete", show_header=True, header_style="bold green", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Duration", f"{result.elapsed_seconds:.1f}s")
    table.add_row("Received", format_bytes(status.bytes_received))
    table.add_row("Throughput", f"{format_bytes(result.bytes_per_second)}/s")
    table.add_row("Requests/min", str(int(result.requests_per_minute)))
    table.add_row("Requests/sec", str(int(result.requests_per_second)))
    table.add_row("Success", str(status.successful_requests))
    table.add_row("Failed", str(status.failed_requests))
    console.print(table)

    console.print(
        f"Received: total {format_bytes(status.bytes_received)}, "
        f"{format_bytes(result.bytes_per_second)}/s."
    )
    console.print(
        f"Requests: {int(result.requests_per_minute)} req/min, "
        f"{int(result.requests_per_second)} req/s. "
        f"{status.successful_requests} success, {status.failed_requests} failed."
    )


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def run_cmd(
    url: str = typer.Argument(..., help="Target URL, e.g. http://localhost:8080/."),
    seconds: int = typer.Option(30, "--time", "-t", help="Run benchmark for TIME seconds.", min=1),
    client: int = typer.Option(1, "--client", "-c", help="Run CLIENT HTTP clients at once.", min=1),
    proxy: str | None = typer.Option(
        None,
        "--proxy",
        "-p",
        help="Send requests through a proxy server (IP:PORT).",
    ),
    keep: bool = typer.Option(False, "--keep", "-k", help="Keep connections alive (HTTP/1.1)."),
    method: Method = typer.Option(Method.GET, "--method", "-m", help="Request method."),
    http: Version = typer.Option(Version.HTTP_11, "--http", help="HTTP version for the request."),
    header: list[str] | None = typer.Option(
        None,
        "--header",
        help="Extra request header 'Name: value'. Repeatable.",
    ),
    io_timeout: float | None = typer.Option(
        None,
        "--io-timeout",
        help="Per-I/O timeout in seconds (default: none, or WEBBENCH_IO_TIMEOUT).",
    ),
    max_failure_ratio: float | None = typer.Option(
        None,
        "--max-failure-ratio",
        help="Stop when failed/success exceeds this (default: 0.5).",
        min=0.0,
    ),
    no_failure_abort: bool = typer.Option(
        False,
        "--no-failure-abort",
        help="Never stop early because of failures.",
    ),
    processes: int | None = typer.Option(
        None,
        "--processes",
        "-P",
        help="Engine processes to spread clients over (default: one per CPU).",
        min=1,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose (DEBUG) logging."),
    log_json: bool = typer.Option(False, "--log-json", help="Write log records as JSON lines."),
) -> None:
    """Benchmark a URL for a fixed time and print the results."""
    try:
        defaults = load_config()
        request, addresses, keep_alive = prepare_request(
            url,
            proxy=proxy,
            keep=keep,
            method=method,
            http=http,
            headers=header,
        )
        config = BenchConfig(
            addresses=addresses,
            request=request,
            keep_alive=keep_alive,
            client_count=client,
            io_timeout=io_timeout if io_timeout is not None else defaults.io_timeout,
        )
    except WebbenchError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    ratio = None if no_failure_abort else (
        max_failure_ratio if max_failure_ratio is not None else defaults.max_failure_ratio
    )

    info = f"{client} client(s), running {seconds} sec"
    if proxy:
        info += f", via proxy server: {proxy}"
    console.print(
        Panel(
            Group(
                Text("Request:", style="bold"),
                Text(request.decode("latin-1").replace("\r\n", "\n").rstrip()),
                Text(""),
                Text(f"Running info: {info}."),
            ),
            title="Welcome to the Webbench",
            border_style="cyan",
        )
    )

    log_level = logging.DEBUG if verbose else logging.INFO

    try:
        with Live(
            _make_live_table(None, 0.0, seconds),
            console=console,
            refresh_per_second=2,
            transient=True,
        ) as live:

            def _on_status(snapshot: StatusSnapshot, elapsed: float) -> None:
                live.update(_make_live_table(snapshot, elapsed, seconds))

            result = BenchRunner(
                config,
                duration_seconds=float(seconds),
                poll_interval=defaults.poll_interval,
                max_failure_ratio=ratio,
                on_status=_on_status,
                grace_period=defaults.grace_period,
                processes=processes,
                log_level=log_level,
                log_json=log_json,
            ).run()
    except WebbenchError as exc:
        console.print(f"[red]Benchmark failed:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    _print_summary(result)

    if result.stop_reason is StopReason.TOO_MANY_FAILURES:
        raise typer.Exit(code=1)
