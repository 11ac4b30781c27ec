"""
Main CLI application
"""
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from ...core.exceptions import ConfigError
from ...core.logging import get_logger, get_stderr_console, get_stdout_console, setup_logging
from ...domain.listing import SortColumn
from ...domain.system import read_log_tail
from .context import build_context, cli_errors, get_context
from .transfer import register_transfer_commands

logger = get_logger(__name__)
stdout_console = get_stdout_console()
stderr_console = get_stderr_console()

# Create main app
app = typer.Typer(
    name="remotefs",
    add_completion=False,
    help="Remote file access and transfer over SSH/SFTP",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register transfer commands directly (not as subcommands)
register_transfer_commands(app)


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Log file path",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (default: ~/.remotefs/config.toml)",
    ),
):
    """
    remotefs - browse and move files on remote hosts

    Hosts and credentials come from the inventory file; secrets are read
    from REMOTEFS_SECRET_CREDENTIAL_<id> environment variables.
    """
    try:
        context = build_context(config)
    except ConfigError as e:
        stderr_console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    settings = context.settings
    setup_logging(level=log_level or settings.log_level, log_file=log_file or settings.log_file)
    ctx.obj = context
    ctx.call_on_close(context.close)


@app.command(name="hosts")
def hosts_command(ctx: typer.Context):
    """List the hosts of the inventory."""
    context = get_context(ctx)
    hosts = context.inventory.hosts()
    if not hosts:
        stdout_console.print(f"[yellow]No hosts in {context.inventory.path}[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Address")
    table.add_column("Protocol")
    table.add_column("Bastion")
    for host in hosts:
        if not host.use_bastion:
            bastion = "-"
        elif host.bastion_host_id is not None:
            bastion = f"host #{host.bastion_host_id}"
        else:
            bastion = f"{host.bastion_host}:{host.bastion_port}"
        table.add_row(
            str(host.id),
            escape(host.display_name),
            f"{host.host}:{host.port}",
            host.protocol.value,
            escape(bastion),
        )
    stdout_console.print(table)


@app.command(name="ls")
def ls_command(
    ctx: typer.Context,
    host: str = typer.Argument(..., help="Host id, name or address"),
    path: str = typer.Argument(".", help="Remote directory"),
    sort: str = typer.Option("name", "--sort", "-s", help="Sort column (name, size, date)"),
    desc: bool = typer.Option(False, "--desc", help="Sort descending"),
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the listing cache"),
):
    """List a remote directory, directories first."""
    context = get_context(ctx)
    with cli_errors(), context.session(host) as session:
        entries = context.listing.list_remote(
            session, path, SortColumn.parse(sort), ascending=not desc, force_refresh=refresh
        )

    table = Table(show_header=True, header_style="bold")
    table.add_column("Mode")
    table.add_column("Size", justify="right")
    table.add_column("Modified")
    table.add_column("Name")
    for entry in entries:
        mode = format(entry.mode, "04o") if entry.mode is not None else ""
        modified = entry.modified.strftime("%Y-%m-%d %H:%M") if entry.modified else ""
        name = f"[bold blue]{escape(entry.name)}/[/bold blue]" if entry.is_directory else escape(entry.name)
        table.add_row(mode, entry.size_display, modified, name)
    stdout_console.print(table)


@app.command(name="tail")
def tail_command(
    ctx: typer.Context,
    host: str = typer.Argument(..., help="Host id, name or address"),
    path: str = typer.Argument(..., help="Remote log file"),
    lines: int = typer.Option(500, "--lines", "-n", help="Number of lines"),
    sudo_password: Optional[str] = typer.Option(
        None,
        "--sudo-password",
        envvar="REMOTEFS_SUDO_PASSWORD",
        help="Read the file through sudo",
    ),
):
    """Print the last lines of a remote file."""
    context = get_context(ctx)
    with cli_errors(), context.session(host) as session:
        output = read_log_tail(session, path, lines, sudo_password)
    stdout_console.print(output, markup=False, highlight=False)


def run():
    """CLI entry point"""
    app()


if __name__ == "__main__":
    run()
