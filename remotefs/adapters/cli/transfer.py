"""
Transfer CLI commands
"""
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Iterator, List

import typer
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn

from ...core.logging import get_logger, get_stdout_console
from ...domain.transfer import ProgressSink, TransferProgress
from .context import cli_errors, get_context

logger = get_logger(__name__)
stdout_console = get_stdout_console()


def register_transfer_commands(app: typer.Typer) -> None:
    """Register transfer commands on the main app"""
    app.command(name="upload")(upload_command)
    app.command(name="download")(download_command)
    app.command(name="copy")(copy_command)


@contextmanager
def progress_display(quiet: bool) -> Iterator[ProgressSink]:
    """
    Yield a progress sink drawing one rich progress bar.

    Unknown totals render as a pulsing bar with a running file count.
    """
    show_progress = not quiet and stdout_console.is_terminal

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=stdout_console,
        disable=not show_progress,
        transient=True,
    ) as progress:
        task = progress.add_task("Preparing...", total=None)

        def sink(record: TransferProgress) -> None:
            # The record announces the file about to be sent
            progress.update(
                task,
                description=record.message or record.current_item_name,
                completed=record.items_processed - 1,
                total=record.total_items if record.total_known else None,
            )

        yield sink


def upload_command(
    ctx: typer.Context,
    host: str = typer.Argument(..., help="Host id, name or address"),
    sources: List[Path] = typer.Argument(..., help="Local files or directories"),
    dest: str = typer.Argument(..., help="Remote destination directory"),
    quiet: bool = typer.Option(False, "-q", "--quiet", help="Quiet mode"),
):
    """
    Upload local files and directories.

    Partially uploaded files are resumed. Files above the verification
    threshold are checksummed after upload.

    Examples:
        remotefs upload web ./dist /var/www
    """
    context = get_context(ctx)

    with cli_errors(), context.session(host) as session:
        with progress_display(quiet) as sink:
            count = context.transfers.upload(session, sources, dest, sink)

    if not quiet:
        stdout_console.print(f"[green]✓[/green] Uploaded {count} file(s) to {host}:{dest}")


def download_command(
    ctx: typer.Context,
    host: str = typer.Argument(..., help="Host id, name or address"),
    remote_paths: List[str] = typer.Argument(..., help="Remote files or directories"),
    local_dir: Path = typer.Argument(..., help="Local destination directory"),
    quiet: bool = typer.Option(False, "-q", "--quiet", help="Quiet mode"),
):
    """
    Download remote files and directories.

    Unreadable remote subdirectories are skipped with a warning.

    Examples:
        remotefs download web /var/log/nginx ./logs
    """
    context = get_context(ctx)

    with cli_errors(), context.session(host) as session:
        with progress_display(quiet) as sink:
            count = context.transfers.download(session, remote_paths, local_dir, sink)

    if not quiet:
        stdout_console.print(f"[green]✓[/green] Downloaded {count} file(s) to {local_dir}")


def copy_command(
    ctx: typer.Context,
    src_host: str = typer.Argument(..., help="Source host"),
    dst_host: str = typer.Argument(..., help="Destination host"),
    remote_paths: List[str] = typer.Argument(..., help="Files or directories on the source host"),
    dest_dir: str = typer.Argument(..., help="Directory on the destination host"),
    quiet: bool = typer.Option(False, "-q", "--quiet", help="Quiet mode"),
):
    """
    Copy files between two hosts without staging them locally.

    Every file is attempted; failures are listed at the end.

    Examples:
        remotefs copy web backup /srv/data /backups/web
    """
    context = get_context(ctx)

    with cli_errors(), ExitStack() as stack:
        source = stack.enter_context(context.session(src_host))
        destination = stack.enter_context(context.session(dst_host))
        with progress_display(quiet) as sink:
            count = context.transfers.transfer_between_servers(
                source, destination, remote_paths, dest_dir, sink
            )

    if not quiet:
        stdout_console.print(
            f"[green]✓[/green] Copied {count} file(s) from {src_host} to {dst_host}:{dest_dir}"
        )
