"""
Service wiring for CLI commands
"""
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import typer
from rich.markup import escape

from ...core.exceptions import ConnectionError, RemoteError
from ...core.interfaces import SecretVault
from ...core.logging import get_logger, get_stderr_console
from ...domain.connection import ConnectionManager, Session, create_client
from ...domain.files import RemoteFileOps
from ...domain.listing import ListingCache, ListingService
from ...domain.transfer import TransferService
from ...infrastructure.state.inventory import InventoryStore
from ...infrastructure.state.vault import EnvironmentVault
from ..config.loader import Settings, load_settings

logger = get_logger(__name__)
stderr_console = get_stderr_console()


@dataclass
class AppContext:
    """Services shared by one CLI invocation"""
    settings: Settings
    inventory: InventoryStore
    connections: ConnectionManager
    listing: ListingService
    transfers: TransferService
    files: RemoteFileOps

    @contextmanager
    def session(self, host_ref: str) -> Iterator[Session]:
        """Open a session to an inventory host, released on exit"""
        target = self.inventory.find_host(host_ref)
        session = self.connections.connect(target)
        try:
            yield session
        finally:
            self.connections.disconnect(session)

    def close(self) -> None:
        self.transfers.shutdown(wait=False)
        self.connections.close_all()


def build_context(
    config_path: Optional[Path] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
    vault: Optional[SecretVault] = None,
) -> AppContext:
    """
    Load settings and wire every service.

    Raises:
        ConfigError: Invalid configuration or inventory
    """
    settings = load_settings(config_path, cli_overrides)
    inventory = InventoryStore(settings.inventory_path)
    connections = ConnectionManager(
        credentials=inventory,
        hosts=inventory,
        vault=vault or EnvironmentVault(),
        client_factory=create_client,
        host_key_policy=settings.build_host_key_policy(),
        timeout=settings.timeout,
        keepalive=settings.keepalive,
    )
    listing = ListingService(ListingCache(settings.cache_capacity))
    logger.debug(f"Using inventory {inventory.path}")
    return AppContext(
        settings=settings,
        inventory=inventory,
        connections=connections,
        listing=listing,
        transfers=TransferService(settings.transfer, listing=listing),
        files=RemoteFileOps(listing),
    )


def get_context(ctx: typer.Context) -> AppContext:
    """AppContext stored on the root command by the app callback"""
    return ctx.obj


@contextmanager
def cli_errors() -> Iterator[None]:
    """Print domain errors in red and exit with status 1"""
    try:
        yield
    except ConnectionError as e:
        stderr_console.print(f"[red]Connection error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except RemoteError as e:
        stderr_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
