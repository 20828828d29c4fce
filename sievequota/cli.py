"""Command-line interface for the SieveQuota ledger."""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from sievequota.common.errors import QuotaStoreError
from sievequota.config import QuotaSettings, configure_logging, load_quota_settings, parse_size
from sievequota.ledger.dao import SieveQuotaDAO, open_quota_dao
from sievequota.store.manager import StoreManager

T = TypeVar("T")

app = typer.Typer(
    name="sievequota",
    help="SieveQuota - quota ledger for Sieve scripts",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()

cluster_app = typer.Typer(help="Cluster default quota", no_args_is_help=True, add_completion=False)
user_app = typer.Typer(help="Per-user quota overrides", no_args_is_help=True, add_completion=False)
space_app = typer.Typer(help="Per-user space usage", no_args_is_help=True, add_completion=False)
app.add_typer(cluster_app, name="cluster")
app.add_typer(user_app, name="user")
app.add_typer(space_app, name="space")


def format_size(size: int) -> str:
    """Format size in human-readable format."""
    sign = "-" if size < 0 else ""
    value = float(abs(size))
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if value < 1024:
            return f"{sign}{value:.1f} {unit}"
        value /= 1024
    return f"{sign}{value:.1f} PB"


def print_success(message: str) -> None:
    """Print success message."""
    console.print(f"[bold green]✓[/bold green] {message}")


def print_error(message: str) -> None:
    """Print error message."""
    console.print(f"[bold red]✗[/bold red] {message}")


def print_info(message: str) -> None:
    """Print info message."""
    console.print(f"[bold blue]ℹ[/bold blue] {message}")


def print_warning(message: str) -> None:
    """Print warning message."""
    console.print(f"[bold yellow]⚠[/bold yellow] {message}")


def _parse_amount(value: str) -> int:
    try:
        return parse_size(value)
    except ValueError:
        raise typer.BadParameter(f"Not a size: {value!r} (examples: 5000, 10KB, 1.5MB)")


def _settings(ctx: typer.Context) -> QuotaSettings:
    return ctx.obj  # type: ignore[no-any-return]


def _run(ctx: typer.Context, operation: Callable[[SieveQuotaDAO], Awaitable[T]]) -> T:
    """Open the configured store, run one ledger operation and close it."""

    async def _go() -> T:
        async with open_quota_dao(_settings(ctx)) as dao:
            return await operation(dao)

    try:
        return asyncio.run(_go())
    except QuotaStoreError as e:
        print_error(f"Store error: {e}")
        raise typer.Exit(1)
    except Exception as e:
        print_error(f"Failed: {e}")
        raise typer.Exit(1)


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file (default: auto-discover, see `sievequota config`)",
        envvar="SIEVEQUOTA_CONFIG",
    ),
) -> None:
    """Inspect and edit Sieve script quotas."""
    settings = load_quota_settings(config)
    configure_logging(settings)
    ctx.obj = settings


# ── Cluster quota ─────────────────────────────────────────────


@cluster_app.command("get")
def cluster_get(ctx: typer.Context) -> None:
    """Show the cluster default quota."""
    quota = _run(ctx, lambda dao: dao.get_quota())
    if quota is None:
        print_info("No cluster quota configured")
    else:
        console.print(f"Cluster quota: [bold]{quota}[/bold] ({format_size(quota)})")


@cluster_app.command("set")
def cluster_set(
    ctx: typer.Context,
    value: str = typer.Argument(..., help="Quota in bytes (suffixes KB/MB/GB accepted)"),
) -> None:
    """Set the cluster default quota."""
    quota = _parse_amount(value)
    _run(ctx, lambda dao: dao.set_quota(quota))
    print_success(f"Cluster quota set to {quota} ({format_size(quota)})")


@cluster_app.command("remove")
def cluster_remove(ctx: typer.Context) -> None:
    """Remove the cluster default quota."""
    if _run(ctx, lambda dao: dao.remove_quota()):
        print_success("Cluster quota removed")
    else:
        print_warning("No cluster quota was set")
        raise typer.Exit(1)


# ── User quota ────────────────────────────────────────────────


@user_app.command("get")
def user_get(ctx: typer.Context, user: str = typer.Argument(..., help="User name")) -> None:
    """Show the quota override of a user."""
    quota = _run(ctx, lambda dao: dao.get_user_quota(user))
    if quota is None:
        print_info(f"No quota override for {user}")
    else:
        console.print(f"Quota for {user}: [bold]{quota}[/bold] ({format_size(quota)})")


@user_app.command("set")
def user_set(
    ctx: typer.Context,
    user: str = typer.Argument(..., help="User name"),
    value: str = typer.Argument(..., help="Quota in bytes (suffixes KB/MB/GB accepted)"),
) -> None:
    """Set the quota override of a user."""
    quota = _parse_amount(value)
    _run(ctx, lambda dao: dao.set_user_quota(user, quota))
    print_success(f"Quota for {user} set to {quota} ({format_size(quota)})")


@user_app.command("remove")
def user_remove(ctx: typer.Context, user: str = typer.Argument(..., help="User name")) -> None:
    """Remove the quota override of a user."""
    if _run(ctx, lambda dao: dao.remove_user_quota(user)):
        print_success(f"Quota for {user} removed")
    else:
        print_warning(f"{user} had no quota override")
        raise typer.Exit(1)


@user_app.command("list")
def user_list(ctx: typer.Context) -> None:
    """List users with a quota override."""

    async def _collect(dao: SieveQuotaDAO) -> list[tuple[str, Optional[int], int]]:
        rows = []
        for name in await dao.users_with_quota():
            rows.append((name, await dao.get_user_quota(name), await dao.space_used_by(name)))
        return rows

    rows = _run(ctx, _collect)
    if not rows:
        print_info("No quota overrides")
        return

    table = Table(
        title="[bold cyan]Quota Overrides[/bold cyan]",
        show_header=True,
        header_style="bold magenta",
        border_style="cyan",
    )
    table.add_column("User", style="white")
    table.add_column("Quota", justify="right", style="green")
    table.add_column("Used", justify="right", style="yellow")
    for name, quota, used in rows:
        # Override may vanish between the scan and the read
        table.add_row(name, "-" if quota is None else str(quota), str(used))
    console.print(table)


# ── Space usage ───────────────────────────────────────────────


@space_app.command("show")
def space_show(ctx: typer.Context, user: str = typer.Argument(..., help="User name")) -> None:
    """Show the space used by a user."""
    used = _run(ctx, lambda dao: dao.space_used_by(user))
    console.print(f"Space used by {user}: [bold]{used}[/bold] ({format_size(used)})")


@space_app.command("adjust")
def space_adjust(
    ctx: typer.Context,
    user: str = typer.Argument(..., help="User name"),
    delta: str = typer.Argument(..., help="Signed byte delta; put negative values after --"),
) -> None:
    """Add (or subtract) bytes from the space used by a user."""
    amount = _parse_amount(delta)

    async def _adjust(dao: SieveQuotaDAO) -> int:
        await dao.update_space_used(user, amount)
        return await dao.space_used_by(user)

    used = _run(ctx, _adjust)
    print_success(f"Space used by {user} adjusted by {amount:+d}, now {used} ({format_size(used)})")


# ── Store ─────────────────────────────────────────────────────


@app.command()
def status(ctx: typer.Context) -> None:
    """Ping the configured store and show its statistics."""
    settings = _settings(ctx)

    async def _probe() -> tuple[bool, dict]:
        manager = StoreManager.from_settings(settings)
        await manager.connect()
        try:
            return await manager.ping(), manager.backend.get_stats()
        finally:
            await manager.disconnect()

    try:
        alive, stats = asyncio.run(_probe())
    except Exception as e:
        print_error(f"Store unreachable: {e}")
        raise typer.Exit(1)

    table = Table(title="[bold cyan]Store[/bold cyan]", show_header=False, border_style="cyan")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key, value in stats.items():
        table.add_row(str(key), str(value))
    table.add_row("key_prefix", settings.key_prefix)
    console.print(table)

    if alive:
        print_success("Store is responding")
    else:
        print_error("Store is not responding")
        raise typer.Exit(1)


@app.command("config")
def show_config(
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output config file path",
    ),
) -> None:
    """Generate a sample configuration file."""
    config_content = """# SieveQuota Configuration
# Save to ./sievequota.yaml, ./config/sievequota.yaml or ~/.sievequota/config.yaml.
# Every value can be overridden by SIEVEQUOTA_<FIELD> environment variables.

# Store backend: memory (testing), file (default), redis (multi-process)
store:
  backend: file
  path: ./quota_data
  save_interval: 5
  lock_timeout: 30  # wait for another process using the same ledger file, -1 = forever
  redis_url: redis://localhost:6379/0

ledger:
  key_prefix: "sieve:"
  operation_timeout: 10  # seconds, null = no timeout

logging:
  level: INFO
"""
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(config_content, encoding="utf-8")
        print_success(f"Config written to {output}")
    else:
        console.print(config_content, markup=False, highlight=False)


if __name__ == "__main__":
    app()
