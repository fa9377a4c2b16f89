"""
Mirror administration commands.

One click command per verb. Commands raise MirrorAdminError subclasses and
leave the exit status to the dispatcher.
"""
import asyncio
import platform
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlsplit

import click
import humanize
import structlog
from tabulate import tabulate

from mirroradmin.cli.context import AdminContext
from mirroradmin.core.exceptions import (
    DaemonNotRunning,
    NotIndexed,
    ScanError,
    SignalDeliveryError,
    ValidationError,
)
from mirroradmin.models.mirror import Mirror
from mirroradmin.services.editing import EditWorkflow, Editor
from mirroradmin.services.export import EXPORT_FORMATS, ExportOptions, export_rows
from mirroradmin.services.normalize import normalize_url
from mirroradmin.services.repository import MirrorFilter, MirrorRepository
from mirroradmin.services.resolver import resolve
from mirroradmin.services.scanner import Scanner, scan_mirror
from mirroradmin.services.signals import ControlSignal

logger = structlog.get_logger(__name__)


# ===========================================
# Mirror creation
# ===========================================

def _http_host(http_url: str) -> str:
    try:
        parts = urlsplit(http_url)
        # Accessing the port validates it
        parts.port
    except ValueError as e:
        raise ValidationError("Can't parse HTTP url") from e
    if not parts.hostname:
        raise ValidationError("Can't parse HTTP url")
    return parts.hostname


async def _add(ctx: AdminContext, mirror: Mirror, host: str) -> Mirror:
    geo = await ctx.geolocator().locate(host)
    if len(geo.addresses) > 1:
        click.echo("Warning: the hostname returned more than one address! "
                   "This is highly unreliable.", err=True)

    if geo.located:
        mirror = mirror.model_copy(update={
            "latitude": geo.latitude,
            "longitude": geo.longitude,
            "continent_code": geo.continent_code,
            "country_codes": geo.country_code,
            "asnum": geo.asnum,
        })
    else:
        click.echo(f"Warning: unable to guess the geographic location of {mirror.id}", err=True)

    async with ctx.store() as store:
        return await MirrorRepository(store).create(mirror)


@click.command("add", short_help="Add a new mirror")
@click.argument("identifier")
@click.option("--http", "http_url", default="", help="HTTP base URL")
@click.option("--rsync", "rsync_url", default="", help="RSYNC base URL (for scanning only)")
@click.option("--ftp", "ftp_url", default="", help="FTP base URL (for scanning only)")
@click.option("--sponsor-name", default="", help="Name of the sponsor")
@click.option("--sponsor-url", default="", help="URL of the sponsor")
@click.option("--sponsor-logo", default="", help="URL of a logo to display for this mirror")
@click.option("--admin-name", default="", help="Admin's name")
@click.option("--admin-email", default="", help="Admin's email")
@click.option("--custom-data", default="",
              help="Associated data to return when the mirror is selected (i.e. json document)")
@click.option("--continent-only", is_flag=True, help="The mirror should only handle its continent")
@click.option("--country-only", is_flag=True, help="The mirror should only handle its country")
@click.option("--as-only", is_flag=True, help="The mirror should only handle clients in the same AS number")
@click.option("--score", type=int, default=0, help="Weight to give to the mirror during selection")
@click.pass_obj
def add(ctx: AdminContext, identifier: str, http_url: str, rsync_url: str, ftp_url: str,
        sponsor_name: str, sponsor_url: str, sponsor_logo: str, admin_name: str,
        admin_email: str, custom_data: str, continent_only: bool, country_only: bool,
        as_only: bool, score: int) -> None:
    """Add a new mirror.

    The mirror starts disabled; enable it once it has been scanned.
    """
    if not identifier or any(c.isspace() for c in identifier):
        raise ValidationError("The identifier cannot be empty or contain a space")
    if not http_url.strip():
        raise ValidationError("You *must* pass at least an HTTP URL")

    http_url = normalize_url(http_url, default_scheme="http")
    host = _http_host(http_url)

    mirror = Mirror(
        id=identifier,
        http_url=http_url,
        rsync_url=normalize_url(rsync_url),
        ftp_url=normalize_url(ftp_url),
        sponsor_name=sponsor_name,
        sponsor_url=sponsor_url,
        sponsor_logo_url=sponsor_logo,
        admin_name=admin_name,
        admin_email=admin_email,
        custom_data=custom_data,
        continent_only=continent_only,
        country_only=country_only,
        as_only=as_only,
        score=score,
    )
    asyncio.run(_add(ctx, mirror, host))
    click.echo("Mirror added successfully")


# ===========================================
# Existing mirrors
# ===========================================

async def _remove(ctx: AdminContext, query: str) -> str:
    async with ctx.store() as store:
        identifier = await resolve(store, query)
        await MirrorRepository(store).remove(identifier)
        return identifier


@click.command("remove", short_help="Remove a mirror")
@click.argument("identifier")
@click.pass_obj
def remove(ctx: AdminContext, identifier: str) -> None:
    """Remove an existing mirror and every file it is known to host."""
    asyncio.run(_remove(ctx, identifier))
    click.echo("Mirror removed successfully")


async def _set_enabled(ctx: AdminContext, query: str, enabled: bool) -> str:
    async with ctx.store() as store:
        identifier = await resolve(store, query)
        await MirrorRepository(store).set_enabled(identifier, enabled)
        return identifier


@click.command("enable", short_help="Enable a mirror")
@click.argument("identifier")
@click.pass_obj
def enable(ctx: AdminContext, identifier: str) -> None:
    """Enable a mirror"""
    asyncio.run(_set_enabled(ctx, identifier, True))
    click.echo("Mirror enabled successfully")


@click.command("disable", short_help="Disable a mirror")
@click.argument("identifier")
@click.pass_obj
def disable(ctx: AdminContext, identifier: str) -> None:
    """Disable a mirror"""
    asyncio.run(_set_enabled(ctx, identifier, False))
    click.echo("Mirror disabled successfully")


async def _edit(ctx: AdminContext, editor: Editor, query: str) -> bool:
    async with ctx.store() as store:
        identifier = await resolve(store, query)
        return await EditWorkflow(MirrorRepository(store), editor).run(identifier)


@click.command("edit", short_help="Edit a mirror")
@click.argument("identifier")
@click.pass_obj
def edit(ctx: AdminContext, identifier: str) -> None:
    """Edit a mirror in $EDITOR"""
    editor = ctx.editor()
    if asyncio.run(_edit(ctx, editor, identifier)):
        click.echo("Mirror edited successfully")
    else:
        click.echo("Aborted")


# ===========================================
# Listing and export
# ===========================================

def format_state(mirror: Mirror) -> str:
    since = "unknown"
    if mirror.state_since > 0:
        since = humanize.naturaltime(datetime.fromtimestamp(mirror.state_since))
    return f"{'up  ' if mirror.up else 'down'} ({since})"


async def _list(ctx: AdminContext, mirror_filter: MirrorFilter) -> List[Mirror]:
    async with ctx.store() as store:
        return await MirrorRepository(store).list_mirrors(mirror_filter)


@click.command("list", short_help="List all mirrors")
@click.option("--http", is_flag=True, help="Print HTTP addresses")
@click.option("--rsync", is_flag=True, help="Print rsync addresses")
@click.option("--ftp", is_flag=True, help="Print FTP addresses")
@click.option("--state/--no-state", default=True, help="Print the state of the mirror")
@click.option("--disabled", is_flag=True, help="List disabled mirrors only")
@click.option("--enabled", is_flag=True, help="List enabled mirrors only")
@click.option("--down", is_flag=True, help="List only mirrors currently down")
@click.pass_obj
def list_mirrors(ctx: AdminContext, http: bool, rsync: bool, ftp: bool, state: bool,
                 disabled: bool, enabled: bool, down: bool) -> None:
    """Get the list of mirrors"""
    mirrors = asyncio.run(_list(ctx, MirrorFilter(enabled=enabled, disabled=disabled, down=down)))

    headers = ["Identifier"]
    if http:
        headers.append("HTTP")
    if rsync:
        headers.append("RSYNC")
    if ftp:
        headers.append("FTP")
    if state:
        headers.append("STATE")

    rows = []
    for mirror in mirrors:
        row = [mirror.id]
        if http:
            row.append(mirror.http_url)
        if rsync:
            row.append(mirror.rsync_url)
        if ftp:
            row.append(mirror.ftp_url)
        if state:
            row.append(format_state(mirror))
        rows.append(row)

    click.echo(tabulate(rows, headers=headers, tablefmt="plain", disable_numparse=True))


@click.command("export", short_help="Export the mirror database")
@click.argument("fmt", metavar="FORMAT")
@click.option("--rsync/--no-rsync", default=True, help="Export rsync URLs")
@click.option("--http/--no-http", default=True, help="Export http URLs")
@click.option("--ftp/--no-ftp", default=True, help="Export ftp URLs")
@click.option("--disabled/--no-disabled", default=True, help="Export disabled mirrors")
@click.pass_obj
def export(ctx: AdminContext, fmt: str, rsync: bool, http: bool, ftp: bool, disabled: bool) -> None:
    """Export the mirror database.

    Available formats: mirmon
    """
    if fmt not in EXPORT_FORMATS:
        raise click.UsageError("Unsupported format", ctx=click.get_current_context())

    mirrors = asyncio.run(_list(ctx, MirrorFilter()))
    options = ExportOptions(rsync=rsync, http=http, ftp=ftp, include_disabled=disabled)
    for row in export_rows(mirrors, options, fmt):
        click.echo(str(row))


# ===========================================
# Scanning
# ===========================================

async def _scan(ctx: AdminContext, scanner: Scanner, query: Optional[str]) -> None:
    async with ctx.store() as store:
        if not await store.source_indexed():
            raise NotIndexed()

        repository = MirrorRepository(store)
        if query:
            identifiers = [await resolve(store, query)]
        else:
            identifiers = await store.mirror_ids()

        failures = 0
        for identifier in identifiers:
            mirror = await repository.get(identifier)
            click.echo(f"Scanning {identifier}...")
            try:
                method = await scan_mirror(scanner, mirror)
            except ScanError as e:
                if query:
                    raise
                failures += 1
                click.echo(f"Error: {identifier}: {e}", err=True)
                continue
            logger.info("Mirror scanned", mirror=identifier, method=method)

        if failures:
            raise ScanError(f"{failures} of {len(identifiers)} mirror(s) could not be scanned")


@click.command("scan", short_help="(Re-)Scan a mirror")
@click.argument("identifier", required=False)
@click.option("--all", "scan_all", is_flag=True, help="Scan every mirror")
@click.pass_obj
def scan(ctx: AdminContext, identifier: Optional[str], scan_all: bool) -> None:
    """(Re-)Scan a mirror"""
    if bool(identifier) == scan_all:
        raise click.UsageError("Give either an IDENTIFIER or --all", ctx=click.get_current_context())
    scanner = ctx.scanner()
    asyncio.run(_scan(ctx, scanner, identifier))


@click.command("refresh", short_help="Refresh the local repository")
@click.pass_obj
def refresh(ctx: AdminContext) -> None:
    """Scan the local repository"""
    scanner = ctx.scanner()
    asyncio.run(scanner.scan_source())
    click.echo("Local repository refreshed")


# ===========================================
# Daemon control
# ===========================================

def _send_control(ctx: AdminContext, control: ControlSignal) -> None:
    try:
        pid = ctx.signaler.send(control)
    except (DaemonNotRunning, SignalDeliveryError) as e:
        logger.error("Control signal not delivered", signal=control.value, error=str(e))
        click.echo(f"Error: {e}", err=True)
        return
    click.echo(f"Sent {control.value} to pid {pid}")


@click.command("reload", short_help="Reload configuration")
@click.pass_obj
def reload(ctx: AdminContext) -> None:
    """Ask the running server to reload its configuration"""
    _send_control(ctx, ControlSignal.RELOAD)


@click.command("upgrade", short_help="Seamless binary upgrade")
@click.pass_obj
def upgrade(ctx: AdminContext) -> None:
    """Ask the running server to start a seamless binary upgrade"""
    _send_control(ctx, ControlSignal.UPGRADE)


@click.command("version", short_help="Print version informations")
@click.pass_obj
def version(ctx: AdminContext) -> None:
    """Print version informations"""
    click.echo(f"Version:    {ctx.settings.VERSION}")
    click.echo(f"Python:     {platform.python_version()}")
    click.echo(f"Redis:      {ctx.settings.REDIS_HOST}:{ctx.settings.REDIS_PORT}/{ctx.settings.REDIS_DB}")
