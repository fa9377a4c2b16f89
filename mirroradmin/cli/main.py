"""
Command line entry point.

Routes a verb to its command through an explicit table and turns errors into
the process exit status.
"""
import sys
from typing import Dict, List, Optional

import click
import structlog

from mirroradmin.cli import commands
from mirroradmin.cli.context import AdminContext
from mirroradmin.core.config import get_settings
from mirroradmin.core.exceptions import AmbiguousTarget, MirrorAdminError
from mirroradmin.core.logging import configure_logging

logger = structlog.get_logger(__name__)

PROG_NAME = "mirroradmin"

COMMANDS: Dict[str, click.Command] = {
    "add": commands.add,
    "disable": commands.disable,
    "edit": commands.edit,
    "enable": commands.enable,
    "export": commands.export,
    "list": commands.list_mirrors,
    "refresh": commands.refresh,
    "reload": commands.reload,
    "remove": commands.remove,
    "scan": commands.scan,
    "upgrade": commands.upgrade,
    "version": commands.version,
}


def print_help() -> None:
    """Print the command summary on stderr."""
    lines = [
        f"Usage: {PROG_NAME} COMMAND [arg...]",
        "",
        "Administration of the download mirror directory.",
        "",
        "Commands:",
    ]
    for name in sorted(COMMANDS):
        lines.append(f"    {name:<10.10}{COMMANDS[name].get_short_help_str(limit=60)}")
    lines.append("")
    lines.append(f"Run '{PROG_NAME} COMMAND --help' for more information on a command.")
    click.echo("\n".join(lines) + "\n", err=True)


def run(argv: List[str], context: Optional[AdminContext] = None) -> int:
    """Run one command and return the process exit status."""
    if not argv or argv[0].lower() == "help":
        print_help()
        return 0

    verb = argv[0].lower()
    command = COMMANDS.get(verb)
    if command is None:
        click.echo(f"Error: Command not found: {argv[0]}", err=True)
        print_help()
        return 0

    if context is None:
        settings = get_settings()
        configure_logging(settings)
        context = AdminContext.from_settings(settings)

    try:
        command.main(
            argv[1:],
            prog_name=f"{PROG_NAME} {verb}",
            standalone_mode=False,
            obj=context,
        )
    except click.UsageError as e:
        e.show()
        return 0
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except click.Abort:
        click.echo("Aborted!", err=True)
        return 1
    except AmbiguousTarget as e:
        click.echo("Multiple match:", err=True)
        for candidate in e.candidates:
            click.echo(f"    {candidate}", err=True)
        return e.exit_code
    except MirrorAdminError as e:
        if e.exit_code:
            logger.debug("Command failed", command=verb, error_type=type(e).__name__)
            click.echo(f"Error: {e}", err=True)
        else:
            click.echo(str(e), err=True)
        return e.exit_code
    return 0


def main() -> None:
    sys.exit(run(sys.argv[1:]))
