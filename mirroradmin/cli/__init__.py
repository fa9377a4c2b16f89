"""CLI module exports."""
from mirroradmin.cli.main import COMMANDS, main, run

__all__ = ["COMMANDS", "main", "run"]
