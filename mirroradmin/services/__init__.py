"""Services module exports."""
from mirroradmin.services.editing import EditWorkflow, ExternalEditor, MirrorCodec
from mirroradmin.services.export import ExportOptions, ExportRow, export_rows
from mirroradmin.services.repository import MirrorFilter, MirrorRepository
from mirroradmin.services.resolver import match, resolve
from mirroradmin.services.signals import ControlSignal, Signaler

__all__ = [
    "EditWorkflow",
    "ExternalEditor",
    "MirrorCodec",
    "ExportOptions",
    "ExportRow",
    "export_rows",
    "MirrorFilter",
    "MirrorRepository",
    "match",
    "resolve",
    "ControlSignal",
    "Signaler",
]
