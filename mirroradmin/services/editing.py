"""
Interactive mirror edition.

The mirror is rendered as YAML into a temporary file, handed to the
operator's editor, and written back only if the file content changed.
"""
import asyncio
import hashlib
import os
import shlex
import tempfile
from pathlib import Path
from typing import Optional, Protocol

import pydantic
import structlog
import yaml

from mirroradmin.core.exceptions import ConfigurationError, EditorError, ParseError, ValidationError
from mirroradmin.models.mirror import EDITABLE_FIELDS, Mirror
from mirroradmin.services.normalize import normalize_mirror
from mirroradmin.services.repository import MirrorRepository

logger = structlog.get_logger(__name__)

HEADER = (
    "# You can now edit the configuration of mirror {id}.\n"
    "# Just save and quit when you're done.\n\n"
)


class Editor(Protocol):
    """Something able to let a human modify a file in place."""

    async def edit(self, path: Path) -> None:
        ...


class ExternalEditor:
    """Runs the operator's editor attached to the current terminal."""

    def __init__(self, command: str):
        if not command:
            raise ConfigurationError("Environment variable $EDITOR not set")
        self.argv = shlex.split(command)

    async def edit(self, path: Path) -> None:
        logger.debug("Launching editor", editor=self.argv[0], path=str(path))
        try:
            # stdin/stdout/stderr are inherited from the CLI process
            process = await asyncio.create_subprocess_exec(*self.argv, str(path))
        except OSError as e:
            raise EditorError(f"Cannot run editor {self.argv[0]}: {e}") from e

        returncode = await process.wait()
        if returncode != 0:
            raise EditorError(f"Editor exited with status {returncode}")


class MirrorCodec:
    """YAML representation of the editable part of a mirror."""

    def render(self, mirror: Mirror) -> str:
        document = {field: getattr(mirror, attr) for attr, field in EDITABLE_FIELDS}
        body = yaml.safe_dump(document, default_flow_style=False, sort_keys=False, allow_unicode=True)
        return HEADER.format(id=mirror.id) + body

    def parse(self, text: str, current: Mirror) -> Mirror:
        """Apply the edited document on top of ``current``.

        Keys left out of the document keep their current value.
        """
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ParseError(f"Parse error: {e}") from e

        if document is None:
            document = {}
        if not isinstance(document, dict):
            raise ParseError("Parse error: expected a mapping of mirror attributes")

        by_field = {field: attr for attr, field in EDITABLE_FIELDS}
        unknown = sorted(str(key) for key in document if key not in by_field)
        if unknown:
            raise ParseError(f"Parse error: unknown field(s): {', '.join(unknown)}")

        values = current.model_dump()
        for field, value in document.items():
            attr = by_field[field]
            if isinstance(values[attr], str):
                # Unquoted numbers such as `customData: 42` in string fields
                if value is None:
                    value = ""
                elif isinstance(value, (int, float)) and not isinstance(value, bool):
                    value = str(value)
            values[attr] = value

        try:
            return Mirror.model_validate(values)
        except pydantic.ValidationError as e:
            raise ParseError(f"Parse error: {e}") from e


def file_digest(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


class EditWorkflow:
    """Render, edit, detect change, parse, normalize and commit a mirror."""

    def __init__(self, repository: MirrorRepository, editor: Editor, codec: Optional[MirrorCodec] = None):
        self.repository = repository
        self.editor = editor
        self.codec = codec or MirrorCodec()

    async def run(self, identifier: str) -> bool:
        """Edit a mirror. Returns False when the operator changed nothing."""
        mirror = await self.repository.get(identifier)

        fd, name = tempfile.mkstemp(prefix="edit", suffix=".yaml")
        path = Path(name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self.codec.render(mirror))
            before = file_digest(path)

            await self.editor.edit(path)

            if file_digest(path) == before:
                logger.info("Edit aborted, no change", mirror=identifier)
                return False

            edited = self.codec.parse(path.read_text(encoding="utf-8"), mirror)
        finally:
            path.unlink(missing_ok=True)

        # The identifier is not editable: commit under the original one.
        try:
            edited = normalize_mirror(edited.model_copy(update={"id": mirror.id}))
        except ValidationError as e:
            raise ParseError(f"Parse error: {e}") from e
        if not edited.http_url:
            raise ParseError("Parse error: http cannot be empty")

        await self.repository.update(edited)
        return True
