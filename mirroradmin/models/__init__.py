"""Models module exports."""
from mirroradmin.models.mirror import (
    Mirror,
    EDITABLE_FIELDS,
    FIELD_MAP,
    mirror_from_fields,
    mirror_to_fields,
)

__all__ = [
    "Mirror",
    "EDITABLE_FIELDS",
    "FIELD_MAP",
    "mirror_from_fields",
    "mirror_to_fields",
]
