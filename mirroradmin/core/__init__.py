"""Core module exports."""
from mirroradmin.core.config import Settings, get_settings
from mirroradmin.core.redis import open_redis
from mirroradmin.core.store import MetadataStore

__all__ = [
    "Settings",
    "get_settings",
    "open_redis",
    "MetadataStore",
]
