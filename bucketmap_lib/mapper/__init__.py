"""Generic record mapping over a bucket store."""

from .collection import populate, populate_keys
from .cursor import DEFAULT_LIMIT, Params, iter_entries
from .identity import assign_id, get_record_id
from .paths import format_path, resolve, resolve_or_create

__all__ = [
    "populate",
    "populate_keys",
    "DEFAULT_LIMIT",
    "Params",
    "iter_entries",
    "assign_id",
    "get_record_id",
    "format_path",
    "resolve",
    "resolve_or_create",
]
