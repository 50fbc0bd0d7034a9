"""Error taxonomy for the record mapper.

Every error raised by the public surface derives from `MapperError` so
callers can catch the whole family. The more specific classes also derive
from the builtin exception a Python caller would naturally expect
(`ValueError` for bad input, `KeyError` for absent namespaces).
"""
from __future__ import annotations


class MapperError(Exception):
    """Base class for all mapper errors."""


class PreconditionError(MapperError, ValueError):
    """Raised synchronously when a call cannot proceed at all.

    Examples: the database is not opened, the path is empty, the
    destination is not a mutable collection.
    """


class NotFoundError(MapperError, KeyError):
    """Raised when a namespace (bucket) on a path does not exist."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep plain messages.
        return str(self.args[0]) if self.args else ""


class EncodingError(MapperError, ValueError):
    """Raised when a record cannot be encoded or a payload decoded."""


class StoreError(MapperError):
    """Raised when the storage engine rejects an operation."""


class BucketNotFoundError(StoreError):
    pass


class IncompatibleValueError(StoreError):
    """A key holds a value where a bucket was expected, or the reverse."""


class BucketNotEmptyError(StoreError):
    pass


class TxNotWritableError(StoreError):
    pass
