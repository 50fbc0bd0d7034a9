"""Resolve bucket paths inside a transaction."""
from __future__ import annotations
from typing import Optional, Sequence, Union

from bucketmap_lib.errors import PreconditionError, StoreError
from bucketmap_lib.storage.interfaces import BucketProtocol, TransactionProtocol

Segment = Union[str, bytes]
Path = Sequence[Segment]


def segment_bytes(segment: Segment) -> bytes:
    return segment if isinstance(segment, bytes) else str(segment).encode("utf-8")


def check_path(path: Path) -> None:
    if isinstance(path, (str, bytes)):
        raise PreconditionError("path must be a sequence of bucket names, not a single string")
    if path is None or len(path) == 0:
        raise PreconditionError("No bucket provided")


def format_path(path: Path) -> str:
    return "/".join(s.decode("utf-8", "replace") if isinstance(s, bytes) else str(s) for s in path or ())


def resolve(tx: TransactionProtocol, path: Path) -> Optional[BucketProtocol]:
    """Return the bucket at `path`, or None if any segment is missing."""
    check_path(path)
    b = tx.bucket(segment_bytes(path[0]))
    for segment in path[1:]:
        if b is None:
            return None
        b = b.bucket(segment_bytes(segment))
    return b


def resolve_or_create(tx: TransactionProtocol, path: Path) -> BucketProtocol:
    """Return the bucket at `path`, creating missing segments in order.

    The first failing segment raises `StoreError`; segments created before
    it belong to the same write transaction and roll back with it.
    """
    check_path(path)
    parent = tx
    for depth, segment in enumerate(path):
        try:
            parent = parent.create_bucket_if_not_exists(segment_bytes(segment))
        except StoreError as exc:
            raise type(exc)(f"{format_path(path[:depth + 1])}: {exc}") from exc
    return parent
