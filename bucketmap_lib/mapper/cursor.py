"""Paginated traversal of a bucket."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from bucketmap_lib.errors import PreconditionError
from bucketmap_lib.storage.interfaces import BucketProtocol

DEFAULT_LIMIT = 1000


@dataclass(frozen=True)
class Params:
    """Window over a bucket: skip `offset` entries, then yield up to `limit`."""

    offset: int = 0
    limit: int = DEFAULT_LIMIT
    reverse: bool = False

    def __post_init__(self) -> None:
        if self.offset < 0 or self.limit < 0:
            raise PreconditionError(f"offset and limit must be non-negative, got {self.offset}/{self.limit}")


def iter_entries(
    bucket: BucketProtocol,
    params: Optional[Params] = None,
    skip_empty: bool = False,
) -> Iterator[Tuple[bytes, Optional[bytes]]]:
    """Yield `(key, value)` pairs in key order (descending when reversed).

    With `skip_empty` entries without a value (empty payloads and nested
    buckets) are dropped before the window is applied, so `offset` and
    `limit` count only entries that are actually yielded. Iteration stops
    as soon as `limit` entries were produced.
    """
    p = params or Params()
    if p.limit == 0:
        return
    c = bucket.cursor()
    step = c.prev if p.reverse else c.next
    k, v = c.last() if p.reverse else c.first()
    skipped = emitted = 0
    while k is not None:
        if not (skip_empty and not v):
            if skipped < p.offset:
                skipped += 1
            else:
                yield k, v
                emitted += 1
                if emitted >= p.limit:
                    return
        k, v = step()
