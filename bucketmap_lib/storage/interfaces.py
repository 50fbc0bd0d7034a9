from __future__ import annotations
from dataclasses import dataclass
from typing import ContextManager, Optional, Protocol, Tuple, runtime_checkable

# A cursor position: (key, value). Value is None for nested buckets and
# both are None once the cursor runs off either end.
Entry = Tuple[Optional[bytes], Optional[bytes]]


@dataclass(frozen=True)
class BucketStats:
    key_count: int
    bucket_count: int


@runtime_checkable
class CursorProtocol(Protocol):
    """Ordered traversal over one bucket's keyspace."""

    def first(self) -> Entry: ...

    def last(self) -> Entry: ...

    def next(self) -> Entry: ...

    def prev(self) -> Entry: ...


@runtime_checkable
class BucketProtocol(Protocol):
    """A namespace holding ordered key/value entries and nested buckets.

    Implementations raise `bucketmap_lib.errors.StoreError` subclasses for
    engine-level rejections (incompatible key kind, read-only transaction).
    """

    def get(self, key: bytes) -> Optional[bytes]: ...

    def put(self, key: bytes, value: bytes) -> None: ...

    def delete(self, key: bytes) -> None: ...

    def bucket(self, name: bytes) -> Optional["BucketProtocol"]: ...

    def create_bucket_if_not_exists(self, name: bytes) -> "BucketProtocol": ...

    def delete_bucket(self, name: bytes) -> None: ...

    def next_sequence(self) -> int: ...

    def cursor(self) -> CursorProtocol: ...

    def stats(self) -> BucketStats: ...


@runtime_checkable
class TransactionProtocol(Protocol):
    """Top-level access to buckets inside one engine transaction."""

    writable: bool

    def bucket(self, name: bytes) -> Optional[BucketProtocol]: ...

    def create_bucket_if_not_exists(self, name: bytes) -> BucketProtocol: ...

    def delete_bucket(self, name: bytes) -> None: ...


@runtime_checkable
class StoreHandle(Protocol):
    """An opened store.

    `view()` yields a read-only snapshot transaction. `update()` yields a
    write transaction which commits when the block exits normally and
    aborts when it raises. Writers are serialized by the engine.
    """

    path: str

    def view(self) -> ContextManager[TransactionProtocol]: ...

    def update(self) -> ContextManager[TransactionProtocol]: ...

    def close(self) -> None: ...
