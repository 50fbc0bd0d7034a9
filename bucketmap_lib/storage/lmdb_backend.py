"""LMDB-backed store with nested buckets.

LMDB offers flat named databases only, so the bucket tree is laid out on
top of a single `tree` database:

- every bucket has a numeric id; the implicit root bucket is id 0
- an entry of bucket `n` is stored under `pack(n) + key`, so one bucket's
  entries are contiguous and ordered by key
- the stored value carries a one-byte tag: `v` + payload for plain values,
  `b` + `pack(child_id)` for a nested bucket

Per-bucket sequences and the bucket id counter live in the `meta` database.
LMDB provides the transaction discipline: one writer at a time, readers on
snapshots.
"""
from __future__ import annotations
import logging
import struct
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import lmdb

from bucketmap_lib.config import MapperConfig
from bucketmap_lib.errors import (
    BucketNotFoundError,
    IncompatibleValueError,
    StoreError,
    TxNotWritableError,
)
from .interfaces import BucketStats, Entry

logger = logging.getLogger(__name__)

ROOT_ID = 0
VALUE_TAG = b"v"
BUCKET_TAG = b"b"
NEXT_BUCKET_KEY = b"next_bucket"
SEQ_PREFIX = b"seq:"

_ID = struct.Struct(">Q")
_END: Entry = (None, None)


def _pack(bucket_id: int) -> bytes:
    return _ID.pack(bucket_id)


def _unpack(raw: bytes) -> int:
    return _ID.unpack(raw)[0]


class LMDBCursor:
    """Cursor bounded to one bucket's key prefix."""

    def __init__(self, txn: lmdb.Transaction, db, bucket_id: int) -> None:
        self._cur = txn.cursor(db=db)
        self._prefix = _pack(bucket_id)
        self._upper = _pack(bucket_id + 1) if bucket_id + 1 < 2 ** 64 else None

    def _current(self) -> Entry:
        key = self._cur.key()
        if not key.startswith(self._prefix):
            return _END
        raw = self._cur.value()
        value = raw[1:] if raw[:1] == VALUE_TAG else None
        return key[len(self._prefix):], value

    def first(self) -> Entry:
        if not self._cur.set_range(self._prefix):
            return _END
        return self._current()

    def last(self) -> Entry:
        if self._upper is not None and self._cur.set_range(self._upper):
            moved = self._cur.prev()
        else:
            moved = self._cur.last()
        if not moved:
            return _END
        return self._current()

    def next(self) -> Entry:
        if not self._cur.next():
            return _END
        return self._current()

    def prev(self) -> Entry:
        if not self._cur.prev():
            return _END
        return self._current()


class LMDBBucket:
    def __init__(self, txn: lmdb.Transaction, tree, meta, bucket_id: int, writable: bool) -> None:
        self._txn = txn
        self._tree = tree
        self._meta = meta
        self.id = bucket_id
        self.writable = writable

    def _key(self, key: bytes) -> bytes:
        return _pack(self.id) + key

    def _raw(self, key: bytes) -> Optional[bytes]:
        return self._txn.get(self._key(key), db=self._tree)

    def _require_writable(self) -> None:
        if not self.writable:
            raise TxNotWritableError("tx not writable")

    def _child(self, bucket_id: int) -> "LMDBBucket":
        return LMDBBucket(self._txn, self._tree, self._meta, bucket_id, self.writable)

    def get(self, key: bytes) -> Optional[bytes]:
        raw = self._raw(key)
        if raw is None or raw[:1] != VALUE_TAG:
            return None
        return raw[1:]

    def put(self, key: bytes, value: bytes) -> None:
        self._require_writable()
        if self.id == ROOT_ID:
            raise IncompatibleValueError("values cannot be stored at the root")
        if not key:
            raise StoreError("key required")
        raw = self._raw(key)
        if raw is not None and raw[:1] == BUCKET_TAG:
            raise IncompatibleValueError(f"key {key!r} holds a bucket")
        self._txn.put(self._key(key), VALUE_TAG + bytes(value), db=self._tree)

    def delete(self, key: bytes) -> None:
        self._require_writable()
        raw = self._raw(key)
        if raw is None:
            return
        if raw[:1] == BUCKET_TAG:
            raise IncompatibleValueError(f"key {key!r} holds a bucket")
        self._txn.delete(self._key(key), db=self._tree)

    def bucket(self, name: bytes) -> Optional["LMDBBucket"]:
        raw = self._raw(name)
        if raw is None or raw[:1] != BUCKET_TAG:
            return None
        return self._child(_unpack(raw[1:]))

    def create_bucket_if_not_exists(self, name: bytes) -> "LMDBBucket":
        self._require_writable()
        if not name:
            raise StoreError("bucket name required")
        raw = self._raw(name)
        if raw is not None:
            if raw[:1] != BUCKET_TAG:
                raise IncompatibleValueError(f"key {name!r} holds a value")
            return self._child(_unpack(raw[1:]))
        child_id = self._allocate_bucket_id()
        self._txn.put(self._key(name), BUCKET_TAG + _pack(child_id), db=self._tree)
        logger.debug("Created bucket %r (id=%d) in bucket %d", name, child_id, self.id)
        return self._child(child_id)

    def delete_bucket(self, name: bytes) -> None:
        """Delete the nested bucket `name` together with everything below it."""
        self._require_writable()
        raw = self._raw(name)
        if raw is None:
            raise BucketNotFoundError(f"bucket {name!r} not found")
        if raw[:1] != BUCKET_TAG:
            raise IncompatibleValueError(f"key {name!r} holds a value")
        self._child(_unpack(raw[1:]))._purge()
        self._txn.delete(self._key(name), db=self._tree)

    def _purge(self) -> None:
        prefix = _pack(self.id)
        children = []
        cur = self._txn.cursor(db=self._tree)
        if cur.set_range(prefix):
            while cur.key().startswith(prefix):
                raw = cur.value()
                if raw[:1] == BUCKET_TAG:
                    children.append(_unpack(raw[1:]))
                # delete() advances the cursor to the following record
                if not cur.delete():
                    break
        for child_id in children:
            self._child(child_id)._purge()
        self._txn.delete(SEQ_PREFIX + prefix, db=self._meta)

    def _allocate_bucket_id(self) -> int:
        raw = self._txn.get(NEXT_BUCKET_KEY, db=self._meta)
        bucket_id = _unpack(raw) if raw is not None else ROOT_ID + 1
        self._txn.put(NEXT_BUCKET_KEY, _pack(bucket_id + 1), db=self._meta)
        return bucket_id

    def next_sequence(self) -> int:
        """Advance and return this bucket's sequence (first value is 1)."""
        self._require_writable()
        key = SEQ_PREFIX + _pack(self.id)
        raw = self._txn.get(key, db=self._meta)
        seq = (_unpack(raw) if raw is not None else 0) + 1
        self._txn.put(key, _pack(seq), db=self._meta)
        return seq

    def sequence(self) -> int:
        raw = self._txn.get(SEQ_PREFIX + _pack(self.id), db=self._meta)
        return _unpack(raw) if raw is not None else 0

    def cursor(self) -> LMDBCursor:
        return LMDBCursor(self._txn, self._tree, self.id)

    def stats(self) -> BucketStats:
        keys = buckets = 0
        c = self.cursor()
        k, v = c.first()
        while k is not None:
            if v is None:
                buckets += 1
            else:
                keys += 1
            k, v = c.next()
        return BucketStats(key_count=keys, bucket_count=buckets)


class LMDBTransaction:
    """Root-level view of one LMDB transaction."""

    def __init__(self, txn: lmdb.Transaction, tree, meta, writable: bool) -> None:
        self.writable = writable
        self._root = LMDBBucket(txn, tree, meta, ROOT_ID, writable)

    def bucket(self, name: bytes) -> Optional[LMDBBucket]:
        return self._root.bucket(name)

    def create_bucket_if_not_exists(self, name: bytes) -> LMDBBucket:
        return self._root.create_bucket_if_not_exists(name)

    def delete_bucket(self, name: bytes) -> None:
        self._root.delete_bucket(name)


class LMDBStore:
    """An opened LMDB environment exposing bucket transactions."""

    def __init__(self, path: str | Path, config: Optional[MapperConfig] = None) -> None:
        cfg = config or MapperConfig()
        self.path = str(path)
        try:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"open {self.path}: {exc}") from exc
        try:
            self._env = lmdb.open(
                self.path,
                subdir=False,
                map_size=cfg.map_size,
                max_dbs=2,
                max_readers=cfg.max_readers,
                sync=cfg.sync,
                lock=True,
            )
            self._tree = self._env.open_db(b"tree")
            self._meta = self._env.open_db(b"meta")
        except lmdb.Error as exc:
            raise StoreError(f"open {self.path}: {exc}") from exc
        logger.debug("Opened LMDB store at %s", self.path)

    @contextmanager
    def view(self) -> Iterator[LMDBTransaction]:
        try:
            txn = self._env.begin(write=False)
        except lmdb.Error as exc:
            raise StoreError(f"begin read tx: {exc}") from exc
        try:
            yield LMDBTransaction(txn, self._tree, self._meta, writable=False)
        except lmdb.Error as exc:
            raise StoreError(str(exc)) from exc
        finally:
            txn.abort()

    @contextmanager
    def update(self) -> Iterator[LMDBTransaction]:
        try:
            txn = self._env.begin(write=True)
        except lmdb.Error as exc:
            raise StoreError(f"begin write tx: {exc}") from exc
        try:
            yield LMDBTransaction(txn, self._tree, self._meta, writable=True)
        except lmdb.Error as exc:
            txn.abort()
            raise StoreError(str(exc)) from exc
        except BaseException:
            txn.abort()
            raise
        try:
            txn.commit()
        except lmdb.Error as exc:
            raise StoreError(f"commit: {exc}") from exc

    def close(self) -> None:
        self._env.close()
        logger.debug("Closed LMDB store at %s", self.path)


def open_store(path: str | Path, config: Optional[MapperConfig] = None) -> LMDBStore:
    return LMDBStore(path, config)
