"""Record mapper facade.

`DB` stores, finds and lists records in nested buckets of an LMDB file.

    db = DB.open("data/app.db")
    p = Person(name="John Doe")
    db.save(["people"], p)               # p.id == "1", emits PersonCreated
    same = db.find(["people"], p.id, Person)
    people: list[Person] = []
    db.list(["people"], people, Person, Params(offset=10, limit=30))

Every call runs in its own store transaction: reads in a snapshot, writes
in the single writer transaction. Events are published after commit and
never delay or fail the write.
"""
from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar, Union, get_origin

from bucketmap_lib.config import MapperConfig
from bucketmap_lib.errors import MapperError, NotFoundError, PreconditionError, StoreError, BucketNotEmptyError, EncodingError
from bucketmap_lib.events import EventHub, MutationNotifier
from bucketmap_lib.logging_config import configure_logging
from bucketmap_lib.mapper import (
    Params,
    assign_id,
    format_path,
    get_record_id,
    iter_entries,
    populate,
    populate_keys,
    resolve,
    resolve_or_create,
)
from bucketmap_lib.mapper.collection import check_destination
from bucketmap_lib.mapper.paths import Path as BucketPath, check_path, segment_bytes
from bucketmap_lib.oplog import OperationLog
from bucketmap_lib.storage import StoreHandle, open_store
from bucketmap_lib.storage.interfaces import BucketProtocol, TransactionProtocol
from bucketmap_lib.storage.serializer import Codec, create_codec

logger = logging.getLogger(__name__)

T = TypeVar("T")
Key = Union[str, bytes]


def _key(key: Key) -> bytes:
    return key if isinstance(key, bytes) else str(key).encode("utf-8")


class DB:
    def __init__(
        self,
        store: StoreHandle,
        config: Optional[MapperConfig] = None,
        codec: Optional[Codec] = None,
        hub: Optional[EventHub] = None,
    ) -> None:
        self.config = config or MapperConfig()
        self.file = store.path
        self.log = self.config.log_operations
        self.codec = codec or create_codec(
            self.config.codec,
            key=self.config.encryption_key,
            password=self.config.encryption_password,
        )
        self.events = hub or EventHub(self.config.event_workers)
        self._notifier = MutationNotifier(self.events)
        self._store = store
        self.events.start()
        self._open = True

    @classmethod
    def open(cls, path: str | Path, config: Optional[MapperConfig] = None, codec: Optional[Codec] = None) -> "DB":
        cfg = config or MapperConfig()
        if cfg.log_level:
            configure_logging(cfg.log_level)
        return cls(open_store(path, cfg), cfg, codec=codec)

    @property
    def is_open(self) -> bool:
        return self._open

    def close(self) -> None:
        if not self._open:
            return
        self._open = False
        self.events.stop()
        self._store.close()

    def __enter__(self) -> "DB":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -- helpers ---------------------------------------------------------

    def _oplog(self, method: str, path: BucketPath, key: str = "", data: Any = None) -> OperationLog:
        return OperationLog(self.log, method, path, key, data)

    def _check(self, path: BucketPath) -> None:
        if not self._open:
            raise PreconditionError("db is not opened")
        check_path(path)

    def _params(self, params: Optional[Params]) -> Params:
        if params is None:
            return Params(limit=self.config.default_limit)
        if not isinstance(params, Params):
            raise PreconditionError(f"expected Params but got {type(params).__name__}")
        return params

    @staticmethod
    def _bucket(tx: TransactionProtocol, path: BucketPath) -> BucketProtocol:
        b = resolve(tx, path)
        if b is None:
            raise NotFoundError(f"Bucket not found: {format_path(path)}")
        return b

    @staticmethod
    def _create_bucket(tx: TransactionProtocol, path: BucketPath) -> BucketProtocol:
        try:
            return resolve_or_create(tx, path)
        except StoreError as exc:
            raise type(exc)(f"create bucket: {exc}") from exc

    # -- reads -----------------------------------------------------------

    def find(self, path: BucketPath, record_id: str, target: Union[Type[T], T]) -> Optional[T]:
        """Load the record stored under `record_id`.

        `target` is either a type, in which case a new instance is returned,
        or an existing object whose fields are overwritten in place. A
        missing or empty entry yields the type's zero value, or leaves the
        object untouched.
        """
        with self._oplog("FIND", path, record_id):
            self._check(path)
            with self._store.view() as tx:
                data = self._bucket(tx, path).get(_key(record_id))
                if isinstance(target, type) or get_origin(target) is not None:
                    return self.codec.decode(data, target)
                return self.codec.decode_into(data, target)

    def get(self, path: BucketPath, key: Key) -> Optional[bytes]:
        """Return the raw bytes stored under `key`, or None."""
        with self._oplog("GET", path, str(key)):
            self._check(path)
            with self._store.view() as tx:
                return self._bucket(tx, path).get(_key(key))

    def list(
        self,
        path: BucketPath,
        dest: List[T],
        item_type: Type[T],
        params: Optional[Params] = None,
    ) -> List[T]:
        """Append decoded records from the bucket at `path` to `dest`.

        Entries are visited in key order (reversed with `params.reverse`);
        `params.offset` entries are skipped and at most `params.limit` are
        appended. Entries without a value are ignored. On a decode error
        the records appended so far stay in `dest`.
        """
        p = self._params(params)
        with self._oplog("LIST", path, "", p):
            self._check(path)
            check_destination(dest, item_type)
            with self._store.view() as tx:
                b = self._bucket(tx, path)
                return populate(iter_entries(b, p, skip_empty=True), dest, item_type, self.codec)

    def list_keys(self, path: BucketPath, keys: Sequence[Key], dest: List[T], item_type: Type[T]) -> List[T]:
        """Append the records stored under `keys`, in that order, to `dest`."""
        with self._oplog("LISTKEYS", path, "", list(keys)):
            self._check(path)
            check_destination(dest, item_type)
            with self._store.view() as tx:
                return populate_keys(self._bucket(tx, path), keys, dest, item_type, self.codec)

    def list_items(self, path: BucketPath, params: Optional[Params] = None) -> Dict[str, Optional[bytes]]:
        """Return raw entries as an ordered key -> bytes mapping.

        Nested buckets appear with a None value.
        """
        p = self._params(params)
        with self._oplog("LISTITEMS", path, "", p):
            self._check(path)
            with self._store.view() as tx:
                b = self._bucket(tx, path)
                return {k.decode("utf-8", "surrogateescape"): v for k, v in iter_entries(b, p)}

    def values(self, path: BucketPath, params: Optional[Params] = None) -> List[Optional[bytes]]:
        """Return raw values in key order."""
        p = self._params(params)
        with self._oplog("VALUES", path, "", p):
            self._check(path)
            with self._store.view() as tx:
                return [v for _k, v in iter_entries(self._bucket(tx, path), p)]

    def count(self, path: BucketPath) -> int:
        """Number of values in the bucket; 0 when closed, absent or failing."""
        try:
            self._check(path)
            with self._store.view() as tx:
                b = resolve(tx, path)
                return b.stats().key_count if b is not None else 0
        except MapperError as exc:
            logger.debug("count %s: %s", format_path(path), exc)
            return 0

    # -- writes ----------------------------------------------------------

    def save(self, path: BucketPath, record: Any) -> str:
        """Insert or update `record` and return its id.

        A record with an empty id gets the next id of the bucket sequence
        and emits `<Type>Created`; otherwise it is stored under its id and
        `<Type>Updated` is emitted.
        """
        with self._oplog("SAVE", path, "", record):
            self._check(path)
            previous_id = get_record_id(record)
            try:
                with self._store.update() as tx:
                    b = self._create_bucket(tx, path)
                    record_id, is_new = assign_id(b, record)
                    try:
                        data = self.codec.encode(record)
                    except EncodingError as exc:
                        raise EncodingError(f"could not encode {record_id}: {exc.__cause__ or exc}") from exc
                    b.put(_key(record_id), data)
            except BaseException:
                if record.id != previous_id:
                    record.id = previous_id
                raise
        self._notifier.saved(record, is_new)
        return record_id

    def save_value(self, path: BucketPath, key: Key, value: Union[bytes, str]) -> None:
        """Store raw bytes under `key`, bypassing the codec."""
        data = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        with self._oplog("SAVE-VALUE", path, str(key), data):
            self._check(path)
            with self._store.update() as tx:
                self._create_bucket(tx, path).put(_key(key), data)

    def delete(self, path: BucketPath, record: Any) -> None:
        """Remove `record` by its id and emit `<Type>Deleted`."""
        self.delete_keys(path, [get_record_id(record)])
        self._notifier.deleted(record)

    def delete_keys(self, path: BucketPath, keys: Sequence[Key]) -> None:
        """Remove entries by key; keys that do not exist are ignored."""
        with self._oplog("DELETE", path, "", list(keys)):
            self._check(path)
            with self._store.update() as tx:
                b = self._bucket(tx, path)
                for key in keys:
                    b.delete(_key(key))

    def delete_buckets(self, path: BucketPath, names: Sequence[Key], purge_values: Optional[bool] = None) -> None:
        """Remove the nested buckets `names` of the bucket at `path`.

        All names are removed in one transaction, or none are. A bucket that
        itself contains buckets is never removed. A bucket that holds values
        is removed only when `purge_values` (default from the config) is
        true.
        """
        purge = self.config.purge_bucket_values if purge_values is None else purge_values
        with self._oplog("DELETE-BUCKET", path, "", list(names)):
            self._check(path)
            with self._store.update() as tx:
                b = self._bucket(tx, path)
                for name in names:
                    n = segment_bytes(name)
                    child = b.bucket(n)
                    if child is not None:
                        stats = child.stats()
                        if stats.bucket_count:
                            raise BucketNotEmptyError(f"delete bucket {name!r}: has nested buckets")
                        if stats.key_count and not purge:
                            raise BucketNotEmptyError(f"delete bucket {name!r}: holds {stats.key_count} values")
                    try:
                        b.delete_bucket(n)
                    except StoreError as exc:
                        raise type(exc)(f"delete bucket {name!r}: {exc}") from exc


def open_db(path: str | Path, config: Optional[MapperConfig] = None, **overrides: Any) -> DB:
    """Open (creating if needed) the database file at `path`."""
    cfg = (config or MapperConfig()).with_overrides(**overrides)
    return DB.open(path, cfg)
