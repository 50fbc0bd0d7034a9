from __future__ import annotations
from typing import Any, Tuple

from bucketmap_lib.errors import PreconditionError
from bucketmap_lib.models import CreationHook, UpdateHook
from bucketmap_lib.storage.interfaces import BucketProtocol


def get_record_id(record: Any) -> str:
    try:
        record_id = record.id
    except AttributeError:
        raise PreconditionError(f"{type(record).__name__} has no id attribute") from None
    if not isinstance(record_id, str):
        raise PreconditionError(f"{type(record).__name__}.id must be a string, got {type(record_id).__name__}")
    return record_id


def assign_id(bucket: BucketProtocol, record: Any) -> Tuple[str, bool]:
    """Give `record` an id from the bucket sequence if it has none.

    Returns `(id, is_new)`. Must run inside the write transaction that
    stores the record so an abort also rolls back the sequence.
    """
    record_id = get_record_id(record)
    if record_id:
        if isinstance(record, UpdateHook):
            record.on_update()
        return record_id, False

    record_id = str(bucket.next_sequence())
    record.id = record_id
    if isinstance(record, CreationHook):
        record.on_create()
    if isinstance(record, UpdateHook):
        record.on_update()
    return record_id, True
