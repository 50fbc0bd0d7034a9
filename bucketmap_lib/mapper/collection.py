"""Fill caller supplied lists with decoded records."""
from __future__ import annotations
from collections.abc import MutableSequence
from typing import Iterable, List, Optional, Sequence, Tuple, Type, TypeVar, Union

from bucketmap_lib.errors import PreconditionError
from bucketmap_lib.storage.interfaces import BucketProtocol
from bucketmap_lib.storage.serializer import Codec

T = TypeVar("T")
Key = Union[str, bytes]


def check_destination(dest: object, item_type: object) -> None:
    if dest is None:
        raise PreconditionError("nil destination passed")
    if not isinstance(dest, MutableSequence):
        raise PreconditionError(f"expected a mutable collection reference but got {type(dest).__name__}")
    if item_type is None:
        raise PreconditionError("item type required")


def populate(
    entries: Iterable[Tuple[bytes, Optional[bytes]]],
    dest: List[T],
    item_type: Type[T],
    codec: Codec,
) -> List[T]:
    """Decode each entry into a new `item_type` and append it to `dest`.

    A decode error stops the loop; items appended so far stay in `dest`.
    """
    check_destination(dest, item_type)
    for _key, value in entries:
        dest.append(codec.decode(value, item_type))
    return dest


def populate_keys(
    bucket: BucketProtocol,
    keys: Sequence[Key],
    dest: List[T],
    item_type: Type[T],
    codec: Codec,
) -> List[T]:
    """Like `populate` but in the order of `keys`; missing keys are skipped."""
    check_destination(dest, item_type)

    def entries():
        for key in keys:
            k = key if isinstance(key, bytes) else str(key).encode("utf-8")
            value = bucket.get(k)
            if value is not None:
                yield k, value

    return populate(entries(), dest, item_type, codec)
