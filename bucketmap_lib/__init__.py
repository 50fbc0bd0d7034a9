"""bucketmap: map records onto nested buckets of an embedded LMDB store."""

from .config import MapperConfig, load_config
from .db import DB, open_db
from .errors import (
    BucketNotEmptyError,
    BucketNotFoundError,
    EncodingError,
    IncompatibleValueError,
    MapperError,
    NotFoundError,
    PreconditionError,
    StoreError,
    TxNotWritableError,
)
from .events import Event, EventHub
from .mapper import Params
from .models import CreateTime, CreationHook, Model, UpdateHook, UpdateTime
from .validation import Validator

__all__ = [
    "DB",
    "open_db",
    "MapperConfig",
    "load_config",
    "Params",
    "Event",
    "EventHub",
    "Model",
    "CreateTime",
    "UpdateTime",
    "CreationHook",
    "UpdateHook",
    "Validator",
    "MapperError",
    "PreconditionError",
    "NotFoundError",
    "EncodingError",
    "StoreError",
    "BucketNotFoundError",
    "BucketNotEmptyError",
    "IncompatibleValueError",
    "TxNotWritableError",
]
