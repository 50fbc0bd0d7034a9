"""Storage layer: the LMDB bucket engine and record codecs."""

from .interfaces import BucketStats, StoreHandle
from .lmdb_backend import LMDBStore, open_store
from .serializer import Codec, EncryptedCodec, JSONCodec, YAMLCodec, create_codec

__all__ = [
    "BucketStats",
    "StoreHandle",
    "LMDBStore",
    "open_store",
    "Codec",
    "JSONCodec",
    "YAMLCodec",
    "EncryptedCodec",
    "create_codec",
]
