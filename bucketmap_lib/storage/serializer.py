"""Record codecs.

A codec turns a record into bytes and back into an instance of a caller
given type. Types are resolved through pydantic's `TypeAdapter`, so
pydantic models, dataclasses, TypedDicts and plain containers all work
without per-type code.

An empty or absent payload is not an error: it decodes to a zero-valued
instance (or leaves an in-place target untouched). Raw values written by
`DB.save_value` may legitimately be empty.
"""
from __future__ import annotations
import base64
import dataclasses
import json
import os
from functools import lru_cache
from typing import Any, Optional, Protocol, Type, TypeVar

import yaml
from pydantic import BaseModel, PydanticUserError, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from bucketmap_lib.errors import EncodingError

T = TypeVar("T")


@lru_cache(maxsize=256)
def _adapter(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


def zero_value(item_type: Type[T]) -> Optional[T]:
    """Return the zero value for `item_type`.

    Pydantic models are built without validation so required fields do not
    get in the way; other types are called without arguments. Types that
    cannot be built that way have no zero value and yield None.
    """
    if isinstance(item_type, type) and issubclass(item_type, BaseModel):
        return item_type.model_construct()
    try:
        return item_type()
    except TypeError:
        return None


def copy_into(target: Any, source: Any) -> Any:
    """Overwrite `target`'s fields with `source`'s and return `target`."""
    if isinstance(target, BaseModel):
        for name in type(target).model_fields:
            setattr(target, name, getattr(source, name))
    elif dataclasses.is_dataclass(target):
        for f in dataclasses.fields(target):
            setattr(target, f.name, getattr(source, f.name))
    elif isinstance(target, dict):
        target.clear()
        target.update(source)
    elif isinstance(target, list):
        target[:] = source
    elif hasattr(target, "__dict__"):
        target.__dict__.update(vars(source))
    else:
        raise EncodingError(f"cannot decode into {type(target).__name__} in place")
    return target


class Codec(Protocol):
    """Encode records to bytes and decode bytes into a given type."""

    name: str

    def encode(self, record: Any) -> bytes: ...

    def decode(self, data: Optional[bytes], item_type: Type[T]) -> Optional[T]: ...

    def decode_into(self, data: Optional[bytes], target: T) -> T: ...


class BaseCodec:
    """Shared empty-payload handling; subclasses implement `_dump`/`_load`."""

    name = "base"

    def _dump(self, record: Any) -> bytes:
        raise NotImplementedError

    def _load(self, data: bytes, item_type: Any) -> Any:
        raise NotImplementedError

    def encode(self, record: Any) -> bytes:
        try:
            return self._dump(record)
        except (PydanticSerializationError, PydanticUserError, ValueError, TypeError, yaml.YAMLError) as exc:
            raise EncodingError(f"could not encode {type(record).__name__}: {exc}") from exc

    def decode(self, data: Optional[bytes], item_type: Type[T]) -> Optional[T]:
        if not data:
            return zero_value(item_type)
        try:
            return self._load(bytes(data), item_type)
        except (ValidationError, PydanticUserError, ValueError, TypeError, KeyError, yaml.YAMLError) as exc:
            raise EncodingError(f"could not decode {getattr(item_type, '__name__', item_type)}: {exc}") from exc

    def decode_into(self, data: Optional[bytes], target: T) -> T:
        if not data:
            return target
        decoded = self.decode(data, type(target))
        return copy_into(target, decoded)


class JSONCodec(BaseCodec):
    """Default codec: JSON text through pydantic."""

    name = "json"

    def _dump(self, record: Any) -> bytes:
        return _adapter(type(record)).dump_json(record)

    def _load(self, data: bytes, item_type: Any) -> Any:
        return _adapter(item_type).validate_json(data)


class YAMLCodec(BaseCodec):
    """Codec using YAML text; values go through pydantic's JSON mode first."""

    name = "yaml"

    def _dump(self, record: Any) -> bytes:
        value = _adapter(type(record)).dump_python(record, mode="json")
        return yaml.safe_dump(value, sort_keys=False).encode("utf-8")

    def _load(self, data: bytes, item_type: Any) -> Any:
        return _adapter(item_type).validate_python(yaml.safe_load(data.decode("utf-8")))


class EncryptedCodec(BaseCodec):
    """Wrap another codec's output with Fernet (authenticated symmetric encryption).

    Provide either `key` (a Fernet key) or `password`. With a password each
    payload carries its own random salt and PBKDF2 iteration count in a
    small JSON frame so it can be decrypted later.
    """

    name = "encrypted"

    def __init__(
        self,
        *,
        key: bytes | str | None = None,
        password: str | None = None,
        iterations: int = 390000,
        base: Optional[BaseCodec] = None,
    ) -> None:
        if key is None and password is None:
            raise ValueError("EncryptedCodec requires either `key` or `password`")
        self._key = key.encode("ascii") if isinstance(key, str) else key
        self._password = password
        self._iterations = iterations
        self.base = base or JSONCodec()

    def _derive_key(self, salt: bytes, iterations: int) -> bytes:
        from cryptography.hazmat.primitives import hashes
        from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

        kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt, iterations=iterations)
        return base64.urlsafe_b64encode(kdf.derive(self._password.encode("utf-8")))

    def _dump(self, record: Any) -> bytes:
        from cryptography.fernet import Fernet

        inner = self.base.encode(record)
        if self._password is not None:
            salt = os.urandom(16)
            token = Fernet(self._derive_key(salt, self._iterations)).encrypt(inner)
            frame = {
                "v": 1,
                "mode": "password",
                "iterations": self._iterations,
                "salt": base64.urlsafe_b64encode(salt).decode("ascii"),
                "ct": token.decode("ascii"),
            }
        else:
            frame = {"v": 1, "mode": "key", "ct": Fernet(self._key).encrypt(inner).decode("ascii")}
        return json.dumps(frame).encode("utf-8")

    def _load(self, data: bytes, item_type: Any) -> Any:
        from cryptography.fernet import Fernet, InvalidToken

        frame = json.loads(data.decode("utf-8"))
        mode = frame.get("mode")
        if mode == "password":
            if self._password is None:
                raise ValueError("codec was not configured with a password")
            salt = base64.urlsafe_b64decode(frame["salt"].encode("ascii"))
            fernet = Fernet(self._derive_key(salt, frame.get("iterations", self._iterations)))
        elif mode == "key":
            if self._key is None:
                raise ValueError("codec was not configured with a key")
            fernet = Fernet(self._key)
        else:
            raise ValueError("unknown frame format")
        try:
            inner = fernet.decrypt(frame["ct"].encode("ascii"))
        except InvalidToken as exc:
            raise ValueError("payload could not be decrypted") from exc
        return self.base.decode(inner, item_type)


def create_codec(name: str = "json", *, key: str | None = None, password: str | None = None) -> BaseCodec:
    """Build a codec by name: `json`, `yaml` or `encrypted` (JSON inside)."""
    if name == "json":
        return JSONCodec()
    if name == "yaml":
        return YAMLCodec()
    if name == "encrypted":
        return EncryptedCodec(key=key, password=password)
    raise ValueError(f"Unknown codec: {name}")
