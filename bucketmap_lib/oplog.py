"""Per-operation timing log lines.

    with OperationLog(db.log, "SAVE", ["people"], "", person):
        ...

logs `BUCKETMAP[0.002s]: SAVE people: {"id":"1",...}` at INFO when the
block succeeds and the same line plus ` Error: ...` at ERROR when it
raises. Exceptions are never swallowed.
"""
from __future__ import annotations
import logging
import time
from typing import Any, Optional, Sequence

from pydantic import BaseModel
from pydantic_core import PydanticSerializationError

from bucketmap_lib.mapper.paths import format_path

logger = logging.getLogger(__name__)


def describe(data: Any) -> str:
    if data is None:
        return ""
    if isinstance(data, BaseModel):
        try:
            return data.model_dump_json()
        except PydanticSerializationError:
            return repr(data)
    if isinstance(data, str):
        return data
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("utf-8", "replace")
    if isinstance(data, (list, tuple)) and all(isinstance(x, (str, bytes)) for x in data):
        return ",".join(x.decode("utf-8", "replace") if isinstance(x, bytes) else x for x in data)
    return repr(data)


class OperationLog:
    def __init__(self, enabled: bool, method: str, path: Optional[Sequence[Any]], key: str = "", data: Any = None) -> None:
        self.enabled = enabled
        self.method = method
        self.path = path
        self.key = key
        self.data = data
        self._start = 0.0

    def __enter__(self) -> "OperationLog":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if not self.enabled:
            return False
        elapsed = time.perf_counter() - self._start
        msg = f"BUCKETMAP[{elapsed:.3f}s]: {self.method} {format_path(self.path)}:{self.key} {describe(self.data)}"
        if exc is not None:
            logger.error("%s Error: %s", msg.rstrip(), exc)
        else:
            logger.info(msg.rstrip())
        return False
