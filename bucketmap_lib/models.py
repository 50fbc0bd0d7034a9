"""Record base classes and optional lifecycle hooks.

A record is anything with a string `id` attribute. `Model` is the
convenient base: a pydantic model with an `id` and the validation helper.

Lifecycle hooks are opt-in and independent. A record type may implement
`CreationHook`, `UpdateHook`, both, or neither; the id assigner checks
each one separately. `CreateTime` and `UpdateTime` are ready-made
implementations keeping timestamps.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel

from bucketmap_lib.validation import Validator


class CreationHook(ABC):
    """Called once, when the record is first assigned an id."""

    @abstractmethod
    def on_create(self) -> None: ...


class UpdateHook(ABC):
    """Called on every save, including the first."""

    @abstractmethod
    def on_update(self) -> None: ...


class Model(Validator):
    id: str = ""


class CreateTime(BaseModel, CreationHook):
    created: Optional[datetime] = None

    def on_create(self) -> None:
        self.created = datetime.now(timezone.utc)


class UpdateTime(BaseModel, UpdateHook):
    updated: Optional[datetime] = None

    def on_update(self) -> None:
        self.updated = datetime.now(timezone.utc)
