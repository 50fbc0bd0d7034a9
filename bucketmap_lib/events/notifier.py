from __future__ import annotations
import logging
from typing import Any

from .hub import EventHub

logger = logging.getLogger(__name__)

CREATED = "Created"
UPDATED = "Updated"
DELETED = "Deleted"


def event_name(verb: str, record: Any) -> str:
    """`Person` + `Created` -> `PersonCreated`."""
    return type(record).__name__ + verb


class MutationNotifier:
    """Announce committed writes on the hub without blocking the writer."""

    def __init__(self, hub: EventHub) -> None:
        self.hub = hub

    def saved(self, record: Any, is_new: bool) -> None:
        self._publish(CREATED if is_new else UPDATED, record)

    def deleted(self, record: Any) -> None:
        self._publish(DELETED, record)

    def _publish(self, verb: str, record: Any) -> None:
        name = event_name(verb, record)
        try:
            self.hub.publish(name, record)
        except Exception:
            logger.exception("Failed to publish %s", name)
