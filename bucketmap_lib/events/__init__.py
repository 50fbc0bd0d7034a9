"""Mutation events."""

from .hub import Event, EventHub
from .notifier import CREATED, DELETED, UPDATED, MutationNotifier, event_name

__all__ = ["Event", "EventHub", "MutationNotifier", "event_name", "CREATED", "UPDATED", "DELETED"]
