"""Notification channel between the tracking engine and its consumers.

The engine only emits events; it never knows who is listening or how a
consumer renders them (CLI log lines, the HTTP event log, tests).
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Literal, Union

from pydantic import BaseModel, Field

from models.data_models import RerunOutcome, TrackedPR

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RecordAdded(BaseModel):
    type: Literal["record_added"] = "record_added"
    at: datetime = Field(default_factory=_now)
    record: TrackedPR


class RecordUpdated(BaseModel):
    type: Literal["record_updated"] = "record_updated"
    at: datetime = Field(default_factory=_now)
    record: TrackedPR


class RecordRemoved(BaseModel):
    type: Literal["record_removed"] = "record_removed"
    at: datetime = Field(default_factory=_now)
    record_id: str


class StatusNote(BaseModel):
    """Transient, user-facing progress message."""

    type: Literal["status_note"] = "status_note"
    at: datetime = Field(default_factory=_now)
    message: str


class RerunFinished(BaseModel):
    type: Literal["rerun_finished"] = "rerun_finished"
    at: datetime = Field(default_factory=_now)
    outcome: RerunOutcome


TrackerEvent = Union[RecordAdded, RecordUpdated, RecordRemoved, StatusNote, RerunFinished]
Subscriber = Callable[[TrackerEvent], None]


class EventBus:
    """Synchronous fan-out of tracker events to subscribers."""

    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, event: TrackerEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Event subscriber {callback!r} failed on {event.type}: {e}")

    def note(self, message: str) -> None:
        """Shortcut for emitting a StatusNote."""
        logger.info(message)
        self.emit(StatusNote(message=message))
