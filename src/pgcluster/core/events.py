"""Warning events raised while synthesising manifests.

Policy clamps (minimum limits, maximum requests) are corrected in the output
rather than failing; they are reported through an ``EventRecorder`` so
operators can see that a manifest did not get what it asked for.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)

WARNING = "Warning"
NORMAL = "Normal"


@dataclass(frozen=True)
class Event:
    """A single recorded event about a cluster."""

    cluster: str
    event_type: str
    reason: str
    message: str


class EventRecorder(Protocol):
    """Receiver for events about a cluster."""

    def record(self, cluster: str, event_type: str, reason: str, message: str) -> None:
        ...


class LoggingEventRecorder:
    """Default recorder: every event becomes a log record."""

    def record(self, cluster: str, event_type: str, reason: str, message: str) -> None:
        level = logging.WARNING if event_type == WARNING else logging.INFO
        logger.log(level, f"{cluster}: {reason}: {message}")


@dataclass
class RecordingEventRecorder:
    """Keeps events in memory, e.g. for a CLI summary or for tests."""

    events: list[Event] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record(self, cluster: str, event_type: str, reason: str, message: str) -> None:
        with self._lock:
            self.events.append(Event(cluster, event_type, reason, message))

    def reasons(self) -> list[str]:
        with self._lock:
            return [e.reason for e in self.events]
