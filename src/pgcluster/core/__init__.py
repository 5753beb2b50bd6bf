"""Shared building blocks: naming, labels, events, retries and source readers."""

from .events import EventRecorder, LoggingEventRecorder, RecordingEventRecorder
from .naming import ClusterNaming
from .sources import EnvironmentSourceReader, KubernetesSourceReader, StaticSourceReader

__all__ = [
    "ClusterNaming",
    "EnvironmentSourceReader",
    "EventRecorder",
    "KubernetesSourceReader",
    "LoggingEventRecorder",
    "RecordingEventRecorder",
    "StaticSourceReader",
]
