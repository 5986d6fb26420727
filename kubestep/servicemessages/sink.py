"""Ordered, append-only destinations for service messages.

EventSink         -- ABC every sink must implement.
ConsoleEventSink  -- Serialises each message onto its own line of a stream.
InMemoryEventSink -- Records messages for later inspection.
"""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from typing import TextIO

import structlog

from kubestep.models.messages import ServiceMessage

_log = structlog.get_logger(component="servicemessages.sink")


class EventSink(ABC):
    """Abstract base class for service message sinks.

    ``emit`` must preserve call order; messages are never reordered or
    dropped once accepted.
    """

    @property
    @abstractmethod
    def sink_name(self) -> str:
        """Human-readable sink identifier used in logs."""

    @abstractmethod
    def emit(self, message: ServiceMessage) -> None:
        """Append *message* to the sink."""


class ConsoleEventSink(EventSink):
    """Writes messages to the deployment task log (stdout by default)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    @property
    def sink_name(self) -> str:
        return "console"

    def emit(self, message: ServiceMessage) -> None:
        stream = self._stream or sys.stdout
        stream.write(message.format() + "\n")
        stream.flush()
        _log.debug("service_message_emitted", name=message.name, properties=len(message.properties))


class InMemoryEventSink(EventSink):
    """Collects messages in emission order."""

    def __init__(self) -> None:
        self._messages: list[ServiceMessage] = []

    @property
    def sink_name(self) -> str:
        return "memory"

    @property
    def messages(self) -> list[ServiceMessage]:
        return list(self._messages)

    def emit(self, message: ServiceMessage) -> None:
        self._messages.append(message)

    def of_type(self, name: str) -> list[ServiceMessage]:
        """Messages whose type tag equals *name*, in emission order."""
        return [m for m in self._messages if m.name == name]

    def clear(self) -> None:
        self._messages.clear()
