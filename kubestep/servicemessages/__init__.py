"""Service message sinks for KubeStep.

Exports:
    EventSink          -- Abstract base for every sink implementation.
    ConsoleEventSink   -- Writes ``##octopus[...]`` lines to a text stream.
    InMemoryEventSink  -- Keeps emitted messages in order; used by tests and
                          embedding hosts.
"""

from kubestep.servicemessages.sink import ConsoleEventSink, EventSink, InMemoryEventSink

__all__ = ["ConsoleEventSink", "EventSink", "InMemoryEventSink"]
