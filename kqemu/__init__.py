"""kqueue-style event notification: kevents, knotes, filters and two event queues."""

__version__ = "0.1.0"

__all__ = ["events", "knote", "filter", "kevent", "lite"]