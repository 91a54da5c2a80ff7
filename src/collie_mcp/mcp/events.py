"""Manager events and the subscription interface observers register through."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from collie_mcp.logging import MANAGER_COMPONENT, CollieLogger
from collie_mcp.types import LogLevel, LogStream


class EventType(str, Enum):
    """Events published by MCPClientManager."""

    LOG = "log"
    SERVER_CONNECTED = "serverConnected"
    SERVER_DISCONNECTED = "serverDisconnected"


@dataclass(frozen=True)
class LogEvent:
    """A diagnostic line from a server or its transport."""

    server_name: str
    stream: LogStream
    message: str


@dataclass(frozen=True)
class ServerConnectedEvent:
    """A server completed its handshake."""

    server_name: str
    tool_count: int = 0


@dataclass(frozen=True)
class ServerDisconnectedEvent:
    """A connected server went away or was disconnected."""

    server_name: str
    reason: str = ""


ManagerEvent = LogEvent | ServerConnectedEvent | ServerDisconnectedEvent

# Callback receives the event object for the type it subscribed to
EventCallback = Callable[[Any], None]

_EVENT_TYPES: dict[type, EventType] = {
    LogEvent: EventType.LOG,
    ServerConnectedEvent: EventType.SERVER_CONNECTED,
    ServerDisconnectedEvent: EventType.SERVER_DISCONNECTED,
}


class EventBus:
    """Fan-out of manager events to zero or more subscribers.

    Every subscriber of a type receives every event of that type, in emission
    order. A subscriber that raises is logged and does not stop delivery to
    the others.
    """

    def __init__(self, logger: CollieLogger | None = None):
        """Initialize event bus.

        Args:
            logger: Optional logger for subscriber failures
        """
        self._logger = logger
        self._subscribers: dict[EventType, list[EventCallback]] = {t: [] for t in EventType}

    def subscribe(self, event_type: EventType | str, callback: EventCallback) -> Callable[[], None]:
        """Register a callback.

        Args:
            event_type: EventType or its string value ("log", "serverConnected", ...)
            callback: Called with each event

        Returns:
            A function that removes the subscription
        """
        kind = EventType(event_type)
        self._subscribers[kind].append(callback)

        def unsubscribe() -> None:
            self.unsubscribe(kind, callback)

        return unsubscribe

    def unsubscribe(self, event_type: EventType | str, callback: EventCallback) -> bool:
        """Remove a callback. Returns False if it was not subscribed."""
        callbacks = self._subscribers[EventType(event_type)]
        try:
            callbacks.remove(callback)
        except ValueError:
            return False
        return True

    def subscriber_count(self, event_type: EventType | str) -> int:
        """Number of callbacks registered for a type."""
        return len(self._subscribers[EventType(event_type)])

    def emit(self, event: ManagerEvent) -> None:
        """Deliver an event to every subscriber of its type."""
        kind = _EVENT_TYPES[type(event)]
        for callback in list(self._subscribers[kind]):
            try:
                callback(event)
            except Exception as e:
                if self._logger:
                    self._logger._log(
                        LogLevel.WARN,
                        MANAGER_COMPONENT,
                        f"Error in {kind.value} subscriber: {e}",
                    )
