"""
Change notification for FlexiBase.

The Database publishes a ChangeEvent after every committed mutation.
Subscribers are plain callables invoked synchronously, in subscription
order, after the local write has succeeded.

Invariants:
    - A failing subscriber never prevents delivery to the others
    - Subscribing the same callback twice delivers the event twice
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    TABLE = "table"
    RECORD = "record"


class ChangeAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed change.

    Attributes:
        type: What kind of entity changed
        action: What happened to it
        data: Identifiers and payload of the change
    """

    type: ChangeType
    action: ChangeAction
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "action": self.action.value, "data": self.data}


Subscriber = Callable[[ChangeEvent], None]


class EventChannel:
    """Fan-out of ChangeEvents to subscribers.

    Example:
        >>> channel = EventChannel()
        >>> unsubscribe = channel.subscribe(print)
        >>> channel.publish(ChangeEvent(ChangeType.TABLE, ChangeAction.CREATE, {"tableId": t}))
        >>> unsubscribe()
    """

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []

    def __len__(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: Subscriber) -> Callable[[], bool]:
        """Register callback; returns a handle that unsubscribes it."""
        self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> bool:
        try:
            self._subscribers.remove(callback)
        except ValueError:
            return False
        return True

    def publish(self, event: ChangeEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Change subscriber failed",
                    extra={"type": event.type.value, "action": event.action.value},
                )
