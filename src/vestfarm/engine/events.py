"""Event log - the observable side effects engines emit after committing."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[["Event"], None]


@dataclass(frozen=True)
class Event:
    """One emitted event."""
    name: str  # e.g. "Staked", "VestingRevoked"
    source: str  # Address of the emitting engine
    timestamp: int
    args: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'source': self.source,
            'timestamp': self.timestamp,
            'args': dict(self.args),
        }


class EventLog:
    """Append-only event history with synchronous listeners."""

    def __init__(self):
        self.history: List[Event] = []
        self._listeners: List[Listener] = []

    def __len__(self) -> int:
        return len(self.history)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: Event):
        self.history.append(event)
        logger.debug("Event %s from %s: %s", event.name, event.source, event.args)
        # Listeners run after commit; their failures are logged, not raised
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener %r failed on %s event", listener, event.name)

    def filter(self, name: Optional[str] = None, source: Optional[str] = None) -> List[Event]:
        """Events matching name and/or source, in emission order."""
        return [
            e for e in self.history
            if (name is None or e.name == name) and (source is None or e.source == source)
        ]
