"""Event pub/sub for merge session progress.

Lets callers follow a merge session (CLI summary, progress bars, tests)
without the updater knowing who listens.
"""

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger()

# Event types emitted by GlossaryUpdater
ENTRY_ADDED = "entry_added"
ARBITRATION_DISPATCHED = "arbitration_dispatched"
ARBITRATION_APPLIED = "arbitration_applied"
ARBITRATION_REJECTED = "arbitration_rejected"
MERGE_COMPLETED = "merge_completed"


@dataclass
class MergeEvent:
    """A single merge session event."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    session_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MergeStats:
    """Counters for one merge session."""

    proposals: int = 0
    # Conflict-free proposals merged without arbitration
    added_directly: int = 0
    arbitrated: int = 0
    applied: int = 0
    rejected: int = 0
    actions_applied: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class EventBus:
    """Simple synchronous event bus.

    Subscribers run inline in the emitting coroutine, so they must not block.
    """

    def __init__(self) -> None:
        self._subscribers: dict[int, Callable[[MergeEvent], None]] = {}
        self._next_id = 0

    def subscribe(self, callback: Callable[[MergeEvent], None]) -> int:
        """Register a callback. Returns subscription ID for unsubscribe."""
        self._next_id += 1
        self._subscribers[self._next_id] = callback
        return self._next_id

    def unsubscribe(self, sub_id: int) -> None:
        self._subscribers.pop(sub_id, None)

    def emit(self, event: MergeEvent) -> None:
        """Send event to all subscribers."""
        for callback in list(self._subscribers.values()):
            try:
                callback(event)
            except Exception as e:
                # A broken subscriber must not abort the merge session
                logger.warning("event_subscriber_failed", event_type=event.type, error=str(e))
