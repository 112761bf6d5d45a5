"""Append-only, totally ordered activity log shared by concurrently running agents."""

from __future__ import annotations

import itertools
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

SYSTEM_AGENT_ID = "system"
SYSTEM_AGENT_LABEL = "Orchestrator"


class ActivityCategory(str, Enum):
    PROGRESS = "progress"
    RESULT = "result"
    ERROR = "error"
    SYSTEM = "system"
    STREAM_LINK = "stream-link"


@dataclass(frozen=True)
class ActivityEntry:
    id: str
    agent_id: str
    agent_label: str
    message: str
    timestamp: datetime
    category: ActivityCategory
    sequence: int
    stream_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "agent_label": self.agent_label,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "category": self.category.value,
            "sequence": self.sequence,
            "stream_url": self.stream_url,
        }


ActivityListener = Callable[[ActivityEntry], None]


class ActivityLog:
    """
    Chronological log of entries from every agent in a run.

    Order is append order. ``sequence`` breaks ties between entries that
    share a timestamp. Entries are immutable and are never removed.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._entries: List[ActivityEntry] = []
        self._sequence = itertools.count(1)
        self._listeners: List[ActivityListener] = []
        self.listener_errors: List[Tuple[ActivityEntry, Exception]] = []
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def append(
        self,
        agent_id: str,
        agent_label: str,
        message: str,
        category: ActivityCategory = ActivityCategory.PROGRESS,
        stream_url: Optional[str] = None,
    ) -> ActivityEntry:
        entry = ActivityEntry(
            id=uuid.uuid4().hex,
            agent_id=agent_id,
            agent_label=agent_label,
            message=message,
            timestamp=self._clock(),
            category=category,
            sequence=next(self._sequence),
            stream_url=stream_url,
        )
        self._entries.append(entry)
        # The entry is already in the log; a failing listener must not undo that.
        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception as exc:
                self.listener_errors.append((entry, exc))
        return entry

    def system(self, message: str) -> ActivityEntry:
        return self.append(SYSTEM_AGENT_ID, SYSTEM_AGENT_LABEL, message, ActivityCategory.SYSTEM)

    def subscribe(self, listener: ActivityListener) -> Callable[[], None]:
        """Call ``listener`` for every future entry; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def entries(self) -> Tuple[ActivityEntry, ...]:
        return tuple(self._entries)

    def for_agent(self, agent_id: str) -> Tuple[ActivityEntry, ...]:
        return tuple(e for e in self._entries if e.agent_id == agent_id)

    def to_list(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._entries]

    def __iter__(self) -> Iterator[ActivityEntry]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
