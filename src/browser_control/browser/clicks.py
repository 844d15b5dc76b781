"""Per-session click telemetry used by the observer overlay."""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Callable, Deque, Dict, List, Optional

from .runtime_common import _now_ms

MAX_CLICK_EVENTS = 50
CLICK_EVENT_TTL_MS = 60_000


@dataclass(frozen=True)
class ClickEvent:
    x: float
    y: float
    timestamp: int
    kind: str
    selector: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload = asdict(self)
        if self.selector is None:
            payload.pop("selector")
        return payload


class ClickEventBuffer:
    """Bounded, age-evicted ring buffer. Lost updates are acceptable."""

    def __init__(
        self,
        *,
        max_events: int = MAX_CLICK_EVENTS,
        ttl_ms: int = CLICK_EVENT_TTL_MS,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._events: Deque[ClickEvent] = deque(maxlen=max(1, int(max_events)))
        self._ttl_ms = int(ttl_ms)
        self._clock = clock

    def __len__(self) -> int:
        return len(self._events)

    def _evict(self, now: int) -> None:
        cutoff = now - self._ttl_ms
        while self._events and self._events[0].timestamp < cutoff:
            self._events.popleft()

    def record(self, x: float, y: float, *, kind: str, selector: Optional[str] = None) -> ClickEvent:
        now = self._clock()
        event = ClickEvent(x=float(x), y=float(y), timestamp=now, kind=kind, selector=selector)
        self._events.append(event)
        self._evict(now)
        return event

    def since(self, timestamp_ms: Optional[int] = None) -> List[ClickEvent]:
        self._evict(self._clock())
        if timestamp_ms is None:
            return list(self._events)
        return [event for event in self._events if event.timestamp >= timestamp_ms]

    def clear(self) -> None:
        self._events.clear()
