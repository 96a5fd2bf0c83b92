# io/event_log.py
from collections import deque

INITIAL_MESSAGE = "Simulation initialized."


class EventLog:
    """Append-only, capped stream of human-readable messages for the UI."""

    def __init__(self, cap: int = 100, initial: str | None = INITIAL_MESSAGE):
        self._entries: deque[str] = deque(maxlen=cap)
        self._initial = initial
        if initial:
            self._entries.append(initial)

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, message: str) -> None:
        self._entries.append(message)

    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def restart(self, marker: str) -> None:
        """Drop everything but the initial line and append `marker`."""
        self._entries.clear()
        if self._initial:
            self._entries.append(self._initial)
        self._entries.append(marker)
