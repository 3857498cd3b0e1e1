from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import asdict, dataclass
from typing import Callable, Deque, Dict, List, Optional, Set

from ..config import runtime_config

logger = logging.getLogger("scrape.log_hub")

Listener = Callable[[str], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class LogEntry:
    ts: int
    line: str

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


class LogHub:
    """Per-user progress lines: a bounded ring buffer plus live fan-out.

    One hub is built at process start and handed to whatever runs scrapes and
    whatever serves the log endpoints. Nothing is persisted across restarts.
    """

    def __init__(self, max_entries: Optional[int] = None, *, clock: Callable[[], int] = _now_ms) -> None:
        if max_entries is None:
            max_entries = runtime_config.log_buffer_size
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._clock = clock
        self._buffers: Dict[str, Deque[LogEntry]] = {}
        self._listeners: Dict[str, Set[Listener]] = {}
        self._lock = threading.Lock()

    def append(self, user_id: str, line: str) -> LogEntry:
        entry = LogEntry(ts=self._clock(), line=line)
        with self._lock:
            buffer = self._buffers.get(user_id)
            if buffer is None:
                buffer = deque(maxlen=self.max_entries)
                self._buffers[user_id] = buffer
            buffer.append(entry)
            listeners = list(self._listeners.get(user_id, ()))

        for listener in listeners:
            try:
                listener(line)
            except Exception as exc:  # noqa: BLE001
                logger.debug("Log listener for %s failed: %s", user_id, exc)
        return entry

    def since(self, user_id: str, since_ts: int = 0) -> List[LogEntry]:
        with self._lock:
            entries = list(self._buffers.get(user_id, ()))
        if not since_ts:
            return entries
        return [entry for entry in entries if entry.ts > since_ts]

    def subscribe(self, user_id: str, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.setdefault(user_id, set()).add(listener)

        def _unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(user_id)
                if not listeners:
                    return
                listeners.discard(listener)
                if not listeners:
                    del self._listeners[user_id]

        return _unsubscribe

    def subscriber_count(self, user_id: str) -> int:
        with self._lock:
            return len(self._listeners.get(user_id, ()))

    def clear(self, user_id: str) -> None:
        with self._lock:
            self._buffers.pop(user_id, None)

    def now(self) -> int:
        return self._clock()


def user_logger(hub: LogHub, user_id: str) -> Callable[[str], None]:
    """Bind a hub to one user, giving the ``(line) -> None`` sink the engine expects."""

    def _log(line: str) -> None:
        hub.append(user_id, line)

    return _log
