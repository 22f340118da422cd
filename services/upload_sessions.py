from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass, field
import threading
from typing import Dict, Optional, Tuple


SESSION_CAPACITY = 64
SESSION_DEFAULT_TTL = 3600.0  # 1 hour


@dataclass
class UploadSession:
    """Files received so far for one chunked upload."""
    total_expected: Optional[int] = None
    timestamp: Optional[str] = None
    source: Optional[str] = None
    files: Dict[str, str] = field(default_factory=dict)


class SessionStore:
    """Thread-safe LRU of upload sessions with per-entry expiry.

    Abandoned uploads age out after ``ttl`` seconds; when more than
    ``capacity`` sessions are open the least recently touched one is dropped.
    """

    def __init__(self, capacity: int = SESSION_CAPACITY, default_ttl: float = SESSION_DEFAULT_TTL):
        self._cap = max(1, capacity)
        self._ttl = max(1.0, default_ttl)
        self._lock = threading.RLock()
        # session_id -> (session, expires_at_monotonic)
        self._map: OrderedDict[str, Tuple[UploadSession, float]] = OrderedDict()

    def _purge_expired(self) -> None:
        now = time.monotonic()
        dead = [k for k, (_, exp) in self._map.items() if exp <= now]
        for k in dead:
            self._map.pop(k, None)

    def get(self, session_id: str) -> Optional[UploadSession]:
        with self._lock:
            self._purge_expired()
            pair = self._map.get(session_id)
            if pair is None:
                return None
            self._map.move_to_end(session_id, last=True)
            return pair[0]

    def get_or_create(
        self,
        session_id: str,
        total_expected: Optional[int] = None,
        timestamp: Optional[str] = None,
        source: Optional[str] = None,
    ) -> UploadSession:
        """Return the open session, creating it from the first chunk's metadata."""
        with self._lock:
            self._purge_expired()
            pair = self._map.get(session_id)
            if pair is None:
                session = UploadSession(total_expected=total_expected, timestamp=timestamp, source=source)
            else:
                session = pair[0]
            self._map[session_id] = (session, time.monotonic() + self._ttl)
            self._map.move_to_end(session_id, last=True)
            while len(self._map) > self._cap:
                self._map.popitem(last=False)
            return session

    def add_file(self, session_id: str, filename: str, content: str, **meta) -> UploadSession:
        with self._lock:
            session = self.get_or_create(session_id, **meta)
            session.files[filename] = content
            return session

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._map.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._map)

    def __contains__(self, session_id: str) -> bool:
        return self.get(session_id) is not None
