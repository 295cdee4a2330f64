from __future__ import annotations

from datetime import datetime
import hashlib
import re
import threading

from .events import NotificationEvent


_WHITESPACE = re.compile(r"\s+")


class RecentPayloads:
    """Remembers recently forwarded notification bodies.

    The money-app listener and the SMS-app listener often see the same receipt
    a few seconds apart, under different source apps and titles, so only the
    body takes part in the fingerprint.
    """

    def __init__(self, window_seconds: int = 120) -> None:
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")
        self._window = window_seconds
        self._seen: dict[tuple[str, int], datetime] = {}
        self._lock = threading.Lock()

    def check_and_mark(self, event: NotificationEvent) -> bool:
        """Return True if an equivalent event was already seen, else record it."""
        digest = fingerprint(event)
        bucket = self._bucket(event.captured_at)
        with self._lock:
            # Neighbouring buckets on both sides: the two listeners may hand
            # over their copies in either captured_at order.
            if any((digest, bucket + offset) in self._seen for offset in (-1, 0, 1)):
                return True
            self._seen[(digest, bucket)] = event.captured_at
            self._prune(bucket)
        return False

    def forget(self, event: NotificationEvent) -> None:
        """Drop the record of an event that was marked but never delivered."""
        key = (fingerprint(event), self._bucket(event.captured_at))
        with self._lock:
            self._seen.pop(key, None)

    def __len__(self) -> int:
        return len(self._seen)

    def _bucket(self, captured_at: datetime) -> int:
        return int(captured_at.timestamp()) // self._window

    def _prune(self, current_bucket: int) -> None:
        cutoff = current_bucket - 1
        stale = [key for key in self._seen if key[1] < cutoff]
        for key in stale:
            del self._seen[key]


def fingerprint(event: NotificationEvent) -> str:
    source = event.body or " ".join(part for part in (event.title, event.ticker) if part)
    body = _WHITESPACE.sub(" ", source.strip()).casefold()
    return hashlib.sha256(body.encode("utf-8")).hexdigest()
