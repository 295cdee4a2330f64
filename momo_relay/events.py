from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class NotificationEvent:
    source_app: str
    title: str | None = None
    text: str | None = None
    big_text: str | None = None
    ticker: str | None = None
    captured_at: datetime = field(default_factory=_utcnow)

    @property
    def body(self) -> str | None:
        """Expanded body when the notification has one, else the short text."""
        if self.big_text:
            return self.big_text
        return self.text

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> NotificationEvent:
        source_app = _first(raw, "source_app", "sourceApp", "package")
        if not source_app:
            raise ValueError("notification event must include a source app")
        captured_raw = _first(raw, "captured_at", "capturedAt")
        return cls(
            source_app=str(source_app),
            title=_optional_str(raw.get("title")),
            text=_optional_str(raw.get("text")),
            big_text=_optional_str(_first(raw, "big_text", "bigText", "big")),
            ticker=_optional_str(raw.get("ticker")),
            captured_at=_parse_captured_at(captured_raw) if captured_raw is not None else _utcnow(),
        )


class NotificationListener(ABC):
    @abstractmethod
    def on_notification_posted(self, event: NotificationEvent) -> None:
        """Called by the host for every posted notification.

        Must return fast and must not raise past its boundary.
        """
        raise NotImplementedError


def _first(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _parse_captured_at(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    elif isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError("captured_at must be an ISO-8601 string or epoch milliseconds")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed
