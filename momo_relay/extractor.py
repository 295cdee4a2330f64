from __future__ import annotations

from dataclasses import dataclass

from .events import NotificationEvent


@dataclass(frozen=True)
class TransactionPayload:
    source_app: str = ""
    title: str = ""
    text: str = ""
    big: str = ""
    ticker: str = ""


def extract(event: NotificationEvent) -> TransactionPayload:
    title = _clean(event.title)
    body = _clean(event.body)
    return TransactionPayload(
        source_app=_clean(event.source_app),
        title=title,
        text=" ".join(part for part in (title, body) if part),
        big=_clean(event.big_text),
        ticker=_clean(event.ticker),
    )


def _clean(value: str | None) -> str:
    if value is None:
        return ""
    return value.strip()
