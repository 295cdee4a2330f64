from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .config import ClassifierConfig
from .events import NotificationEvent


@dataclass
class ClassificationResult:
    is_candidate: bool
    matched_hints: set[str] = field(default_factory=set)
    reason: str = ""


def classify(event: NotificationEvent, config: ClassifierConfig) -> ClassificationResult:
    """
    Decide whether a notification looks like a money-transfer transaction.

    Allow-listed apps are always candidates; anything else needs at least one
    hint token in the normalized text. matched_hints is diagnostic only.
    """
    text = normalize_text(event)
    if not text:
        return ClassificationResult(is_candidate=False, reason="empty notification text")

    if event.source_app in set(config.allowed_apps):
        return ClassificationResult(
            is_candidate=True,
            matched_hints=_match_hints(text, config.hint_tokens),
            reason=f"allow-listed app {event.source_app}",
        )

    hits = _match_hints(text, config.hint_tokens)
    if hits:
        return ClassificationResult(
            is_candidate=True,
            matched_hints=hits,
            reason="hint match: " + ", ".join(sorted(hits)),
        )
    return ClassificationResult(is_candidate=False, reason="no hint token matched")


def normalize_text(event: NotificationEvent) -> str:
    parts = [event.title, event.body, event.ticker]
    return " ".join(part for part in parts if part).casefold()


def _match_hints(text: str, tokens: Iterable[str]) -> set[str]:
    hits: set[str] = set()
    for token in tokens:
        needle = token.strip().casefold()
        if needle and needle in text:
            hits.add(token.strip())
    return hits
