from __future__ import annotations

from typing import Iterable

from .base import MessageRecord, MessageStore, Predicate


class InMemoryMessageStore(MessageStore):
    def __init__(self, records: Iterable[MessageRecord] = ()) -> None:
        self._records = list(records)

    def add(self, record: MessageRecord) -> None:
        self._records.append(record)

    def fetch(self, predicate: Predicate, limit: int) -> list[MessageRecord]:
        matching = [record for record in self._records if predicate.matches(record)]
        matching.sort(key=lambda record: record.timestamp_ms, reverse=True)
        return matching[:limit]
