from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any

from .config import QueryConfig
from .errors import PermissionDenied, ReadError
from .permissions import PermissionGate
from .store.base import AllOf, MatchAll, MessageRecord, MessageStore, Predicate, SenderContains, SentSince


@dataclass(frozen=True)
class QueryFilter:
    sender_pattern: str | None = None
    since_timestamp_ms: int | None = None
    limit: int | None = None


@dataclass
class QueryResult:
    messages: list[MessageRecord] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.messages)

    def to_dict(self) -> dict[str, Any]:
        return {
            "messages": [record.to_dict() for record in self.messages],
            "count": self.count,
        }


def build_predicate(query_filter: QueryFilter) -> Predicate:
    predicates: list[Predicate] = []
    if query_filter.sender_pattern:
        predicates.append(SenderContains(query_filter.sender_pattern))
    if query_filter.since_timestamp_ms is not None and query_filter.since_timestamp_ms > 0:
        predicates.append(SentSince(int(query_filter.since_timestamp_ms)))
    if not predicates:
        return MatchAll()
    if len(predicates) == 1:
        return predicates[0]
    return AllOf(tuple(predicates))


def clamp_limit(limit: int | None, config: QueryConfig) -> int:
    if limit is None:
        return config.default_limit
    return max(1, min(int(limit), config.max_limit))


class QueryEngine:
    def __init__(self, gate: PermissionGate, store: MessageStore, config: QueryConfig) -> None:
        self._gate = gate
        self._store = store
        self._config = config
        self._logger = logging.getLogger(__name__)

    def query(self, query_filter: QueryFilter) -> QueryResult:
        if not self._gate.check().granted:
            raise PermissionDenied()

        predicate = build_predicate(query_filter)
        limit = clamp_limit(query_filter.limit, self._config)
        try:
            records = list(self._store.fetch(predicate, limit))
        except Exception as exc:
            self._logger.error("Message store read failed: %s", exc)
            raise ReadError() from exc

        records.sort(key=lambda record: record.timestamp_ms, reverse=True)
        return QueryResult(messages=records[:limit])
