from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import string
from typing import Any, Iterable


# SQLite LIKE folds case for ASCII letters only; match that in memory.
_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)


@dataclass(frozen=True)
class MessageRecord:
    id: str
    sender: str
    body: str
    timestamp_ms: int
    type: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sender": self.sender,
            "body": self.body,
            "timestamp": self.timestamp_ms,
            "type": self.type,
        }


class Predicate(ABC):
    @abstractmethod
    def matches(self, record: MessageRecord) -> bool:
        raise NotImplementedError

    @abstractmethod
    def to_sql(self) -> tuple[str, list[Any]]:
        """Return a parameterized WHERE fragment and its arguments."""
        raise NotImplementedError


@dataclass(frozen=True)
class MatchAll(Predicate):
    def matches(self, record: MessageRecord) -> bool:
        return True

    def to_sql(self) -> tuple[str, list[Any]]:
        return "1 = 1", []


@dataclass(frozen=True)
class SenderContains(Predicate):
    pattern: str

    def matches(self, record: MessageRecord) -> bool:
        return _ascii_lower(self.pattern) in _ascii_lower(record.sender or "")

    def to_sql(self) -> tuple[str, list[Any]]:
        return "address LIKE ? ESCAPE '\\'", [f"%{_escape_like(self.pattern)}%"]


@dataclass(frozen=True)
class SentSince(Predicate):
    timestamp_ms: int

    def matches(self, record: MessageRecord) -> bool:
        return record.timestamp_ms >= self.timestamp_ms

    def to_sql(self) -> tuple[str, list[Any]]:
        return "date >= ?", [self.timestamp_ms]


@dataclass(frozen=True)
class AllOf(Predicate):
    predicates: tuple[Predicate, ...]

    def matches(self, record: MessageRecord) -> bool:
        return all(predicate.matches(record) for predicate in self.predicates)

    def to_sql(self) -> tuple[str, list[Any]]:
        if not self.predicates:
            return MatchAll().to_sql()
        clauses: list[str] = []
        params: list[Any] = []
        for predicate in self.predicates:
            clause, args = predicate.to_sql()
            clauses.append(f"({clause})")
            params.extend(args)
        return " AND ".join(clauses), params


class MessageStore(ABC):
    @abstractmethod
    def fetch(self, predicate: Predicate, limit: int) -> Iterable[MessageRecord]:
        """Return at most limit matching records, newest first."""
        raise NotImplementedError


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _ascii_lower(value: str) -> str:
    return value.translate(_ASCII_LOWER)
