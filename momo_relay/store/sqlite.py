"""SQLite-backed message store.

The table mirrors the columns of an SMS inbox: _id, address, body, date
(epoch milliseconds) and type.
"""

from __future__ import annotations

from contextlib import closing
from pathlib import Path
import sqlite3
from typing import Iterable

from .base import MessageRecord, MessageStore, Predicate


SCHEMA = """
    CREATE TABLE IF NOT EXISTS sms (
        _id INTEGER PRIMARY KEY,
        address TEXT NOT NULL DEFAULT '',
        body TEXT NOT NULL DEFAULT '',
        date INTEGER NOT NULL,
        type INTEGER NOT NULL DEFAULT 1
    )
"""


class SqliteMessageStore(MessageStore):
    def __init__(self, path: str) -> None:
        self._path = path

    def init_schema(self) -> None:
        with closing(sqlite3.connect(self._path)) as conn, conn:
            conn.execute(SCHEMA)
            conn.execute("CREATE INDEX IF NOT EXISTS sms_date ON sms (date)")

    def insert(self, records: Iterable[MessageRecord]) -> None:
        with closing(sqlite3.connect(self._path)) as conn, conn:
            conn.executemany(
                "INSERT INTO sms (_id, address, body, date, type) VALUES (?, ?, ?, ?, ?)",
                [
                    (int(record.id), record.sender, record.body, record.timestamp_ms, record.type)
                    for record in records
                ],
            )

    def fetch(self, predicate: Predicate, limit: int) -> list[MessageRecord]:
        clause, params = predicate.to_sql()
        sql = (
            "SELECT _id, address, body, date, type FROM sms "
            f"WHERE {clause} ORDER BY date DESC LIMIT ?"
        )
        # Read-only so that querying a missing store fails instead of creating one.
        uri = f"{Path(self._path).resolve().as_uri()}?mode=ro"
        with closing(sqlite3.connect(uri, uri=True)) as conn:
            rows = conn.execute(sql, [*params, limit]).fetchall()
        return [
            MessageRecord(
                id=str(row[0]),
                sender=row[1] or "",
                body=row[2] or "",
                timestamp_ms=int(row[3]),
                type=int(row[4]),
            )
            for row in rows
        ]
