"""SQLite-backed persistence for per-conversation Zoho OAuth credentials."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Protocol

from app.models.oauth import CredentialRecord
from app.utils.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset(
    {"external_user_id", "access_token", "refresh_token", "expires_at"}
)
# Accepted in update payloads but never written.
_IGNORED_FIELDS = frozenset({"conversation_id", "created_at", "updated_at"})
_MIN_TICK = timedelta(microseconds=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require(value: str, name: str) -> None:
    if not value:
        raise ValueError(f"{name} must be a non-empty string")


class CredentialStore(Protocol):
    """Key-value persistence of one credential record per conversation."""

    def upsert(
        self,
        conversation_id: str,
        external_user_id: str,
        access_token: str,
        refresh_token: str,
        lifetime_seconds: float,
    ) -> CredentialRecord:
        ...

    def get(self, conversation_id: str) -> Optional[CredentialRecord]:
        ...

    def update(
        self, conversation_id: str, fields: Mapping[str, Any]
    ) -> Optional[CredentialRecord]:
        ...

    def delete(self, conversation_id: str) -> bool:
        ...


class SQLiteCredentialStore:
    """Credential store keeping encrypted tokens in a single SQLite table."""

    def __init__(
        self,
        db_path: str,
        cipher: TokenCipherService,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._cipher = cipher
        self._clock = clock
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the database write lock for the whole read-merge-write."""
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS credential_records (
                    conversation_id TEXT PRIMARY KEY,
                    external_user_id TEXT NOT NULL,
                    access_token_encrypted TEXT NOT NULL,
                    refresh_token_encrypted TEXT NOT NULL,
                    expires_at INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def upsert(
        self,
        conversation_id: str,
        external_user_id: str,
        access_token: str,
        refresh_token: str,
        lifetime_seconds: float,
    ) -> CredentialRecord:
        """Create or fully overwrite the record for ``conversation_id``."""
        _require(conversation_id, "conversation_id")
        _require(external_user_id, "external_user_id")
        _require(access_token, "access_token")
        _require(refresh_token, "refresh_token")

        with self._transaction() as conn:
            existing = self._fetch_row(conn, conversation_id)
            now = self._clock()
            created_at = (
                datetime.fromisoformat(existing["created_at"]) if existing else now
            )
            record = CredentialRecord(
                conversation_id=conversation_id,
                external_user_id=external_user_id,
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at=self._expires_at(now, lifetime_seconds),
                created_at=created_at,
                updated_at=self._next_updated_at(existing, now),
            )
            self._write(conn, record)

        logger.info("Stored Zoho credentials for conversation %s", conversation_id)
        return record

    def get(self, conversation_id: str) -> Optional[CredentialRecord]:
        conn = self._connect()
        try:
            row = self._fetch_row(conn, conversation_id)
        finally:
            conn.close()
        if row is None:
            return None
        return self._to_record(row)

    def update(
        self, conversation_id: str, fields: Mapping[str, Any]
    ) -> Optional[CredentialRecord]:
        """Merge ``fields`` into an existing record.

        Returns ``None`` when the conversation has no record; callers must
        check. ``updated_at`` is refreshed even when ``fields`` is empty.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS - _IGNORED_FIELDS
        if unknown:
            raise ValueError(f"Unknown credential fields: {', '.join(sorted(unknown))}")
        changes: Dict[str, Any] = {
            key: value for key, value in fields.items() if key in _UPDATABLE_FIELDS
        }
        for key in ("external_user_id", "access_token", "refresh_token"):
            if key in changes:
                _require(changes[key], key)
        if "expires_at" in changes:
            changes["expires_at"] = max(0, int(changes["expires_at"]))

        with self._transaction() as conn:
            row = self._fetch_row(conn, conversation_id)
            if row is None:
                return None
            current = self._to_record(row)
            record = current.model_copy(
                update={
                    **changes,
                    "updated_at": self._next_updated_at(row, self._clock()),
                }
            )
            self._write(conn, record)

        logger.debug("Updated Zoho credentials for conversation %s", conversation_id)
        return record

    def delete(self, conversation_id: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM credential_records WHERE conversation_id = ?",
                (conversation_id,),
            )
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted Zoho credentials for conversation %s", conversation_id)
        return deleted

    def conversation_ids(self) -> List[str]:
        """Every conversation that currently has a stored record."""
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT conversation_id FROM credential_records ORDER BY conversation_id"
            ).fetchall()
        finally:
            conn.close()
        return [row["conversation_id"] for row in rows]

    @staticmethod
    def _fetch_row(
        conn: sqlite3.Connection, conversation_id: str
    ) -> Optional[sqlite3.Row]:
        return conn.execute(
            "SELECT * FROM credential_records WHERE conversation_id = ?",
            (conversation_id,),
        ).fetchone()

    @staticmethod
    def _expires_at(now: datetime, lifetime_seconds: float) -> int:
        now_ms = int(now.timestamp() * 1000)
        return max(0, now_ms + int(lifetime_seconds * 1000))

    @staticmethod
    def _next_updated_at(row: Optional[sqlite3.Row], now: datetime) -> datetime:
        """Keep ``updated_at`` strictly increasing even on a coarse clock."""
        if row is None:
            return now
        previous = datetime.fromisoformat(row["updated_at"])
        return max(now, previous + _MIN_TICK)

    def _write(self, conn: sqlite3.Connection, record: CredentialRecord) -> None:
        conn.execute(
            """
            INSERT INTO credential_records (
                conversation_id, external_user_id, access_token_encrypted,
                refresh_token_encrypted, expires_at, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(conversation_id) DO UPDATE SET
                external_user_id = excluded.external_user_id,
                access_token_encrypted = excluded.access_token_encrypted,
                refresh_token_encrypted = excluded.refresh_token_encrypted,
                expires_at = excluded.expires_at,
                updated_at = excluded.updated_at
            """,
            (
                record.conversation_id,
                record.external_user_id,
                self._cipher.encrypt(record.access_token),
                self._cipher.encrypt(record.refresh_token),
                record.expires_at,
                record.created_at.isoformat(),
                record.updated_at.isoformat(),
            ),
        )

    def _to_record(self, row: sqlite3.Row) -> CredentialRecord:
        return CredentialRecord(
            conversation_id=row["conversation_id"],
            external_user_id=row["external_user_id"],
            access_token=self._cipher.decrypt(row["access_token_encrypted"]),
            refresh_token=self._cipher.decrypt(row["refresh_token_encrypted"]),
            expires_at=row["expires_at"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


__all__ = ["CredentialStore", "SQLiteCredentialStore"]
