import json
import logging
import sqlite3
from typing import Any, Dict, Optional

from orcamais.database.connection import DatabaseManager
from orcamais.repositories.base import (
    DocumentNotFoundError,
    DocumentStore,
    PersistenceError,
    apply_field_update,
)

logger = logging.getLogger(__name__)


class SQLiteDocumentStore(DocumentStore):
    """
    SQLite implementation of the DocumentStore.

    Each user document is kept as a JSON text column; field updates
    are read-modify-write inside a single database transaction.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def get_document(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            conn = self.db.get_connection()
            row = conn.execute(
                "SELECT data FROM user_documents WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not read document for {user_id}: {e}") from e

        if row is None:
            return None

        return json.loads(row["data"])

    def set_document(self, user_id: str, patch: Dict[str, Any]) -> None:
        try:
            with self.db.transaction() as conn:
                current = self._load(conn, user_id) or {}
                current.update(patch)
                self._store(conn, user_id, current)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not write document for {user_id}: {e}") from e

    def update_field(self, user_id: str, path: str, value: Any) -> None:
        try:
            with self.db.transaction() as conn:
                current = self._load(conn, user_id)
                if current is None:
                    raise DocumentNotFoundError(f"No document for user {user_id}")

                apply_field_update(current, path, value)
                self._store(conn, user_id, current)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not update '{path}' for {user_id}: {e}") from e

        logger.debug("Updated %s for user %s", path, user_id)

    def _load(self, conn: sqlite3.Connection, user_id: str) -> Optional[Dict[str, Any]]:
        row = conn.execute(
            "SELECT data FROM user_documents WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        return json.loads(row["data"]) if row else None

    def _store(self, conn: sqlite3.Connection, user_id: str, document: Dict[str, Any]) -> None:
        conn.execute(
            """
            INSERT INTO user_documents (user_id, data, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(user_id) DO UPDATE SET
                data = excluded.data,
                updated_at = excluded.updated_at
            """,
            (user_id, json.dumps(document, ensure_ascii=False)),
        )
