import logging
from typing import Any, Dict, Optional

from supabase import Client

from orcamais.repositories.base import (
    DocumentNotFoundError,
    DocumentStore,
    PersistenceError,
    apply_field_update,
)

logger = logging.getLogger(__name__)

TABLE = "user_documents"


class SupabaseDocumentStore(DocumentStore):
    """
    Supabase implementation of the DocumentStore.

    Expects a `user_documents` table with a `user_id` primary key and a
    `data` jsonb column. PostgREST cannot patch nested JSON, so field
    updates read the document and write it back whole.
    """

    def __init__(self, client: Client):
        self.client = client

    def get_document(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = (
                self.client.table(TABLE)
                .select("data")
                .eq("user_id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Could not read document for {user_id}: {e}") from e

        if not response.data:
            return None
        return response.data[0]["data"]

    def set_document(self, user_id: str, patch: Dict[str, Any]) -> None:
        current = self.get_document(user_id) or {}
        current.update(patch)
        self._upsert(user_id, current)

    def update_field(self, user_id: str, path: str, value: Any) -> None:
        current = self.get_document(user_id)
        if current is None:
            raise DocumentNotFoundError(f"No document for user {user_id}")

        apply_field_update(current, path, value)
        self._upsert(user_id, current)
        logger.debug("Updated %s for user %s", path, user_id)

    def _upsert(self, user_id: str, document: Dict[str, Any]) -> None:
        try:
            self.client.table(TABLE).upsert(
                {"user_id": user_id, "data": document},
                on_conflict="user_id",
            ).execute()
        except Exception as e:
            raise PersistenceError(f"Could not write document for {user_id}: {e}") from e
