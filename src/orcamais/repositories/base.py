from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from orcamais.domain.errors import OrcaMaisError


class PersistenceError(OrcaMaisError):
    """Raised when the document store cannot be read or written."""
    pass


class DocumentNotFoundError(PersistenceError):
    """Raised when updating a field of a document that does not exist."""
    pass


def apply_field_update(document: Dict[str, Any], path: str, value: Any) -> Dict[str, Any]:
    """
    Set a value at a dotted path, creating intermediate maps.

    Example:
        apply_field_update(doc, "monthlyIncome.2025-03", "4500")
        apply_field_update(doc, "settings.theme", "dark")

    Returns:
        The same document, mutated
    """
    keys = path.split(".")
    target = document
    for key in keys[:-1]:
        child = target.get(key)
        if not isinstance(child, dict):
            child = {}
            target[key] = child
        target = child
    target[keys[-1]] = value
    return document


class DocumentStore(ABC):
    """
    Abstract per-user document store.

    Every user owns one JSON-like document. Writes are atomic at the
    granularity of one call: a whole-document patch or a single field.
    """

    @abstractmethod
    def get_document(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Read a user's document.

        Args:
            user_id: Owner of the document

        Returns:
            The document, or None if the user has none yet

        Raises:
            PersistenceError: If the store cannot be reached
        """
        pass

    @abstractmethod
    def set_document(self, user_id: str, patch: Dict[str, Any]) -> None:
        """
        Merge top-level keys into a user's document, creating it if missing.

        Args:
            user_id: Owner of the document
            patch: Top-level keys to write

        Raises:
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    def update_field(self, user_id: str, path: str, value: Any) -> None:
        """
        Replace a single field addressed by a dotted path.

        Args:
            user_id: Owner of the document
            path: Dotted path, e.g. 'transactions' or 'settings.theme'
            value: New value

        Raises:
            DocumentNotFoundError: If the user has no document
            PersistenceError: If the write fails
        """
        pass
