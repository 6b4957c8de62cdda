"""Reference document lookup used for topical context."""

import threading
from abc import ABC, abstractmethod
from typing import Optional

from .models import ReferenceDocument

__all__ = ["DocumentSource", "InMemoryDocumentSource"]


class DocumentSource(ABC):
    """Resolves a reference document id (e.g. a post id) to its content."""

    @abstractmethod
    def get_document(self, document_id: str) -> Optional[ReferenceDocument]:
        """Return the document, or None when it does not exist."""


class InMemoryDocumentSource(DocumentSource):
    """Dict-backed document source."""

    def __init__(self, documents: Optional[dict[str, ReferenceDocument]] = None):
        self._documents = dict(documents or {})
        self._lock = threading.Lock()

    def add(self, document_id: str, document: ReferenceDocument) -> None:
        with self._lock:
            self._documents[str(document_id)] = document

    def get_document(self, document_id: str) -> Optional[ReferenceDocument]:
        with self._lock:
            return self._documents.get(str(document_id))
