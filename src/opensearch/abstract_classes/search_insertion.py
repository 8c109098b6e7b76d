from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable

from src.dtos.run_stats import RunStats


class AbstractDocumentIngestionService(ABC):
    """Contract for services that transform raw records and ingest them into search."""

    @abstractmethod
    def stream_documents(self, lines: Iterable[str]) -> Iterable[Dict[str, Any]]:
        """Yield search documents ready for bulk indexing."""

    @abstractmethod
    def ingest(self) -> RunStats:
        """Perform ingestion using the configured search backend."""
