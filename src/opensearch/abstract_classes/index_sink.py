from abc import ABC, abstractmethod
from typing import Any, Dict, List

from src.dtos.bulk_result import BulkResult


class ABCIndexSink(ABC):
    """Contract for targets that accept documents in bulk."""

    @abstractmethod
    def bulk_write(self, records: List[Dict[str, Any]]) -> BulkResult:
        """Write ``records`` in one call.

        Returns one result per record, in submission order. Transport
        failures are raised, not reported per record.
        """
        raise NotImplementedError
