from typing import Any, List, Optional

from pydantic import BaseModel, Field


class BulkItemError(BaseModel):
    """A DTO for a document the index refused during a bulk write."""

    reason: str
    doc_id: Optional[str] = None
    status: Optional[int] = None
    document: Optional[dict[str, Any]] = None


class BulkItemResult(BaseModel):
    """Outcome of one submitted document, in submission order."""

    ok: bool
    error: Optional[BulkItemError] = None


class BulkResult(BaseModel):
    """A DTO for the per-document outcome of a single bulk write."""

    items: List[BulkItemResult] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.items if item.ok)

    @property
    def errors(self) -> List[BulkItemError]:
        return [item.error for item in self.items if not item.ok and item.error]

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if not item.ok)
