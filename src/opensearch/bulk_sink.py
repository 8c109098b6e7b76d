import logging
from typing import Any, Dict, List

from opensearchpy import OpenSearch, helpers

from src.dtos.bulk_result import BulkItemError, BulkItemResult, BulkResult
from src.opensearch.abstract_classes import ABCIndexSink

logger = logging.getLogger(__name__)


class OpenSearchBulkSink(ABCIndexSink):
    """Write typed records to one OpenSearch index with the bulk API."""

    def __init__(
        self,
        opensearch_client: OpenSearch,
        index_name: str,
        request_timeout: int = 120,
        document_id_field: str | None = None,
    ):
        """Create a sink bound to a specific index.

        Args:
            opensearch_client: Low-level OpenSearch client.
            index_name: Name of the OpenSearch index to insert into.
            request_timeout: Seconds to wait for one bulk request.
            document_id_field: Record field used as ``_id``. When None the
                cluster assigns ids, so re-running an import duplicates rows.
        """
        self.client = opensearch_client
        self.index_name = index_name
        self.request_timeout = request_timeout
        self.document_id_field = document_id_field

    def build_action(self, record: Dict[str, Any]) -> Dict[str, Any]:
        action = {
            "_op_type": "index",
            "_index": self.index_name,
            "_source": record,
        }
        if self.document_id_field:
            doc_id = record.get(self.document_id_field)
            if doc_id is not None:
                action["_id"] = str(doc_id)
        return action

    def bulk_write(self, records: List[Dict[str, Any]]) -> BulkResult:
        """Submit ``records`` as one bulk request.

        Per-document failures are returned in the result. Connection errors
        and timeouts propagate to the caller.
        """
        if not records:
            return BulkResult()

        actions = [self.build_action(record) for record in records]
        items: List[BulkItemResult] = []

        results = helpers.streaming_bulk(
            self.client,
            actions,
            chunk_size=len(actions),
            raise_on_error=False,
            raise_on_exception=True,
            request_timeout=self.request_timeout,
        )
        for record, (ok, item) in zip(records, results):
            if ok:
                items.append(BulkItemResult(ok=True))
                continue
            items.append(BulkItemResult(ok=False, error=self._to_error(record, item)))

        return BulkResult(items=items)

    def _to_error(self, record: Dict[str, Any], item: Dict[str, Any]) -> BulkItemError:
        # streaming_bulk wraps each response item as {op_type: {...}}
        details = next(iter(item.values()), {}) if item else {}
        error = details.get("error")
        if isinstance(error, dict):
            reason = error.get("reason") or error.get("type") or str(error)
        else:
            reason = str(error) if error else "unknown error"

        doc_id = details.get("_id")
        if doc_id is None and self.document_id_field:
            value = record.get(self.document_id_field)
            doc_id = None if value is None else str(value)

        return BulkItemError(
            reason=reason,
            doc_id=doc_id,
            status=details.get("status"),
            document=record,
        )
