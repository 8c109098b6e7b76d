import logging
from typing import Any, Sequence

from opensearchpy import OpenSearch

from src.dtos.field_descriptor import CoercionRule, FieldDescriptor

logger = logging.getLogger(__name__)

_FIELD_MAPPINGS: dict[CoercionRule, dict[str, Any]] = {
    CoercionRule.INTEGER: {"type": "long"},
    # "Invalid Date" markers are kept in _source but not indexed
    CoercionRule.TIMESTAMP: {
        "type": "date",
        "format": "strict_date_optional_time||epoch_millis",
        "ignore_malformed": True,
    },
    # Payloads may be objects, arrays, scalars or undecodable text
    CoercionRule.STRUCTURED: {"type": "object", "enabled": False},
    CoercionRule.SENTINEL_NULLABLE: {"type": "keyword"},
    CoercionRule.TEXT: {
        "type": "text",
        "fields": {"keyword": {"type": "keyword", "ignore_above": 256}},
    },
}


class ActivityLogMapping:
    """Configure the OpenSearch index that receives the imported rows.

    Field types follow the coercion rule of each schema column so that typed
    records index cleanly.
    """

    def __init__(self, opensearch_client: OpenSearch, fields: Sequence[FieldDescriptor]):
        """
        Args:
            opensearch_client: Low-level OpenSearch client.
            fields: Ordered schema of the dumped table.
        """
        self.client = opensearch_client
        self.fields = list(fields)

    def create_index(self, index_name: str) -> bool:
        """Create the index with the configured mappings/settings if needed.

        Returns:
            bool: True when the index was created by this call.
        """
        if self.client.indices.exists(index=index_name):
            logger.info("Index %s already exists", index_name)
            return False

        self.client.indices.create(index=index_name, body=self.create_configurations())
        logger.info("Created index %s", index_name)
        return True

    def create_configurations(self) -> dict[str, Any]:
        """Return the OpenSearch index settings and mappings dictionary."""

        properties = {
            field.name: dict(_FIELD_MAPPINGS[field.rule]) for field in self.fields
        }
        return {
            "settings": {
                "index": {
                    "number_of_shards": 1,
                    "refresh_interval": "30s",
                }
            },
            "mappings": {
                "dynamic": True,
                "properties": properties,
            },
        }
