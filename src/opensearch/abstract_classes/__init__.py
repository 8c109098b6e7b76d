from .ABC_client import ABCClient
from .index_sink import ABCIndexSink
from .search_insertion import AbstractDocumentIngestionService

__all__ = [
    "ABCClient",
    "ABCIndexSink",
    "AbstractDocumentIngestionService",
]
