from abc import ABC, abstractmethod

from opensearchpy import OpenSearch


class ABCClient(ABC):
    """Abstract base class for OpenSearch client providers.

    Implementations build the low-level client lazily; ``close`` releases its
    connection pool once an import has finished.
    """

    @abstractmethod
    def get_client(self) -> OpenSearch:
        """Return an instance of the OpenSearch client."""
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Close the client's transport if one was created."""
        raise NotImplementedError
