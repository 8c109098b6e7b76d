import logging

import boto3
from opensearchpy import OpenSearch, RequestsHttpConnection
from requests_aws4auth import AWS4Auth

from .abstract_classes import ABCClient
from global_config import GlobalConfig, global_config

logger = logging.getLogger(__name__)


class OpenSearchClient(ABCClient):
    """Singleton OpenSearch client for connecting to an OpenSearch cluster.
    Implements the singleton pattern to ensure only one instance of the client exists.
    """

    _instance = None
    _client: OpenSearch | None = None
    _initialized = False

    def __new__(cls, *args, **kwargs):
        """Create a singleton instance of OpenSearchClient.

        Returns:
            OpenSearchClient: The singleton instance of OpenSearchClient.
        """
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, config: GlobalConfig = global_config):
        """Initialize the OpenSearchClient.

        Args:
            config (GlobalConfig, optional): Connection settings. Defaults to
                the process-wide configuration.
        """
        if self.__class__._initialized:
            return

        self.config = config
        self.__class__._initialized = True

    def build_auth(self):
        """Return the ``http_auth`` value for the configured auth mode.

        Returns:
            AWS4Auth | tuple[str, str] | None: SigV4 signer for AWS-managed
            domains, a basic-auth pair, or None for an open cluster.
        """
        if self.config.use_aws_auth:
            session = boto3.Session(region_name=self.config.aws_region)
            credentials = session.get_credentials()
            if credentials is None:
                raise RuntimeError("No AWS credentials available for OpenSearch auth")

            return AWS4Auth(
                credentials.access_key,
                credentials.secret_key,
                self.config.aws_region,
                "es",
                session_token=credentials.token,
            )

        if self.config.opensearch_username:
            return (self.config.opensearch_username, self.config.opensearch_password or "")

        return None

    def get_client(self) -> OpenSearch:
        """Get the OpenSearch client instance.

        Returns:
            OpenSearch: The OpenSearch client instance.
        """
        if self.__class__._client is None:
            options = {}
            if self.config.use_aws_auth:
                # SigV4 signing needs the requests transport
                options["connection_class"] = RequestsHttpConnection

            self.__class__._client = OpenSearch(
                hosts=[
                    {
                        "host": self.config.opensearch_host,
                        "port": self.config.opensearch_port,
                    }
                ],
                http_auth=self.build_auth(),
                use_ssl=self.config.opensearch_use_ssl,
                verify_certs=self.config.opensearch_verify_certs,
                ssl_show_warn=self.config.opensearch_verify_certs,
                timeout=self.config.request_timeout,
                **options,
            )
            logger.info(
                "OpenSearch client initialized for %s:%s",
                self.config.opensearch_host,
                self.config.opensearch_port,
            )

        return self.__class__._client

    def close(self) -> None:
        """Close the cached client; the next ``get_client`` builds a new one."""
        if self.__class__._client is None:
            return
        self.__class__._client.close()
        self.__class__._client = None
