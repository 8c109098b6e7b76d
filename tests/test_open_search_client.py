import pytest
from opensearchpy import OpenSearch

from global_config import GlobalConfig
from src.opensearch.open_search_client import OpenSearchClient


@pytest.fixture(autouse=True)
def reset_singleton(monkeypatch):
    monkeypatch.setattr(OpenSearchClient, "_instance", None)
    monkeypatch.setattr(OpenSearchClient, "_client", None)
    monkeypatch.setattr(OpenSearchClient, "_initialized", False)


def test_client_is_singleton():
    first = OpenSearchClient(GlobalConfig(opensearch_host="search.local"))
    second = OpenSearchClient(GlobalConfig(opensearch_host="elsewhere"))
    assert first is second
    assert second.config.opensearch_host == "search.local"


def test_basic_auth_pair():
    client = OpenSearchClient(
        GlobalConfig(opensearch_username="admin", opensearch_password="secret", use_aws_auth=False)
    )
    assert client.build_auth() == ("admin", "secret")


def test_no_auth_without_username():
    client = OpenSearchClient(GlobalConfig(opensearch_username=None, use_aws_auth=False))
    assert client.build_auth() is None


def test_get_client_builds_and_caches_opensearch():
    wrapper = OpenSearchClient(
        GlobalConfig(opensearch_host="localhost", opensearch_port=9200, use_aws_auth=False)
    )
    client = wrapper.get_client()
    assert isinstance(client, OpenSearch)
    assert wrapper.get_client() is client


def test_close_drops_cached_client():
    wrapper = OpenSearchClient(GlobalConfig(use_aws_auth=False))
    client = wrapper.get_client()

    wrapper.close()

    assert OpenSearchClient._client is None
    assert wrapper.get_client() is not client
