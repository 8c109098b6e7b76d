import pytest

from tests.fakes import FakeSink


@pytest.fixture
def fake_sink():
    return FakeSink()
