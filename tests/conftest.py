import pytest

from webhdfs_client import Client, ClientOptions

from .minidfs import MiniWebHdfs


@pytest.fixture(scope="module")
def minidfs():
    gateway = MiniWebHdfs()

    yield gateway

    gateway.stop()


@pytest.fixture
def client(minidfs: MiniWebHdfs):
    client = Client(
        minidfs.host,
        minidfs.port,
        ClientOptions(connect_timeout=5, data_transfer_timeout=60, user_name="testuser"),
    )

    try:
        yield client
    finally:
        client.close()
        minidfs.reset()
