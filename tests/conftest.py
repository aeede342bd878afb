import pytest
from fastapi.testclient import TestClient

from relay.main import create_app
from relay.shared.config import Settings


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides) -> Settings:
        base = dict(
            UPLOAD_DIR=str(tmp_path / "uploads"),
            DATABASE_PATH=str(tmp_path / "relay.db"),
            MAX_FILE_SIZE=1024,
            MAX_TOTAL_FILES=5,
            ALLOWED_IP_RANGES=("10.0.0.0/8",),
            ALLOW_ALL_IPS=False,
            TRUST_PROXY_HEADERS=True,
        )
        base.update(overrides)
        return Settings(**base)
    return _make


@pytest.fixture
def make_client(make_settings):
    clients = []

    def _make(**overrides) -> TestClient:
        c = TestClient(create_app(make_settings(**overrides)))
        c.__enter__()  # runs startup: dirs + tables
        clients.append(c)
        return c

    yield _make
    for c in clients:
        c.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


