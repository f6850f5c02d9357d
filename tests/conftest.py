import os
import tempfile

# The module level app in relay.main is built on import; keep it away from the repo tree.
os.environ.setdefault("LOCAL_STORAGE_DIR", tempfile.mkdtemp(prefix="relay-import-"))
os.environ.setdefault("ENABLE_METRICS", "false")

import pytest
from fastapi.testclient import TestClient

from relay.config import Settings
from relay.main import create_app
from relay.services.metadata import TransferMetadataStore
from relay.storage.local_provider import LocalStorageProvider

SECRET = "unit-test-payment-secret-0123456789abcdef"


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        payment_secret=SECRET,
        storage_provider="local",
        local_storage_dir=str(tmp_path / "storage"),
        plan_bypass="pro, team",
        metrics_enabled=False,
        rate_limit="1000/minute",
    )
    values.update(overrides)
    return Settings(**values)


class FixedIds:
    """id_factory handing out a fixed sequence of transfer ids."""

    def __init__(self, *ids):
        self._ids = list(ids)

    def __call__(self):
        return self._ids.pop(0)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def storage(settings):
    return LocalStorageProvider(settings.local_storage_dir)


@pytest.fixture
def app(settings, storage):
    return create_app(settings, storage)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def use_ids(app, *ids):
    settings = app.state.settings
    app.state.metadata = TransferMetadataStore(
        app.state.storage,
        ttl_seconds=settings.transfer_ttl_seconds,
        cache_size=settings.metadata_cache_size,
        id_factory=FixedIds(*ids),
    )
