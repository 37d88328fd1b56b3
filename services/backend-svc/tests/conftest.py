"""Shared fixtures for the backend-svc tests.

MongoDB is never contacted: `create_client` is replaced by a fake whose ping
either succeeds or raises, so the bootstrap can be exercised both ways.
"""

import time

import pytest
from fastapi.testclient import TestClient

from app import main
from app.main import Settings, create_app


class FakeAdmin:
    def __init__(self, error=None):
        self.error = error
        self.commands = []

    async def command(self, name):
        self.commands.append(name)
        if self.error is not None:
            raise self.error
        return {'ok': 1.0}


class FakeMongoClient:
    def __init__(self, uri='mongodb://fake', timeout_ms=0, error=None):
        self.uri = uri
        self.timeout_ms = timeout_ms
        self.admin = FakeAdmin(error)
        self.closed = False

    def close(self):
        self.closed = True


def _patch_factory(monkeypatch, error=None):
    created = []

    def factory(uri, timeout_ms):
        client = FakeMongoClient(uri, timeout_ms, error=error)
        created.append(client)
        return client

    monkeypatch.setattr(main, 'create_client', factory)
    return created


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Drop service variables so each test starts from the defaults."""
    for name in ('PORT', 'HOST', 'MONGO_URI', 'MONGO_TIMEOUT_MS', 'SERVICE_NAME', 'LOG_LEVEL'):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def mongo_client_class():
    """The fake client class, for tests that drive `app.db` directly."""
    return FakeMongoClient


@pytest.fixture
def fake_clients(monkeypatch):
    """Patch the client factory; returns the list of clients it handed out."""
    return _patch_factory(monkeypatch)


@pytest.fixture
def failing_clients(monkeypatch):
    return _patch_factory(monkeypatch, error=ConnectionError('connection refused'))


@pytest.fixture
def wait_for():
    def _wait(predicate, timeout=5.0):
        deadline = time.monotonic() + timeout
        while not predicate():
            if time.monotonic() > deadline:
                raise AssertionError('condition not met within %.1fs' % timeout)
            time.sleep(0.01)
    return _wait


@pytest.fixture
def client(settings):
    """TestClient without lifespan: the DB probe does not run."""
    return TestClient(create_app(settings))
