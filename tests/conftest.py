"""Pytest configuration and shared fixtures."""

import fakeredis
import pytest

from burner.app import create_app
from burner.config import load_config
from burner.store import ListStore


@pytest.fixture
def cfg():
    """Defaults only, unaffected by the caller's environment."""
    return load_config(environ={})


@pytest.fixture
def redis_server():
    return fakeredis.FakeServer()


@pytest.fixture
def store(redis_server):
    return ListStore(fakeredis.FakeRedis(server=redis_server, decode_responses=True))


@pytest.fixture
def app(cfg, store):
    app = create_app(cfg, store=store)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
