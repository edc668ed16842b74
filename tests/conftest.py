import httpx
import pytest
from fastapi.testclient import TestClient

from devstore import database
from devstore.main import app
from stockdesk.client import StoreClient
from stockdesk.config import Settings

STORE_URL = "http://testserver"


def make_settings(**overrides) -> Settings:
    values = {"STORE_URL": STORE_URL, "STORE_API_KEY": "anon-key", **overrides}
    return Settings(_env_file=None, **values)


def shirt(**overrides):
    data = {
        "name": "Oxford Shirt",
        "description": "Slim fit cotton oxford shirt",
        "price": 39.5,
        "category": "Men's Wear",
        "stock": 24,
        "status": "active",
        "image": "",
    }
    data.update(overrides)
    return data


@pytest.fixture(autouse=True)
def store():
    database.reset()
    yield database
    database.reset()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def http():
    return TestClient(app)


@pytest.fixture
def client(settings, http):
    return StoreClient(settings=lambda: settings, session=http, transport=httpx.ASGITransport(app=app))
