import httpx
import pytest

from devstore.main import app
from stockdesk.client import StoreClient
from stockdesk.errors import NetworkError, NotFoundError, ResponseShapeError, StoreError, ValidationError
from stockdesk.models import Product
from conftest import STORE_URL, make_settings, shirt


class RecordingSession:
    """Session double that records requests and answers with a canned response"""

    def __init__(self, status_code=200, body=None, headers=None):
        self.calls = []
        self.response = httpx.Response(status_code, json=body if body is not None else [], headers=headers or {})

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self.response


def recording_client(**response):
    session = RecordingSession(**response)
    return StoreClient(settings=make_settings, session=session), session


# ---------------------------
# Request shape
# ---------------------------
def test_search_request_filters_name_and_orders_newest_first():
    c, session = recording_client()
    c.list_products(search="shirt")
    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url == "http://testserver/rest/v1/products"
    assert kwargs["params"]["name"] == "ilike.*shirt*"
    assert kwargs["params"]["order"] == "created_at.desc"


def test_paginated_request_asks_for_exact_count():
    c, session = recording_client(headers={"Content-Range": "12-23/30"})
    page = c.list_products(page=2, limit=12)
    _, _, kwargs = session.calls[0]
    assert kwargs["params"]["limit"] == 12
    assert kwargs["params"]["offset"] == 12
    assert kwargs["headers"]["Prefer"] == "count=exact"
    assert page.total == 30
    assert page.total_pages == 3


def test_credentials_attached_per_request():
    c, session = recording_client()
    c.list_categories()
    headers = session.calls[0][2]["headers"]
    assert headers["apikey"] == "anon-key"
    assert headers["Authorization"] == "Bearer anon-key"
    assert headers["Content-Type"] == "application/json"


def test_rotated_key_used_by_next_call():
    current = {"settings": make_settings(STORE_API_KEY="old-key")}
    session = RecordingSession()
    c = StoreClient(settings=lambda: current["settings"], session=session)
    c.list_categories()
    current["settings"] = make_settings(STORE_API_KEY="new-key")
    c.list_categories()
    assert session.calls[0][2]["headers"]["apikey"] == "old-key"
    assert session.calls[1][2]["headers"]["apikey"] == "new-key"


def test_default_client_picks_up_key_rotated_in_env(monkeypatch):
    monkeypatch.setenv("STORE_URL", STORE_URL)
    monkeypatch.setenv("STORE_API_KEY", "first-key")
    session = RecordingSession()
    c = StoreClient(session=session)
    c.list_categories()
    monkeypatch.setenv("STORE_API_KEY", "rotated-key")
    c.list_categories()
    assert [call[2]["headers"]["apikey"] for call in session.calls] == ["first-key", "rotated-key"]
    assert session.calls[1][2]["headers"]["Authorization"] == "Bearer rotated-key"


def test_user_token_used_as_bearer_when_signed_in():
    session = RecordingSession()
    c = StoreClient(settings=make_settings, session=session, access_token=lambda: "user-token")
    c.list_categories()
    headers = session.calls[0][2]["headers"]
    assert headers["apikey"] == "anon-key"
    assert headers["Authorization"] == "Bearer user-token"


def test_invalid_input_never_reaches_the_network():
    c, session = recording_client()
    with pytest.raises(ValidationError) as exc:
        c.create_product(shirt(price=-5))
    assert exc.value.errors == {"price": "Price must be positive"}
    with pytest.raises(ValidationError):
        c.create_category({"name": "Shoes", "slug": "Shoes!"})
    assert session.calls == []


def test_error_status_carries_operation_name():
    c, _ = recording_client(status_code=500, body={"message": "boom"})
    with pytest.raises(StoreError) as exc:
        c.list_products()
    assert exc.value.message == "Failed to fetch products"
    assert exc.value.status_code == 500
    assert exc.value.detail == "boom"


def test_unexpected_shape_is_rejected():
    c, _ = recording_client(body=[{"id": "not-a-number", "name": "x"}])
    with pytest.raises(ResponseShapeError):
        c.list_products()


def test_unreachable_store_is_a_network_error():
    c = StoreClient(settings=lambda: make_settings(STORE_URL="http://127.0.0.1:9", STORE_TIMEOUT=0.5))
    with pytest.raises(NetworkError) as exc:
        c.list_categories()
    assert exc.value.message == "Failed to fetch categories"


# ---------------------------
# Against the dev store
# ---------------------------
def test_create_and_list_categories(client):
    created = client.create_category({"name": "Men's Wear", "slug": "mens-wear"})
    assert created.id > 0
    assert created.status == "active"
    assert [c.slug for c in client.list_categories()] == ["mens-wear"]


def test_duplicate_slug_rejected(client):
    client.create_category({"name": "Men's Wear", "slug": "mens-wear"})
    with pytest.raises(StoreError) as exc:
        client.create_category({"name": "Mens", "slug": "mens-wear"})
    assert exc.value.status_code == 409
    assert exc.value.message == "Failed to create category"


def test_missing_api_key_is_refused(settings, http):
    c = StoreClient(settings=lambda: make_settings(STORE_API_KEY=""), session=http)
    with pytest.raises(StoreError) as exc:
        c.list_categories()
    assert exc.value.status_code == 401


def test_search_is_case_insensitive_and_newest_first(client):
    client.create_product(shirt(name="Oxford Shirt"))
    client.create_product(shirt(name="Leather Belt", category="Accessories"))
    client.create_product(shirt(name="linen SHIRT"))
    page = client.list_products(search="Shirt")
    assert [p.name for p in page.data] == ["linen SHIRT", "Oxford Shirt"]
    assert page.total == 2


def test_category_filter(client):
    client.create_product(shirt(name="Oxford Shirt"))
    client.create_product(shirt(name="Leather Belt", category="Accessories"))
    page = client.list_products(category="accessories")
    assert [p.name for p in page.data] == ["Leather Belt"]


def test_second_page_of_twelve(client):
    for i in range(30):
        client.create_product(shirt(name=f"Shirt {i:02d}"))
    page = client.list_products(page=2, limit=12)
    assert len(page.data) == 12
    assert page.total == 30
    assert page.total_pages == 3
    # newest first: the 30 rows are 29..0, so page two starts at 17
    assert page.data[0].name == "Shirt 17"
    assert page.data[-1].name == "Shirt 06"


def test_get_update_delete_round(client):
    created = client.create_product(shirt())
    assert isinstance(created, Product)
    assert client.get_product(created.id).name == "Oxford Shirt"

    updated = client.update_product(created.id, shirt(stock=3, image="https://img.example.com/x.png"))
    assert updated.id == created.id
    assert updated.stock == 3
    assert updated.image == "https://img.example.com/x.png"

    client.delete_product(created.id)
    with pytest.raises(NotFoundError):
        client.get_product(created.id)


def test_missing_product_is_not_found(client):
    with pytest.raises(NotFoundError):
        client.get_product(999)
    with pytest.raises(NotFoundError):
        client.update_product(999, shirt())
    with pytest.raises(NotFoundError):
        client.delete_product(999)


@pytest.mark.asyncio
async def test_async_operations(client):
    created = await client.create_product_async(shirt())
    page = await client.list_products_async(search="oxford", page=1, limit=12)
    assert [p.id for p in page.data] == [created.id]
    assert page.total == 1
    fetched = await client.get_product_async(created.id)
    assert fetched == created
    await client.delete_product_async(created.id)
    with pytest.raises(NotFoundError):
        await client.get_product_async(created.id)


@pytest.mark.asyncio
async def test_async_error_status():
    c = StoreClient(settings=lambda: make_settings(STORE_API_KEY=""), transport=httpx.ASGITransport(app=app))
    with pytest.raises(StoreError) as exc:
        await c.list_categories_async()
    assert exc.value.message == "Failed to fetch categories"
