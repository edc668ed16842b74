import asyncio

import pytest

from stockdesk.cache import QueryCache
from stockdesk.errors import NotFoundError, StoreError, ValidationError
from stockdesk.queries import InventoryData, Mutation
from conftest import shirt


@pytest.fixture
def data(client):
    return InventoryData(client, QueryCache())


def count_calls(client, name):
    calls = []
    original = getattr(client, name)

    async def wrapper(*args, **kwargs):
        calls.append(args)
        return await original(*args, **kwargs)

    setattr(client, name, wrapper)
    return calls


@pytest.mark.asyncio
async def test_products_read_is_cached(data, client):
    await client.create_product_async(shirt())
    calls = count_calls(client, "query_products_async")

    first = await data.products(search="shirt", page=1, limit=12)
    second = await data.products(search="shirt", page=1, limit=12)
    assert first.is_success and not first.is_loading
    assert second.data is first.data
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_concurrent_identical_reads_dedupe(data, client):
    calls = count_calls(client, "query_products_async")
    results = await asyncio.gather(*[data.products(category="men") for _ in range(4)])
    assert len(calls) == 1
    assert all(r.is_success for r in results)


@pytest.mark.asyncio
async def test_create_invalidates_cached_lists(data):
    before = await data.products(page=1, limit=12)
    assert before.data.total == 0

    created = await data.create_product.mutate_async(shirt())
    assert data.products_state(page=1, limit=12).is_idle

    after = await data.products(page=1, limit=12)
    assert [p.id for p in after.data.data] == [created.id]


@pytest.mark.asyncio
async def test_update_refreshes_list_and_detail(data):
    created = await data.create_product.mutate_async(shirt(stock=5))
    assert (await data.product(created.id)).data.stock == 5
    assert (await data.products()).data.data[0].stock == 5

    await data.update_product.mutate_async(created.id, shirt(stock=50))
    assert (await data.product(created.id)).data.stock == 50
    assert (await data.products()).data.data[0].stock == 50


@pytest.mark.asyncio
async def test_delete_removes_from_next_read(data):
    created = await data.create_product.mutate_async(shirt())
    assert (await data.products()).data.total == 1
    await data.delete_product.mutate_async(created.id)
    assert (await data.products()).data.total == 0
    assert (await data.product(created.id)).is_not_found


@pytest.mark.asyncio
async def test_category_write_only_invalidates_categories(data, client):
    await data.products()
    assert (await data.categories()).data == []
    product_calls = count_calls(client, "query_products_async")

    await data.create_category.mutate_async({"name": "Men's Wear", "slug": "mens-wear"})
    categories = await data.categories()
    assert [c.name for c in categories.data] == ["Men's Wear"]
    await data.products()
    assert product_calls == []


@pytest.mark.asyncio
async def test_product_without_id_stays_idle(data, client):
    calls = count_calls(client, "get_product_async")
    for product_id in (None, 0):
        result = await data.product(product_id)
        assert result.is_idle
    assert calls == []


@pytest.mark.asyncio
async def test_missing_product_is_not_found_state(data):
    result = await data.product(404)
    assert result.is_error
    assert result.is_not_found
    assert isinstance(result.error, NotFoundError)


@pytest.mark.asyncio
async def test_refresh_forces_refetch(data, client):
    calls = count_calls(client, "list_categories_async")
    await data.categories()
    await data.categories(refresh=True)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_failed_write_propagates_and_keeps_cache(data):
    await data.create_category.mutate_async({"name": "Shoes", "slug": "shoes"})
    cached = await data.categories()

    with pytest.raises(StoreError):
        await data.create_category.mutate_async({"name": "Shoes again", "slug": "shoes"})
    assert data.create_category.error is not None
    assert not data.create_category.is_pending
    assert (await data.categories()).data is cached.data


@pytest.mark.asyncio
async def test_mutate_reports_through_callbacks(data):
    seen = {}
    result = await data.create_product.mutate(shirt(name=""), on_error=lambda e: seen.setdefault("error", e))
    assert result is None
    assert isinstance(seen["error"], ValidationError)
    assert seen["error"].errors == {"name": "Product name is required"}

    created = await data.create_product.mutate(shirt(), on_success=lambda p: seen.setdefault("product", p))
    assert seen["product"] is created
    assert data.create_product.data is created


@pytest.mark.asyncio
async def test_is_pending_while_running():
    gate = asyncio.Event()

    async def slow_write(value):
        await gate.wait()
        return value

    mutation = Mutation("slow write", slow_write, QueryCache(), ("products",))
    task = asyncio.ensure_future(mutation.mutate_async(1))
    await asyncio.sleep(0)
    assert mutation.is_pending
    gate.set()
    assert await task == 1
    assert not mutation.is_pending


@pytest.mark.asyncio
async def test_is_pending_until_every_overlapping_write_finishes():
    gates = {"first": asyncio.Event(), "second": asyncio.Event()}

    async def slow_write(name):
        await gates[name].wait()
        return name

    mutation = Mutation("slow write", slow_write, QueryCache(), ("products",))
    first = asyncio.ensure_future(mutation.mutate_async("first"))
    second = asyncio.ensure_future(mutation.mutate_async("second"))
    await asyncio.sleep(0)

    gates["first"].set()
    assert await first == "first"
    assert mutation.is_pending

    gates["second"].set()
    assert await second == "second"
    assert not mutation.is_pending
