import asyncio

from rich import print

from stockdesk.cache import QueryCache
from stockdesk.client import StoreClient
from stockdesk.queries import InventoryData

# Run against a seeded devstore (see demo.py).


async def main():
    client = StoreClient()
    data = InventoryData(client, QueryCache())

    calls = 0
    original = client.query_products_async

    async def counting(query):
        nonlocal calls
        calls += 1
        return await original(query)

    client.query_products_async = counting

    # five views asking for the same page share one request
    print("\n⚡ Five identical reads at once...")
    results = await asyncio.gather(*[data.products(search="shirt", page=1, limit=12) for _ in range(5)])
    print(f"requests sent: {calls}, products: {[p.name for p in results[0].data.data]}")

    # a different filter is a different cache entry
    await data.products(page=1, limit=12)
    print(f"requests sent after a second filter: {calls}")

    # a write drops every products read, so the next read goes back to the store
    first = results[0].data.data[0]
    await data.update_product.mutate_async(first.id, {**first.model_dump(), "image": first.image or "", "stock": first.stock + 1})
    refreshed = await data.products(search="shirt", page=1, limit=12)
    print(f"requests sent after update: {calls}, stock now {refreshed.data.data[0].stock}")


if __name__ == "__main__":
    asyncio.run(main())
