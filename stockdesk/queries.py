# stockdesk/queries.py
from typing import Any, Awaitable, Callable, Optional

from stockdesk.cache import CacheKey, QueryCache, QueryResult, make_key
from stockdesk.client import StoreClient
from stockdesk.logger import get_logger
from stockdesk.models import ProductQuery

logger = get_logger(__name__)

PRODUCTS: CacheKey = ("products",)
CATEGORIES: CacheKey = ("categories",)


class Mutation:
    """A write against the store that invalidates cached reads when it succeeds"""

    def __init__(self, name: str, fn: Callable[..., Awaitable[Any]], cache: QueryCache, invalidates: CacheKey):
        self.name = name
        self._fn = fn
        self._cache = cache
        self._invalidates = invalidates
        self._pending = 0
        self.data: Any = None
        self.error: Optional[Exception] = None

    @property
    def is_pending(self) -> bool:
        return self._pending > 0

    async def mutate_async(self, *args, **kwargs) -> Any:
        self._pending += 1
        self.error = None
        try:
            result = await self._fn(*args, **kwargs)
        except Exception as e:
            self.error = e
            raise
        finally:
            self._pending -= 1
        self.data = result
        self._cache.invalidate(self._invalidates)
        return result

    async def mutate(self, *args, on_success: Optional[Callable[[Any], None]] = None,
                     on_error: Optional[Callable[[Exception], None]] = None, **kwargs) -> Any:
        """Like mutate_async, but failures go to ``on_error`` (and the log) instead of raising"""
        try:
            result = await self.mutate_async(*args, **kwargs)
        except Exception as e:
            logger.error("%s failed: %s", self.name, e)
            if on_error is not None:
                on_error(e)
            return None
        if on_success is not None:
            on_success(result)
        return result


class InventoryData:
    """Cached reads and invalidating writes for products and categories"""

    def __init__(self, client: StoreClient, cache: QueryCache):
        self.client = client
        self.cache = cache

        self.create_product = Mutation("create product", client.create_product_async, cache, PRODUCTS)
        self.update_product = Mutation("update product", client.update_product_async, cache, PRODUCTS)
        self.delete_product = Mutation("delete product", client.delete_product_async, cache, PRODUCTS)
        self.create_category = Mutation("create category", client.create_category_async, cache, CATEGORIES)

    # Keys
    @staticmethod
    def categories_key() -> CacheKey:
        return make_key("categories", "list")

    @staticmethod
    def products_key(query: ProductQuery) -> CacheKey:
        return make_key("products", "list", query.cache_params())

    @staticmethod
    def product_key(product_id: int) -> CacheKey:
        return make_key("products", "detail", {"id": product_id})

    # Reads
    async def _read(self, key: CacheKey, loader: Callable[[], Awaitable[Any]], refresh: bool) -> QueryResult:
        if refresh:
            self.cache.invalidate(key)
        return await self.cache.fetch(key, loader)

    async def categories(self, refresh: bool = False) -> QueryResult:
        return await self._read(self.categories_key(), self.client.list_categories_async, refresh)

    async def products(self, search: Optional[str] = None, category: Optional[str] = None,
                       page: Optional[int] = None, limit: Optional[int] = None,
                       refresh: bool = False) -> QueryResult:
        query = ProductQuery(search=search, category=category, page=page, limit=limit)
        return await self._read(self.products_key(query), lambda: self.client.query_products_async(query), refresh)

    async def product(self, product_id: Optional[int], refresh: bool = False) -> QueryResult:
        # no id, no request
        if not product_id:
            return QueryResult()
        return await self._read(self.product_key(product_id), lambda: self.client.get_product_async(product_id), refresh)

    # Snapshot of what is cached, without a request
    def products_state(self, search: Optional[str] = None, category: Optional[str] = None,
                       page: Optional[int] = None, limit: Optional[int] = None) -> QueryResult:
        query = ProductQuery(search=search, category=category, page=page, limit=limit)
        return self.cache.state(self.products_key(query))
