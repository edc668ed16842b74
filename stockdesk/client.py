# stockdesk/client.py
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type, TypeVar, Union

import httpx
import requests
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from stockdesk.config import Settings, current_settings
from stockdesk.errors import NetworkError, NotFoundError, ResponseShapeError, StoreError
from stockdesk.logger import get_logger
from stockdesk.models import Category, Product, ProductPage, ProductQuery
from stockdesk.schemas import CategoryForm, ProductForm, validate_category, validate_product

logger = get_logger(__name__)

REST_PATH = "/rest/v1"
RETURN_REPRESENTATION = "return=representation"

M = TypeVar("M", bound=BaseModel)

ProductInput = Union[ProductForm, Mapping[str, Any]]
CategoryInput = Union[CategoryForm, Mapping[str, Any]]


def decode_rows(model: Type[M], body: Any, action: str) -> List[M]:
    try:
        return TypeAdapter(List[model]).validate_python(body)
    except PydanticValidationError as e:
        raise ResponseShapeError(f"Failed to {action}", detail=f"unexpected response: {e.error_count()} invalid field(s)") from e


def _error_detail(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        return body.get("message") or body.get("detail") or body.get("error_description")
    return None


class StoreClient:
    """Client for the store's table REST interface.

    Every operation comes in a blocking flavour (``requests``) and an ``_async``
    one (``httpx``). Base URL, API key and timeout are read from ``settings()``
    on each call, never pinned on the session.
    """

    def __init__(
        self,
        settings: Callable[[], Settings] = current_settings,
        session: Optional[requests.Session] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        access_token: Optional[Callable[[], Optional[str]]] = None,
    ):
        self._settings = settings
        self.session = session if session is not None else requests.Session()
        self.transport = transport
        self._access_token = access_token

    # -----------------------
    # Request plumbing
    # -----------------------
    def _headers(self, settings: Settings, prefer: Optional[str] = None) -> Dict[str, str]:
        token = self._access_token() if self._access_token else None
        headers = {
            "apikey": settings.STORE_API_KEY,
            "Authorization": f"Bearer {token or settings.STORE_API_KEY}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _prepare(self, table: str, params: Optional[Dict[str, Any]], payload: Any, prefer: Optional[str]) -> Tuple[str, Dict[str, Any]]:
        settings = self._settings()
        url = f"{settings.STORE_URL.rstrip('/')}{REST_PATH}/{table}"
        kwargs: Dict[str, Any] = {
            "params": params or {},
            "headers": self._headers(settings, prefer),
            "timeout": settings.STORE_TIMEOUT,
        }
        if payload is not None:
            kwargs["json"] = payload
        return url, kwargs

    def _check(self, r, action: str) -> Tuple[Any, Mapping[str, str]]:
        try:
            body = r.json()
        except ValueError:
            body = None
        if not 200 <= r.status_code < 300:
            logger.warning("%s failed: HTTP %s", action, r.status_code)
            raise StoreError(f"Failed to {action}", status_code=r.status_code, detail=_error_detail(body))
        return body, r.headers

    def _send(self, method: str, table: str, action: str, params=None, payload=None, prefer=None):
        url, kwargs = self._prepare(table, params, payload, prefer)
        logger.debug("%s %s %s", method, url, kwargs["params"])
        try:
            r = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            logger.warning("%s failed: %s", action, e)
            raise NetworkError(f"Failed to {action}", detail=str(e)) from e
        return self._check(r, action)

    async def _send_async(self, method: str, table: str, action: str, params=None, payload=None, prefer=None):
        url, kwargs = self._prepare(table, params, payload, prefer)
        timeout = kwargs.pop("timeout")
        logger.debug("%s %s %s", method, url, kwargs["params"])
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=timeout) as client:
                r = await client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.warning("%s failed: %s", action, e)
            raise NetworkError(f"Failed to {action}", detail=str(e)) from e
        return self._check(r, action)

    @staticmethod
    def _by_id(product_id: int) -> Dict[str, Any]:
        return {"id": f"eq.{int(product_id)}"}

    @staticmethod
    def _first(rows: List[M], entity: str, entity_id) -> M:
        if not rows:
            raise NotFoundError(entity, entity_id)
        return rows[0]

    # -----------------------
    # Categories
    # -----------------------
    def list_categories(self) -> List[Category]:
        action = "fetch categories"
        body, _ = self._send("GET", "categories", action, params={"select": "*"})
        return decode_rows(Category, body, action)

    async def list_categories_async(self) -> List[Category]:
        action = "fetch categories"
        body, _ = await self._send_async("GET", "categories", action, params={"select": "*"})
        return decode_rows(Category, body, action)

    def create_category(self, data: CategoryInput) -> Category:
        action = "create category"
        payload = {**validate_category(data).to_payload(), "status": "active"}
        body, _ = self._send("POST", "categories", action, payload=payload, prefer=RETURN_REPRESENTATION)
        return self._created(Category, body, action)

    async def create_category_async(self, data: CategoryInput) -> Category:
        action = "create category"
        payload = {**validate_category(data).to_payload(), "status": "active"}
        body, _ = await self._send_async("POST", "categories", action, payload=payload, prefer=RETURN_REPRESENTATION)
        return self._created(Category, body, action)

    @staticmethod
    def _created(model: Type[M], body: Any, action: str) -> M:
        rows = decode_rows(model, body, action)
        if not rows:
            raise ResponseShapeError(f"Failed to {action}", detail="store returned no representation")
        return rows[0]

    # -----------------------
    # Products
    # -----------------------
    def list_products(self, search: Optional[str] = None, category: Optional[str] = None,
                      page: Optional[int] = None, limit: Optional[int] = None) -> ProductPage:
        return self.query_products(ProductQuery(search=search, category=category, page=page, limit=limit))

    def query_products(self, query: ProductQuery) -> ProductPage:
        action = "fetch products"
        body, headers = self._send("GET", "products", action, params=query.to_params(), prefer=query.prefer)
        return query.page_from(decode_rows(Product, body, action), headers.get("content-range"))

    async def list_products_async(self, search: Optional[str] = None, category: Optional[str] = None,
                                  page: Optional[int] = None, limit: Optional[int] = None) -> ProductPage:
        return await self.query_products_async(ProductQuery(search=search, category=category, page=page, limit=limit))

    async def query_products_async(self, query: ProductQuery) -> ProductPage:
        action = "fetch products"
        body, headers = await self._send_async("GET", "products", action, params=query.to_params(), prefer=query.prefer)
        return query.page_from(decode_rows(Product, body, action), headers.get("content-range"))

    def get_product(self, product_id: int) -> Product:
        action = "fetch product"
        body, _ = self._send("GET", "products", action, params={**self._by_id(product_id), "select": "*"})
        return self._first(decode_rows(Product, body, action), "Product", product_id)

    async def get_product_async(self, product_id: int) -> Product:
        action = "fetch product"
        body, _ = await self._send_async("GET", "products", action, params={**self._by_id(product_id), "select": "*"})
        return self._first(decode_rows(Product, body, action), "Product", product_id)

    def create_product(self, data: ProductInput) -> Product:
        action = "create product"
        payload = validate_product(data).to_payload()
        body, _ = self._send("POST", "products", action, payload=payload, prefer=RETURN_REPRESENTATION)
        return self._created(Product, body, action)

    async def create_product_async(self, data: ProductInput) -> Product:
        action = "create product"
        payload = validate_product(data).to_payload()
        body, _ = await self._send_async("POST", "products", action, payload=payload, prefer=RETURN_REPRESENTATION)
        return self._created(Product, body, action)

    def update_product(self, product_id: int, data: ProductInput) -> Product:
        action = "update product"
        payload = validate_product(data).to_payload()
        body, _ = self._send("PATCH", "products", action, params=self._by_id(product_id),
                             payload=payload, prefer=RETURN_REPRESENTATION)
        return self._first(decode_rows(Product, body, action), "Product", product_id)

    async def update_product_async(self, product_id: int, data: ProductInput) -> Product:
        action = "update product"
        payload = validate_product(data).to_payload()
        body, _ = await self._send_async("PATCH", "products", action, params=self._by_id(product_id),
                                         payload=payload, prefer=RETURN_REPRESENTATION)
        return self._first(decode_rows(Product, body, action), "Product", product_id)

    # delete asks for the removed rows so a missing id can be told apart from a success
    def delete_product(self, product_id: int) -> None:
        action = "delete product"
        body, _ = self._send("DELETE", "products", action, params=self._by_id(product_id), prefer=RETURN_REPRESENTATION)
        self._first(decode_rows(Product, body or [], action), "Product", product_id)

    async def delete_product_async(self, product_id: int) -> None:
        action = "delete product"
        body, _ = await self._send_async("DELETE", "products", action, params=self._by_id(product_id),
                                         prefer=RETURN_REPRESENTATION)
        self._first(decode_rows(Product, body or [], action), "Product", product_id)
