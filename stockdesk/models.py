# stockdesk/models.py
import math
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator

# ---------------------------
# Entities (decoded from store rows)
# ---------------------------
class Category(BaseModel):
    id: int
    name: str
    slug: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None


class Product(BaseModel):
    id: int
    name: str
    description: str = ""
    price: float = Field(ge=0)
    category: str = ""
    stock: int = Field(ge=0)
    status: str = "active"
    image: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("description", "category", mode="before")
    @classmethod
    def _null_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def is_low_stock(self, threshold: int) -> bool:
        return self.stock <= threshold


# ---------------------------
# Query parameters / paginated result
# ---------------------------
_CONTENT_RANGE = re.compile(r"^(?:\*|\d+-\d+)/(\d+|\*)$")


def parse_content_range(value: Optional[str]) -> Optional[int]:
    """Total row count from a ``Content-Range: 0-11/57`` header, None when unknown"""
    if not value:
        return None
    m = _CONTENT_RANGE.match(value.strip())
    if not m or m.group(1) == "*":
        return None
    return int(m.group(1))


class ProductPage(BaseModel):
    data: List[Product]
    total: int
    page: int = 1
    limit: Optional[int] = None

    @computed_field
    @property
    def total_pages(self) -> int:
        if not self.limit:
            return 1 if self.total else 0
        return math.ceil(self.total / self.limit)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


class ProductQuery(BaseModel):
    search: Optional[str] = None
    category: Optional[str] = None
    page: Optional[int] = Field(None, ge=1)
    limit: Optional[int] = Field(None, ge=1)

    @field_validator("search", "category")
    @classmethod
    def _blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def paginated(self) -> bool:
        return self.page is not None and self.limit is not None

    @property
    def offset(self) -> int:
        if not self.paginated:
            return 0
        return (self.page - 1) * self.limit

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"select": "*"}
        if self.search:
            params["name"] = f"ilike.*{self.search}*"
        if self.category:
            params["category"] = f"ilike.*{self.category}*"
        if self.paginated:
            params["limit"] = self.limit
            params["offset"] = self.offset
        params["order"] = "created_at.desc"
        return params

    @property
    def prefer(self) -> Optional[str]:
        return "count=exact" if self.paginated else None

    def cache_params(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)

    def page_from(self, products: List[Product], content_range: Optional[str] = None) -> ProductPage:
        if not self.paginated:
            return ProductPage(data=products, total=len(products))
        total = parse_content_range(content_range)
        if total is None:
            total = self.offset + len(products)
        return ProductPage(data=products, total=total, page=self.page, limit=self.limit)
