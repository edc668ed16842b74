import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

# ---------------------------
# Row schemas (what the tables accept)
# ---------------------------
class ProductIn(BaseModel):
    name: str
    description: str = ""
    price: float = Field(ge=0)
    category: str = ""
    stock: int = Field(ge=0)
    status: str = "active"
    image: Optional[str] = None


class ProductPatch(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)
    status: Optional[str] = None
    image: Optional[str] = None


class CategoryIn(BaseModel):
    name: str
    slug: Optional[str] = None
    status: Optional[str] = "active"


class CategoryPatch(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    status: Optional[str] = None


class Credentials(BaseModel):
    email: str
    password: str


SCHEMAS = {
    "products": (ProductIn, ProductPatch),
    "categories": (CategoryIn, CategoryPatch),
}

# ---------------------------
# Query-string handling
# ---------------------------
RESERVED = {"select", "order", "limit", "offset"}

Filter = Tuple[str, Callable[[Any], bool]]


class QueryError(ValueError):
    pass


def _pattern(operand: str, ignore_case: bool) -> "re.Pattern[str]":
    parts = [re.escape(p) for p in re.split(r"[*%]", operand)]
    flags = re.DOTALL | (re.IGNORECASE if ignore_case else 0)
    return re.compile(".*".join(parts), flags)


def _make_filter(op: str, operand: str) -> Callable[[Any], bool]:
    if op == "eq":
        return lambda v: v is not None and str(v) == operand
    if op == "neq":
        return lambda v: v is None or str(v) != operand
    if op in ("like", "ilike"):
        rx = _pattern(operand, ignore_case=op == "ilike")
        return lambda v: v is not None and rx.fullmatch(str(v)) is not None
    raise QueryError(f"unknown operator '{op}'")


def parse_filters(items: Iterable[Tuple[str, str]]) -> List[Filter]:
    filters = []
    for column, value in items:
        if column in RESERVED:
            continue
        op, _, operand = value.partition(".")
        filters.append((column, _make_filter(op, operand)))
    return filters


def apply_filters(rows: Iterable[Dict[str, Any]], filters: List[Filter]) -> List[Dict[str, Any]]:
    return [r for r in rows if all(match(r.get(col)) for col, match in filters)]


def apply_order(rows: List[Dict[str, Any]], order: Optional[str]) -> List[Dict[str, Any]]:
    if not order:
        return sorted(rows, key=lambda r: r["id"])
    terms = []
    for term in order.split(","):
        column, _, direction = term.partition(".")
        terms.append((column, direction.split(".")[0] == "desc"))
    # ties fall back to insertion order, newest first when the leading term is descending
    out = sorted(rows, key=lambda r: r["id"], reverse=terms[0][1])
    for column, desc in reversed(terms):
        out.sort(key=lambda r: (r.get(column) is None, r.get(column) if r.get(column) is not None else ""), reverse=desc)
    return out


def parse_range(limit: Optional[str], offset: Optional[str]) -> Tuple[int, Optional[int]]:
    try:
        start = int(offset) if offset else 0
        size = int(limit) if limit else None
    except ValueError:
        raise QueryError("limit and offset must be integers")
    if start < 0 or (size is not None and size < 0):
        raise QueryError("limit and offset must not be negative")
    return start, size


def content_range(start: int, shown: int, total: Optional[int]) -> str:
    total_part = "*" if total is None else str(total)
    if shown == 0:
        return f"*/{total_part}"
    return f"{start}-{start + shown - 1}/{total_part}"
