import pytest
from pydantic import ValidationError

from stockdesk.models import Product, ProductPage, ProductQuery, parse_content_range


def test_search_builds_case_insensitive_name_filter_newest_first():
    params = ProductQuery(search="shirt").to_params()
    assert params["name"] == "ilike.*shirt*"
    assert params["order"] == "created_at.desc"
    assert "limit" not in params and "offset" not in params


def test_category_filter_and_blank_values():
    params = ProductQuery(search="   ", category=" Men's Wear ").to_params()
    assert "name" not in params
    assert params["category"] == "ilike.*Men's Wear*"


def test_page_two_of_twelve():
    query = ProductQuery(page=2, limit=12)
    assert query.offset == 12
    params = query.to_params()
    assert params["limit"] == 12
    assert params["offset"] == 12
    assert query.prefer == "count=exact"


def test_pagination_needs_page_and_limit():
    query = ProductQuery(page=3)
    assert not query.paginated
    assert query.offset == 0
    assert query.prefer is None
    assert "offset" not in query.to_params()


@pytest.mark.parametrize("field", ["page", "limit"])
def test_page_and_limit_must_be_positive(field):
    with pytest.raises(ValidationError):
        ProductQuery(**{field: 0})


@pytest.mark.parametrize("header, total", [
    ("0-11/57", 57),
    ("12-23/24", 24),
    ("*/0", 0),
    ("0-11/*", None),
    ("", None),
    (None, None),
    ("garbage", None),
])
def test_parse_content_range(header, total):
    assert parse_content_range(header) == total


@pytest.mark.parametrize("total, limit, pages", [(0, 12, 0), (1, 12, 1), (12, 12, 1), (13, 12, 2), (57, 12, 5)])
def test_total_pages(total, limit, pages):
    assert ProductPage(data=[], total=total, page=1, limit=limit).total_pages == pages


def test_unpaginated_page_from_rows():
    rows = [Product(id=1, name="a", price=1, stock=1)]
    page = ProductQuery().page_from(rows, None)
    assert page.total == 1
    assert page.limit is None
    assert page.total_pages == 1


def test_missing_count_falls_back_to_rows_seen():
    rows = [Product(id=i, name="a", price=1, stock=1) for i in range(3)]
    page = ProductQuery(page=2, limit=12).page_from(rows, None)
    assert page.total == 15
    assert page.total_pages == 2
    assert page.has_previous and not page.has_next


def test_product_invariants_checked_on_decode():
    with pytest.raises(ValidationError):
        Product(id=1, name="a", price=-1, stock=1)
    with pytest.raises(ValidationError):
        Product(id=1, name="a", price=1, stock=-1)


def test_low_stock():
    p = Product(id=1, name="a", price=1, stock=10)
    assert p.is_low_stock(10)
    assert not p.is_low_stock(9)
