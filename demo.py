#!/usr/bin/env python
# Seeds a running devstore (python -m devstore.main) and walks through the client operations.
from rich import print

from stockdesk.client import StoreClient
from stockdesk.config import get_settings
from stockdesk.errors import NotFoundError, ValidationError
from stockdesk.schemas import slugify

SEED_CATEGORIES = ["Men's Wear", "Women's Wear", "Accessories"]

SEED_PRODUCTS = [
    {"name": "Oxford Shirt", "description": "Slim fit cotton oxford shirt", "price": 39.5,
     "category": "Men's Wear", "stock": 24, "status": "active", "image": ""},
    {"name": "Linen Shirt", "description": "Breathable summer linen shirt", "price": 45,
     "category": "Women's Wear", "stock": 6, "status": "active", "image": "https://images.example.com/linen.jpg"},
    {"name": "Leather Belt", "description": "Full grain leather belt", "price": 25,
     "category": "Accessories", "stock": 0, "status": "draft", "image": ""},
]


def main():
    c = StoreClient()

    # -----------------------------
    # Reset everything for demo
    # -----------------------------
    print("Resetting store...")
    c.session.post(f"{get_settings().STORE_URL}/reset")

    # -----------------------------
    # Categories
    # -----------------------------
    print("\nCreating categories...")
    for name in SEED_CATEGORIES:
        print(c.create_category({"name": name, "slug": slugify(name)}))
    print(c.list_categories())

    # -----------------------------
    # Products
    # -----------------------------
    print("\nCreating products...")
    created = [c.create_product(p) for p in SEED_PRODUCTS]
    print(created)

    print("\nSearching for 'shirt' (page 1, 2 per page)...")
    page = c.list_products(search="shirt", page=1, limit=2)
    print(page, f"total_pages={page.total_pages}")

    print("\nUpdating stock of the first product...")
    first = created[0]
    print(c.update_product(first.id, {**SEED_PRODUCTS[0], "stock": first.stock + 10}))

    print("\nRejected before any request is sent:")
    try:
        c.create_product({**SEED_PRODUCTS[0], "price": -1, "image": "not a url"})
    except ValidationError as e:
        print(e.errors)

    print("\nDeleting the belt twice...")
    c.delete_product(created[2].id)
    try:
        c.delete_product(created[2].id)
    except NotFoundError as e:
        print(f"[yellow]{e}[/yellow]")


if __name__ == "__main__":
    main()
