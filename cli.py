# cli.py - terminal dashboard for the product inventory
import asyncio
import sys
from typing import Dict, List, Optional

from rich import box
from rich.columns import Columns
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm
from rich.table import Table
from rich.text import Text

from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.styles import Style as PromptStyle

from stockdesk.auth import AuthSession, Gate, StoreAuthProvider
from stockdesk.cache import QueryCache, QueryResult
from stockdesk.client import StoreClient
from stockdesk.config import Settings, get_settings, reload_settings
from stockdesk.errors import AuthError, NotFoundError, StockdeskError, ValidationError
from stockdesk.logger import get_logger
from stockdesk.models import Category, Product, ProductPage
from stockdesk.queries import InventoryData
from stockdesk.schemas import slugify, validate_category, validate_product

console = Console()
logger = get_logger("stockdesk.cli")

GRID, LIST = "grid", "list"

custom_style = PromptStyle.from_dict({
    'completion-menu.completion': 'bg:#008888 #ffffff',
    'completion-menu.completion.current': 'bg:#00aaaa #000000',
    'scrollbar.background': 'bg:#88aaaa',
    'scrollbar.button': 'bg:#222222',
})

PRODUCT_DEFAULTS = {
    "name": "",
    "description": "",
    "price": "0",
    "category": "",
    "stock": "0",
    "status": "active",
    "image": "",
}


# ---------------------------
# Display helpers
# ---------------------------
def _stock_text(product: Product, threshold: int) -> Text:
    style = "red" if product.is_low_stock(threshold) else "green"
    return Text(str(product.stock), style=style)


def _status_text(product: Product) -> Text:
    return Text(product.status, style="bold green" if product.is_active else "dim")


def product_table(products: List[Product], threshold: int) -> Table:
    table = Table(box=box.ROUNDED, header_style="bold cyan", show_lines=True)
    table.add_column("ID", style="dim", justify="right", width=6)
    table.add_column("Name", style="bold", width=24)
    table.add_column("Category", width=16)
    table.add_column("Status", width=10)
    table.add_column("Price", justify="right", width=10)
    table.add_column("Stock", justify="right", width=7)
    for p in products:
        table.add_row(
            str(p.id),
            p.name,
            p.category or "Uncategorized",
            _status_text(p),
            f"${p.price:.2f}",
            _stock_text(p, threshold),
        )
    return table


def product_grid(products: List[Product], threshold: int) -> Columns:
    cards = []
    for p in products:
        body = Text()
        body.append(f"{p.category or 'Uncategorized'}\n", style="cyan")
        body.append(f"${p.price:.2f}", style="bold")
        body.append("  stock ")
        body.append_text(_stock_text(p, threshold))
        body.append("\n")
        body.append_text(_status_text(p))
        cards.append(Panel(body, title=f"#{p.id} {p.name}", width=34, border_style="blue"))
    return Columns(cards)


def show_product(product: Product, threshold: int):
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Category", product.category or "Uncategorized")
    table.add_row("Status", _status_text(product))
    table.add_row("Price", f"${product.price:.2f}")
    table.add_row("Stock", _stock_text(product, threshold))
    table.add_row("Image", product.image or "-")
    table.add_row("Created", product.created_at.strftime("%Y-%m-%d %H:%M") if product.created_at else "-")
    table.add_row("Description", product.description or "-")
    console.print(Panel(table, title=f"📦 #{product.id} {product.name}", border_style="cyan"))


def show_categories(categories: List[Category]):
    table = Table(title="🏷️ Categories", box=box.ROUNDED, header_style="bold magenta")
    table.add_column("#", justify="right", width=4)
    table.add_column("Name", width=24)
    table.add_column("Slug", style="dim", width=24)
    for i, c in enumerate(categories, 1):
        table.add_row(str(i), c.name, c.slug or "-")
    console.print(table)


def show_field_errors(errors: Dict[str, str]):
    table = Table(box=box.SIMPLE, show_header=False)
    table.add_column(style="bold red")
    table.add_column(style="red")
    for field, message in errors.items():
        table.add_row(field, message)
    console.print(Panel(table, title="Please fix the following", border_style="red"))


def show_status(message: str, is_success: bool = True):
    style = "green" if is_success else "red"
    return Panel.fit(f"[{style}]{message}[/{style}]", title="Status")


def prompt_with_autocomplete(message: str, completer=None, default: str = "", is_password: bool = False) -> str:
    return prompt(f"{message} ", completer=completer, style=custom_style, default=default, is_password=is_password)


# ---------------------------
# Dashboard
# ---------------------------
class Dashboard:
    def __init__(self, settings: Settings = None, auth: AuthSession = None, client: StoreClient = None):
        self._settings_from_env = settings is None
        self.settings = settings or get_settings()
        self.auth = auth or AuthSession(StoreAuthProvider())
        # the cache lives here, at the root, and is handed to the data layer
        self.cache = QueryCache()
        self.client = client or StoreClient(access_token=lambda: self.auth.access_token)
        self.data = InventoryData(self.client, self.cache)
        self.loop = asyncio.new_event_loop()

        self.search: Optional[str] = None
        self.category: Optional[str] = None
        self.page = 1
        self.view_mode = GRID
        self.status_message = "Ready"
        self.auth.subscribe(self._on_auth_change)

    def _on_auth_change(self, session: AuthSession):
        # another user must never see the previous user's cached reads
        if not session.is_authenticated:
            self.cache.clear()

    def run(self, coro, description: str = "Loading..."):
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), transient=True) as progress:
            progress.add_task(description=description, total=None)
            return self.loop.run_until_complete(coro)

    def close(self):
        self.loop.close()

    # -----------------------
    # Sign in
    # -----------------------
    def sign_in_screen(self) -> bool:
        console.print(Panel.fit("[bold]Welcome back[/bold]\nSign in to manage your product inventory", border_style="magenta"))
        while True:
            email = prompt_with_autocomplete("Email (blank to quit):").strip()
            if not email:
                return False
            password = prompt_with_autocomplete("Password:", is_password=True)
            try:
                with Progress(SpinnerColumn(), TextColumn("Signing in..."), transient=True) as progress:
                    progress.add_task(description="Signing in...", total=None)
                    user = self.auth.sign_in(email, password)
            except AuthError as e:
                console.print(show_status(str(e), False))
                continue
            self.status_message = f"Signed in as {user.email}"
            return True

    # -----------------------
    # Reads
    # -----------------------
    def categories(self, refresh: bool = False) -> List[Category]:
        result = self.run(self.data.categories(refresh=refresh), "Loading categories...")
        if result.is_error:
            console.print(show_status("Failed to load categories", False))
            return []
        return result.data

    def load_page(self, refresh: bool = False) -> QueryResult:
        return self.run(
            self.data.products(self.search, self.category, self.page, self.settings.DEFAULT_PAGE_SIZE, refresh=refresh),
            "Loading products...",
        )

    def render_products(self, refresh: bool = False) -> Optional[ProductPage]:
        result = self.load_page(refresh)
        if result.is_error:
            console.print(Panel("[bold red]Failed to load products[/bold red]\nSomething went wrong. Please try again.",
                                border_style="red"))
            return None
        page: ProductPage = result.data
        if not page.data:
            hint = "Try adjusting your filters" if (self.search or self.category) else "Get started by adding your first product"
            console.print(Panel(f"[italic yellow]No products found[/italic yellow]\n{hint}", border_style="yellow"))
            return page

        threshold = self.settings.LOW_STOCK_THRESHOLD
        console.print(product_grid(page.data, threshold) if self.view_mode == GRID else product_table(page.data, threshold))
        noun = "product" if page.total == 1 else "products"
        filters = []
        if self.search:
            filters.append(f"search '{self.search}'")
        if self.category:
            filters.append(f"category '{self.category}'")
        suffix = f" · {', '.join(filters)}" if filters else ""
        console.print(f"[dim]Page {page.page} of {max(page.total_pages, 1)} · {page.total} {noun} in your inventory{suffix}[/dim]")
        return page

    def reload(self) -> Optional[ProductPage]:
        if self._settings_from_env:
            self.settings = reload_settings()
        self.categories(refresh=True)
        return self.render_products(refresh=True)

    def pick_product(self) -> Optional[Product]:
        raw = prompt_with_autocomplete("Product ID:").strip()
        try:
            product_id = int(raw)
        except ValueError:
            console.print(show_status(f"'{raw}' is not a product ID", False))
            return None
        result = self.run(self.data.product(product_id), "Loading product...")
        if result.is_not_found:
            console.print(show_status(f"Product {product_id} not found", False))
            return None
        if result.is_error:
            console.print(show_status("Failed to load product", False))
            return None
        return result.data

    # -----------------------
    # Filters / paging
    # -----------------------
    def ask_search(self):
        self.search = prompt_with_autocomplete("Search products (blank clears):", default=self.search or "").strip() or None
        self.page = 1

    def ask_category(self):
        categories = self.categories()
        if not categories:
            console.print("[italic yellow]No categories yet[/italic yellow]")
            return
        show_categories(categories)
        names = [c.name for c in categories]
        choice = prompt_with_autocomplete("Category # or name (blank for all):",
                                          completer=WordCompleter(names, ignore_case=True)).strip()
        if not choice:
            self.category = None
        elif choice.isdigit() and 1 <= int(choice) <= len(categories):
            self.category = categories[int(choice) - 1].name
        else:
            self.category = choice
        self.page = 1

    def turn_page(self, step: int):
        # the page on screen is normally still cached
        current = self.data.products_state(self.search, self.category, self.page, self.settings.DEFAULT_PAGE_SIZE)
        if not current.is_success:
            current = self.load_page()
        page = current.data
        if page is None:
            return
        if (step > 0 and not page.has_next) or (step < 0 and not page.has_previous):
            self.status_message = "No more pages"
            return
        self.page += step

    # -----------------------
    # Writes
    # -----------------------
    def _ask_product_fields(self, values: Dict[str, str], categories: List[Category]) -> Dict[str, str]:
        completer = WordCompleter([c.name for c in categories], ignore_case=True)
        out = {}
        out["name"] = prompt_with_autocomplete("Name:", default=values["name"])
        out["description"] = prompt_with_autocomplete("Description:", default=values["description"])
        out["price"] = prompt_with_autocomplete("💰 Price:", default=values["price"])
        out["category"] = prompt_with_autocomplete("🏷️ Category:", completer=completer, default=values["category"])
        out["stock"] = prompt_with_autocomplete("📦 Stock:", default=values["stock"])
        out["status"] = prompt_with_autocomplete("Status:", default=values["status"])
        out["image"] = prompt_with_autocomplete("Image URL (optional):", default=values["image"])
        return out

    def product_form(self, product: Optional[Product] = None) -> bool:
        if product is None:
            values = dict(PRODUCT_DEFAULTS)
            title = "➕ Add Product"
        else:
            values = {
                "name": product.name,
                "description": product.description,
                "price": f"{product.price:g}",
                "category": product.category,
                "stock": str(product.stock),
                "status": product.status,
                "image": product.image or "",
            }
            title = f"✏️ Edit Product #{product.id}"
        console.print(Panel.fit(title, border_style="yellow"))
        categories = self.categories()
        known = {c.name.lower() for c in categories}

        while True:
            values = self._ask_product_fields(values, categories)
            try:
                form = validate_product(values)
            except ValidationError as e:
                show_field_errors(e.errors)
                if Confirm.ask("Edit again?", default=True):
                    continue
                return False
            if known and form.category.lower() not in known:
                console.print(f"[yellow]'{form.category}' is not an existing category; it will be saved as a free-text label.[/yellow]")
            try:
                if product is None:
                    saved = self.run(self.data.create_product.mutate_async(form), "Saving...")
                else:
                    saved = self.run(self.data.update_product.mutate_async(product.id, form), "Saving...")
            except StockdeskError as e:
                logger.error("Failed to save product: %s", e)
                console.print(show_status(str(e), False))
                if Confirm.ask("Try again?", default=True):
                    continue
                return False
            self.status_message = f"Product '{saved.name}' saved"
            return True

    def category_form(self) -> bool:
        console.print(Panel.fit("🏷️ Add New Category", border_style="yellow"))
        name, slug = "", ""
        while True:
            name = prompt_with_autocomplete("Category name:", default=name)
            # slug follows the name unless the user overrides it
            slug = prompt_with_autocomplete("Slug:", default=slug or slugify(name))
            try:
                form = validate_category({"name": name, "slug": slug})
            except ValidationError as e:
                show_field_errors(e.errors)
                if Confirm.ask("Edit again?", default=True):
                    continue
                return False
            try:
                created = self.run(self.data.create_category.mutate_async(form), "Creating...")
            except StockdeskError as e:
                logger.error("Failed to create category: %s", e)
                console.print(show_status(str(e), False))
                if Confirm.ask("Try again?", default=True):
                    continue
                return False
            self.status_message = f"Category '{created.name}' created"
            return True

    def confirm_delete(self, product: Product) -> bool:
        console.print(Panel.fit(f"Delete [bold]{product.name}[/bold]? This action cannot be undone.",
                                title="🗑️ Delete Product", border_style="red"))
        while Confirm.ask("[red]Delete this product?[/red]", default=False):
            try:
                self.run(self.data.delete_product.mutate_async(product.id), "Deleting...")
            except NotFoundError:
                self.status_message = f"Product {product.id} was already gone"
                self.cache.invalidate(("products",))
                return False
            except StockdeskError as e:
                logger.error("Failed to delete product: %s", e)
                console.print(show_status(str(e), False))
                continue
            self.status_message = f"Product '{product.name}' deleted"
            return True
        return False

    # -----------------------
    # Main menu
    # -----------------------
    def menu(self):
        options = [
            ("1", "📦 Show products", "8", "➕ Add product"),
            ("2", "🔍 Search", "9", "✏️ Edit product"),
            ("3", "🏷️ Filter by category", "10", "🗑️ Delete product"),
            ("4", "➡️ Next page", "11", "🏷️ New category"),
            ("5", "⬅️ Previous page", "12", "🔄 Reload"),
            ("6", "🔲 Toggle grid/list", "s", "🚪 Sign out"),
            ("7", "ℹ️ Product details", "q", "👋 Quit"),
        ]
        menu_table = Table.grid(padding=(0, 2))
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=28)
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=28)
        for row in options:
            menu_table.add_row(*row)

        self.render_products()
        while self.auth.gate() is Gate.ALLOW:
            console.print(show_status(self.status_message, "Failed" not in self.status_message))
            console.print(Panel(menu_table, title=f"📋 {self.auth.user.email}", border_style="yellow"))
            choice = prompt_with_autocomplete(
                "\nChoose an option",
                completer=WordCompleter([str(i) for i in range(1, 13)] + ["s", "q", "quit", "exit"]),
            ).strip().lower()
            self.status_message = "Ready"

            if choice == "1":
                self.render_products()
            elif choice == "2":
                self.ask_search()
                self.render_products()
            elif choice == "3":
                self.ask_category()
                self.render_products()
            elif choice == "4":
                self.turn_page(1)
                self.render_products()
            elif choice == "5":
                self.turn_page(-1)
                self.render_products()
            elif choice == "6":
                self.view_mode = LIST if self.view_mode == GRID else GRID
                self.render_products()
            elif choice == "7":
                product = self.pick_product()
                if product:
                    show_product(product, self.settings.LOW_STOCK_THRESHOLD)
            elif choice == "8":
                if self.product_form():
                    self.render_products()
            elif choice == "9":
                product = self.pick_product()
                if product and self.product_form(product):
                    self.render_products()
            elif choice == "10":
                product = self.pick_product()
                if product and self.confirm_delete(product):
                    self.render_products()
            elif choice == "11":
                self.category_form()
            elif choice == "12":
                self.reload()
            elif choice == "s":
                self.auth.sign_out()
                self.status_message = "Signed out"
            elif choice in ("q", "quit", "exit"):
                if Confirm.ask("Are you sure you want to quit?"):
                    raise SystemExit(0)

            console.print()
            console.rule(style="dim")

    def start(self):
        self.auth.resolve()
        while True:
            gate = self.auth.gate()
            if gate is Gate.REDIRECT:
                if not self.sign_in_screen():
                    return
            elif gate is Gate.ALLOW:
                self.menu()


def main():
    dashboard = Dashboard()
    try:
        dashboard.start()
        console.print(Panel.fit("[bold green]Goodbye 👋[/bold green]"))
    except KeyboardInterrupt:
        console.print("\n\n[bold red]Interrupted by user[/bold red]")
        sys.exit(1)
    finally:
        dashboard.close()


if __name__ == "__main__":
    main()
