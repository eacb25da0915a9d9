import argparse
import asyncio
import logging

from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from config import load_shipping_rates, settings
from storefront.client import StorefrontClient
from storefront.errors import StorefrontError, describe_error
from storefront.filters import reset_criteria
from storefront.schemas import CartLine, Product

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _product_table(products: list[Product]) -> Table:
    table = Table(title=f"{len(products)} products")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Brand")
    table.add_column("Price", justify="right")
    table.add_column("Rating", justify="right")
    table.add_column("Stock", justify="right")
    for product in products:
        table.add_row(
            product.id,
            product.title,
            product.brand,
            f"{product.price.current:.2f} {product.price.currency}",
            f"{product.rating:.2f}",
            str(product.stock),
        )
    return table


def _cart_table(lines: list[CartLine]) -> Table:
    table = Table(title="Cart")
    table.add_column("Product")
    table.add_column("Qty", justify="right")
    table.add_column("Line total", justify="right")
    for line in lines:
        title = line.product.title if line.product else line.product_id
        table.add_row(title, str(line.quantity), f"{line.line_total:.2f}")
    return table


async def _products(client: StorefrontClient, args: argparse.Namespace) -> None:
    if args.category:
        products = await client.catalog.all_in_category(args.category)
    else:
        products = await client.catalog.load_all()

    criteria = reset_criteria(products, query=args.query or "")
    updates = {
        "search_text": args.text or "",
        "brand": args.brand or "",
        "rating_bucket": args.rating,
        "sort_price": args.sort_price,
        "sort_rating": args.sort_rating,
    }
    if args.min_price is not None:
        updates["min_price"] = args.min_price
    if args.max_price is not None:
        updates["max_price"] = args.max_price
    criteria = criteria.model_copy(update=updates)

    shown = client.browse(products, criteria)
    console.print(_product_table(shown))


async def _run(client: StorefrontClient, args: argparse.Namespace) -> None:
    if args.command == "signin":
        user = await client.auth.sign_in(args.email, args.password)
        rprint(f"[bold green]Signed in as[/bold green] {user.full_name} <{user.email}>")
    elif args.command == "signout":
        await client.auth.sign_out()
        rprint("You have been signed out")
    elif args.command == "whoami":
        user = await client.auth.current_user()
        rprint(user.model_dump())
    elif args.command == "products":
        await _products(client, args)
    elif args.command == "popular":
        console.print(_product_table(await client.popular(args.limit)))
    elif args.command == "cart":
        cart = await client.cart.fetch_detailed()
        client.store.mark_cart_seen()
        if cart.is_empty:
            rprint("Your cart is empty")
        else:
            console.print(_cart_table(cart.lines))
    elif args.command == "add":
        cart = await client.cart.add_or_increment(args.product_id, args.qty)
        rprint(f"Product added to cart ({cart.item_count} items)")
    elif args.command == "remove":
        cart = await client.cart.remove(args.product_id)
        rprint(f"Removed; {cart.item_count} items left")
    elif args.command == "checkout":
        order = await client.place_order(args.payment, args.shipping)
        rprint(f"[bold green]Order {order.id}[/bold green] total {order.total:.2f} {order.currency}")
    elif args.command == "orders":
        for order in client.orders.orders():
            rprint(f"{order.created_at:%Y-%m-%d %H:%M} {order.id} {order.total:.2f} {order.currency}")
    elif args.command == "review":
        review = await client.submit_review(args.product_id, args.rating, args.text or "")
        rprint(f"Review {review.id} saved")
    elif args.command == "reviews":
        user = client.require_user()
        for review in client.reviews.for_author(user.id, args.category):
            rprint(f"{review.product_title}: {review.rating}/5 {review.text}")


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Storefront command-line client.")
    parser.add_argument("--db", default=None, help="Session database path (default from settings)")
    parser.add_argument("--shipping-config", default=None, help="YAML file with shipping rates (default from settings)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    signin = sub.add_parser("signin", help="Sign in with e-mail and password")
    signin.add_argument("--email", required=True)
    signin.add_argument("--password", required=True)

    sub.add_parser("signout", help="Sign out and clear the local session")
    sub.add_parser("whoami", help="Show the signed-in user")

    products = sub.add_parser("products", help="List, filter and sort products")
    products.add_argument("--category", help="Category id (default: every category)")
    products.add_argument("--query", help="Search query")
    products.add_argument("--text", help="Title filter")
    products.add_argument("--brand")
    products.add_argument("--min-price", type=float)
    products.add_argument("--max-price", type=float)
    products.add_argument("--rating", type=int, choices=range(1, 6), help="Rating bucket")
    products.add_argument("--sort-price", choices=["asc", "desc"])
    products.add_argument("--sort-rating", choices=["asc", "desc"])

    popular = sub.add_parser("popular", help="Top rated products across all categories")
    popular.add_argument("--limit", type=int, default=5)

    sub.add_parser("cart", help="Show the cart")

    add = sub.add_parser("add", help="Add a product to the cart")
    add.add_argument("product_id")
    add.add_argument("--qty", type=int, default=1)

    remove = sub.add_parser("remove", help="Remove a product from the cart")
    remove.add_argument("product_id")

    checkout = sub.add_parser("checkout", help="Place an order for the cart")
    checkout.add_argument("--payment", required=True)
    checkout.add_argument("--shipping", default="standard")

    sub.add_parser("orders", help="List local orders")

    review = sub.add_parser("review", help="Review a purchased product")
    review.add_argument("product_id")
    review.add_argument("--rating", type=int, required=True, choices=range(1, 6))
    review.add_argument("--text")

    reviews = sub.add_parser("reviews", help="List my reviews")
    reviews.add_argument("--category", default=None)
    return parser


async def main() -> None:
    args = _parser().parse_args()
    _configure_logging(args.verbose)

    rates = load_shipping_rates(args.shipping_config)
    client = StorefrontClient(db_path=args.db, shipping_rates=rates)
    try:
        await _run(client, args)
    except StorefrontError as exc:
        rprint(f"[bold red]Error:[/bold red] {describe_error(exc)}")
    finally:
        client.close()


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
