"""
Ferramentas — コマンドライン

1 コマンド = 1 コア操作。ストアを開き、操作を実行し、結果を表示して閉じる。

    ferramentas init-db
    ferramentas create-account --name "Ana Costa" --email ana@email.com --secret s3nha
    ferramentas place-order --client-id 1 --item 1:2 --item 2:1
    ferramentas bill-order --order-id 1
"""

import argparse
import asyncio
import json
import logging
import sys

from . import accounts, catalog, commands
from .config import Settings, configure_logging
from .errors import FerramentasError
from .models import LineItem, ProductAttributes
from .stores import Stores, open_stores

logger = logging.getLogger(__name__)


def parse_item(value: str) -> LineItem:
    """'PRODUCT_ID:QUANTITY' 形式を LineItem に変換する。"""
    try:
        product_id, quantity = value.split(":")
        return LineItem(product_id=int(product_id), quantity=int(quantity))
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid item {value!r}, expected PRODUCT_ID:QUANTITY"
        ) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ferramentas", description="Ferramentas e-commerce backend")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create missing tables in both stores")

    p = sub.add_parser("create-account", help="register a client")
    p.add_argument("--name", required=True)
    p.add_argument("--email", required=True)
    p.add_argument("--secret", required=True)

    p = sub.add_parser("login", help="authenticate a client")
    p.add_argument("--email", required=True)
    p.add_argument("--secret", required=True)

    p = sub.add_parser("place-order", help="create an order")
    p.add_argument("--client-id", type=int, required=True)
    p.add_argument("--item", dest="items", type=parse_item, action="append", required=True)

    p = sub.add_parser("add-items", help="add items to a pending order")
    p.add_argument("--order-id", type=int, required=True)
    p.add_argument("--item", dest="items", type=parse_item, action="append", required=True)

    p = sub.add_parser("bill-order", help="bill a pending order")
    p.add_argument("--order-id", type=int, required=True)

    p = sub.add_parser("add-product", help="add a tool to the catalog")
    p.add_argument("--name", required=True)
    p.add_argument("--price", type=float, required=True)
    p.add_argument("--stock", type=int, required=True)
    for field in ("description", "category", "material", "brand", "dimensions"):
        p.add_argument(f"--{field}", default="")

    sub.add_parser("list-products", help="print the full catalog as JSON")

    p = sub.add_parser("serve", help="run the HTTP API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)

    return parser


async def run_command(stores: Stores, args: argparse.Namespace) -> str:
    if args.command == "init-db":
        await stores.create_schema()
        return "Schemas created"
    if args.command == "create-account":
        client_id = await accounts.create_client(stores, args.name, args.email, args.secret)
        return f"Client created with ID: {client_id}"
    if args.command == "login":
        client_id = await accounts.authenticate(stores, args.email, args.secret)
        return f"Login succeeded, client ID: {client_id}"
    if args.command == "place-order":
        order_id = await commands.place_order(stores, args.client_id, args.items)
        return f"Order created with ID: {order_id}"
    if args.command == "add-items":
        agg = await commands.add_line_items(stores, args.order_id, args.items)
        return f"Items added to order {agg.id}, total: {agg.total:.2f}"
    if args.command == "bill-order":
        agg = await commands.bill_order(stores, args.order_id)
        return f"Order {agg.id} billed, total: {agg.total:.2f}"
    if args.command == "add-product":
        attrs = ProductAttributes(
            name=args.name,
            description=args.description,
            category=args.category,
            material=args.material,
            brand=args.brand,
            dimensions=args.dimensions,
            price=args.price,
            stock=args.stock,
        )
        product_id = await catalog.add_product(stores, attrs)
        return f"Product added with ID: {product_id}"
    if args.command == "list-products":
        return json.dumps(await catalog.list_products(stores), ensure_ascii=False, indent=2)
    raise ValueError(f"Unknown command: {args.command}")


async def _run(settings: Settings, args: argparse.Namespace) -> str:
    async with open_stores(settings) as stores:
        return await run_command(stores, args)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings.from_env()
    except FerramentasError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    configure_logging(settings.log_level)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("ferramentas.main:app", host=args.host, port=args.port)
        return 0

    try:
        output = asyncio.run(_run(settings, args))
    except FerramentasError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
