"""
Ferramentas — 注文コマンド (書き込み側)

注文のライフサイクル:
    place_order     → pending (明細 + 在庫減算 + 合計)   → order_created
    add_line_items  → pending のまま明細を追加           → items_added
    bill_order      → billed                             → order_billed

各コマンドは 1 トランザクションで all-or-nothing。
価格は常にカタログ (products.price) の現在値を使い、明細に記録する。
コミット後の投影はベストエフォート: 失敗してもログに残すだけで成功を返す。
"""

import logging
import time

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from . import projections
from .aggregate import BILLED, PENDING, OrderAggregate
from .errors import (
    ClientNotFoundError,
    InsufficientStockError,
    OrderNotFoundError,
    OrderNotPendingError,
    ProductNotFoundError,
    ValidationError,
)
from .events import ITEMS_ADDED, ORDER_BILLED, ORDER_CREATED
from .models import LineItem
from .stores import Stores

logger = logging.getLogger(__name__)


def _validate_items(items: list[LineItem]) -> None:
    if not items:
        raise ValidationError("At least one line item is required")
    for item in items:
        if isinstance(item.quantity, bool) or item.quantity <= 0:
            raise ValidationError(
                f"Invalid quantity for product {item.product_id}: {item.quantity}"
            )


def _subtotal(items: list[LineItem], prices: dict[int, float]) -> float:
    return round(sum(prices[item.product_id] * item.quantity for item in items), 2)


async def _check_stock(session: AsyncSession, items: list[LineItem]) -> dict[int, float]:
    """
    在庫確認。同一商品の数量は合算して現在庫と比較する。
    1 件でも不足すれば何も書かずに InsufficientStockError。

    戻り値: product_id → カタログ価格
    """
    requested: dict[int, int] = {}
    for item in items:
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

    prices: dict[int, float] = {}
    for product_id, quantity in requested.items():
        result = await session.execute(
            text("SELECT price, stock FROM products WHERE id = :id"),
            {"id": product_id},
        )
        row = result.fetchone()
        if not row:
            raise ProductNotFoundError(product_id)
        if quantity > row.stock:
            raise InsufficientStockError(product_id, row.stock, quantity)
        prices[product_id] = float(row.price)
    return prices


async def _write_items(
    session: AsyncSession,
    order_id: int,
    items: list[LineItem],
    prices: dict[int, float],
) -> None:
    """明細を挿入し、在庫を条件付き UPDATE で減算する。"""
    for item in items:
        price = prices[item.product_id]
        if item.unit_price is not None and round(item.unit_price, 2) != price:
            logger.warning(
                "Ignoring unit price %.2f for product %s, catalog price is %.2f",
                item.unit_price, item.product_id, price,
            )

        await session.execute(
            text("""
                INSERT INTO order_items (order_id, product_id, quantity, unit_price)
                VALUES (:oid, :pid, :qty, :price)
            """),
            {"oid": order_id, "pid": item.product_id, "qty": item.quantity, "price": price},
        )

        # 確認と減算の間に他の注文が在庫を取った場合は 0 行更新になる
        result = await session.execute(
            text("""
                UPDATE products
                SET stock = stock - :qty
                WHERE id = :pid AND stock >= :qty
            """),
            {"qty": item.quantity, "pid": item.product_id},
        )
        if result.rowcount == 0:
            stock = (
                await session.execute(
                    text("SELECT stock FROM products WHERE id = :pid"),
                    {"pid": item.product_id},
                )
            ).scalar_one()
            raise InsufficientStockError(item.product_id, stock, item.quantity)


async def _load_order(session: AsyncSession, order_id: int) -> OrderAggregate:
    result = await session.execute(
        text("SELECT id, client_id, status, total FROM orders WHERE id = :id"),
        {"id": order_id},
    )
    row = result.fetchone()
    if not row:
        raise OrderNotFoundError(order_id)
    return OrderAggregate.from_row(row)


async def _current_status(session: AsyncSession, order_id: int) -> str:
    result = await session.execute(
        text("SELECT status FROM orders WHERE id = :id"), {"id": order_id}
    )
    return result.scalar_one()


async def place_order(stores: Stores, client_id: int, line_items: list[LineItem]) -> int:
    """
    注文作成コマンド

    1. 入力検証 (明細が 1 件以上、数量が正の整数、顧客が存在)
    2. 在庫確認 — 不足があれば何も書かずに失敗
    3. 注文・明細の挿入と在庫減算を 1 トランザクションで実行
    4. コミット
    5. order_created を投影 (失敗はログのみ)
    """
    _validate_items(line_items)
    started = time.perf_counter()

    async with stores.transaction() as session:
        result = await session.execute(
            text("SELECT id FROM clients WHERE id = :id"), {"id": client_id}
        )
        if result.fetchone() is None:
            raise ClientNotFoundError(client_id)

        prices = await _check_stock(session, line_items)
        total = _subtotal(line_items, prices)

        result = await session.execute(
            text("""
                INSERT INTO orders (client_id, status, total)
                VALUES (:cid, :status, :total)
                RETURNING id
            """),
            {"cid": client_id, "status": PENDING, "total": total},
        )
        order_id = result.scalar_one()

        await _write_items(session, order_id, line_items, prices)

        await session.execute(
            text("UPDATE orders SET processing_seconds = :elapsed WHERE id = :id"),
            {"elapsed": time.perf_counter() - started, "id": order_id},
        )

    logger.info("Order %s created for client %s: total=%.2f", order_id, client_id, total)
    await projections.best_effort(
        projections.project_order(stores, order_id, ORDER_CREATED),
        f"{ORDER_CREATED} for order {order_id}",
    )
    return order_id


async def add_line_items(
    stores: Stores, order_id: int, items: list[LineItem]
) -> OrderAggregate:
    """
    pending の注文に明細を追加するコマンド

    明細の挿入・在庫減算・合計への加算を 1 トランザクションで行い、
    コミット後に全明細を読み直して items_added を投影する。
    """
    _validate_items(items)

    async with stores.transaction() as session:
        agg = await _load_order(session, order_id)
        agg.ensure_pending()

        prices = await _check_stock(session, items)
        await _write_items(session, order_id, items, prices)
        subtotal = _subtotal(items, prices)

        result = await session.execute(
            text("""
                UPDATE orders
                SET total = total + :subtotal
                WHERE id = :id AND status = :pending
            """),
            {"subtotal": subtotal, "id": order_id, "pending": PENDING},
        )
        if result.rowcount == 0:
            raise OrderNotPendingError(order_id, await _current_status(session, order_id))
        agg.add_items(subtotal)

    logger.info("Added %d item(s) to order %s: total=%.2f", len(items), order_id, agg.total)
    await projections.best_effort(
        projections.project_order(stores, order_id, ITEMS_ADDED),
        f"{ITEMS_ADDED} for order {order_id}",
    )
    return agg


async def bill_order(stores: Stores, order_id: int) -> OrderAggregate:
    """
    請求 (faturar) コマンド: pending → billed

    status = 'pending' を条件にした UPDATE なので、同時に 2 回呼ばれても
    成功するのは 1 回だけ。order_billed も 1 行だけになる。
    """
    async with stores.transaction() as session:
        agg = await _load_order(session, order_id)
        agg.bill()

        result = await session.execute(
            text("UPDATE orders SET status = :billed WHERE id = :id AND status = :pending"),
            {"billed": BILLED, "id": order_id, "pending": PENDING},
        )
        if result.rowcount == 0:
            raise OrderNotPendingError(order_id, await _current_status(session, order_id))

    logger.info("Order %s billed: total=%.2f", order_id, agg.total)
    await projections.best_effort(
        projections.project_order(stores, order_id, ORDER_BILLED),
        f"{ORDER_BILLED} for order {order_id}",
    )
    return agg
