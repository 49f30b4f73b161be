"""
Ferramentas — 分析ストアへの投影 (Projection)

コミット済みの注文状態をトランザクション DB から読み直し、
顧客 + 明細 + 商品属性を非正規化した 1 行を billed_events に追記する。

- 追記のみ。既存行の UPDATE / DELETE は行わない。
- 失敗は ProjectionError として呼び出し元へ報告する。
  注文サービスはそれをログに残すだけで、コミット済みの書き込みは戻さない。
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import ProjectionError, StoreError
from .events import EVENT_TYPES, AnalyticalEvent
from .models import LineItemDetail
from .stores import Stores

logger = logging.getLogger(__name__)

_INSERT_EVENT = text("""
    INSERT INTO billed_events
        (event_type, order_id, client_name, client_email, event_at, total, items)
    VALUES
        (:event_type, :order_id, :client_name, :client_email, :event_at, :total, :items)
""").bindparams(bindparam("event_at", type_=DateTime(timezone=True)))


async def append_event(stores: Stores, event: AnalyticalEvent) -> None:
    """分析ストアに 1 行追記する。"""
    if event.event_type not in EVENT_TYPES:
        raise ProjectionError(f"Unknown event type: {event.event_type}")

    try:
        async with stores.analytics() as session:
            await session.execute(
                _INSERT_EVENT,
                {
                    "event_type": event.event_type,
                    "order_id": event.order_id,
                    "client_name": event.client_name,
                    "client_email": event.client_email,
                    "event_at": event.event_at,
                    "total": event.total,
                    "items": event.items_json(),
                },
            )
    except StoreError as e:
        raise ProjectionError(f"Failed to project {event.event_type}: {e}") from e

    logger.info("Projected event: %s (order=%s)", event.event_type, event.order_id)


async def project(
    stores: Stores,
    event_type: str,
    order_id: int | None,
    client_name: str,
    client_email: str,
    total: float,
    items: list[LineItemDetail],
) -> None:
    await append_event(
        stores,
        AnalyticalEvent(
            event_type=event_type,
            order_id=order_id,
            client_name=client_name,
            client_email=client_email,
            event_at=datetime.now(timezone.utc),
            total=total,
            items=items,
        ),
    )


async def load_line_item_details(
    session: AsyncSession, order_id: int
) -> list[LineItemDetail]:
    """注文の全明細を商品属性と結合して、明細 ID 順に返す。"""
    result = await session.execute(
        text("""
            SELECT oi.product_id, oi.quantity, oi.unit_price,
                   p.name, p.category, p.material, p.brand, p.dimensions
            FROM order_items oi
            JOIN products p ON p.id = oi.product_id
            WHERE oi.order_id = :oid
            ORDER BY oi.id
        """),
        {"oid": order_id},
    )
    return [
        LineItemDetail(
            product_id=row.product_id,
            quantity=row.quantity,
            unit_price=float(row.unit_price),
            title=row.name,
            category=row.category,
            material=row.material,
            brand=row.brand,
            dimensions=row.dimensions,
        )
        for row in result.fetchall()
    ]


async def project_order(stores: Stores, order_id: int, event_type: str) -> None:
    """
    注文のスナップショットを投影する:
    1. 注文と顧客を読み直す
    2. 明細を商品属性付きで集約する
    3. billed_events に 1 行追記する
    """
    try:
        async with stores.session() as session:
            result = await session.execute(
                text("""
                    SELECT o.id, o.total, c.name, c.email
                    FROM orders o
                    JOIN clients c ON c.id = o.client_id
                    WHERE o.id = :oid
                """),
                {"oid": order_id},
            )
            order = result.fetchone()
            if not order:
                raise ProjectionError(f"Order {order_id} not found for projection")
            items = await load_line_item_details(session, order_id)
    except StoreError as e:
        raise ProjectionError(f"Failed to read order {order_id}: {e}") from e

    await project(
        stores,
        event_type,
        order_id,
        order.name,
        order.email,
        float(order.total),
        items,
    )


async def best_effort(coro, what: str) -> None:
    """
    投影の失敗はログに残すだけで、呼び出し元には伝播させない。

    書き込みはコミット済みなので、予期しない例外もここで止める。
    """
    try:
        await coro
    except Exception:
        logger.exception("Projection failed: %s", what)
