"""
Ferramentas — クエリ (読み取り側)

注文はトランザクション DB から、イベントは分析 DB から読む。
"""

import json

from sqlalchemy import DateTime, text

from .projections import load_line_item_details
from .stores import Stores


async def get_order(stores: Stores, order_id: int) -> dict | None:
    """注文と明細 (商品属性付き) を返す。"""
    async with stores.session() as session:
        result = await session.execute(
            text("""
                SELECT o.id, o.client_id, o.status, o.total, o.processing_seconds,
                       c.name, c.email
                FROM orders o
                JOIN clients c ON c.id = o.client_id
                WHERE o.id = :id
            """),
            {"id": order_id},
        )
        row = result.fetchone()
        if not row:
            return None
        items = await load_line_item_details(session, order_id)

    return {
        "id": row.id,
        "client_id": row.client_id,
        "client_name": row.name,
        "client_email": row.email,
        "status": row.status,
        "total": float(row.total),
        "processing_seconds": row.processing_seconds,
        "items": [item.model_dump() for item in items],
    }


async def list_events(
    stores: Stores,
    event_type: str | None = None,
    order_id: int | None = None,
) -> list[dict]:
    """分析イベントを追記順に返す。event_type / order_id で絞り込める。"""
    clauses = []
    params: dict = {}
    if event_type is not None:
        clauses.append("event_type = :event_type")
        params["event_type"] = event_type
    if order_id is not None:
        clauses.append("order_id = :order_id")
        params["order_id"] = order_id
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    async with stores.analytics_session() as session:
        result = await session.execute(
            text(f"""
                SELECT id, event_type, order_id, client_name, client_email,
                       event_at, total, items
                FROM billed_events
                {where}
                ORDER BY id
            """).columns(event_at=DateTime(timezone=True)),
            params,
        )
        return [
            {
                "id": row.id,
                "event_type": row.event_type,
                "order_id": row.order_id,
                "client_name": row.client_name,
                "client_email": row.client_email,
                "event_at": row.event_at.isoformat() if row.event_at else None,
                "total": float(row.total),
                "items": json.loads(row.items),
            }
            for row in result.fetchall()
        ]
