"""Seeding and inspection helpers shared by the async test modules."""

from __future__ import annotations

from sqlalchemy import text

from ferramentas import accounts, catalog
from ferramentas.models import ProductAttributes
from ferramentas.stores import Stores


def tool(name: str = "Martelo", price: float = 10.0, stock: int = 5, **kw) -> ProductAttributes:
    return ProductAttributes(
        name=name,
        description=kw.get("description", "Martelo de unha"),
        category=kw.get("category", "manual"),
        material=kw.get("material", "aço"),
        brand=kw.get("brand", "Tramontina"),
        dimensions=kw.get("dimensions", "30x10x3 cm"),
        price=price,
        stock=stock,
    )


async def seed_client(stores: Stores, name: str = "Ana", email: str = "ana@x.com") -> int:
    return await accounts.create_client(stores, name, email, "senha789")


async def seed_product(stores: Stores, **kw) -> int:
    return await catalog.add_product(stores, tool(**kw))


async def stock_of(stores: Stores, product_id: int) -> int:
    async with stores.session() as session:
        result = await session.execute(
            text("SELECT stock FROM products WHERE id = :id"), {"id": product_id}
        )
        return result.scalar_one()


async def count_rows(stores: Stores, table: str) -> int:
    async with stores.session() as session:
        result = await session.execute(text(f"SELECT COUNT(*) FROM {table}"))
        return result.scalar_one()


async def drop_event_table(stores: Stores) -> None:
    """Break the analytical store so every projection fails."""
    async with stores.analytics_engine.begin() as conn:
        await conn.execute(text("DROP TABLE billed_events"))
