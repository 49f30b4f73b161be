"""
Ferramentas — カタログ (ツールの登録・更新・一覧)

products テーブルへの単純な読み書き。在庫の減算は注文サービスが行う。
"""

import logging

from sqlalchemy import text

from .errors import ProductNotFoundError, ValidationError
from .models import ProductAttributes
from .stores import Stores

logger = logging.getLogger(__name__)


def _validate(attrs: ProductAttributes) -> None:
    if not attrs.name.strip():
        raise ValidationError("Product name is required")
    if attrs.price < 0:
        raise ValidationError("Product price must not be negative")
    if attrs.stock < 0:
        raise ValidationError("Product stock must not be negative")


def _params(attrs: ProductAttributes) -> dict:
    params = attrs.model_dump()
    params["price"] = round(attrs.price, 2)
    return params


def _to_dict(row) -> dict:
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "category": row.category,
        "material": row.material,
        "brand": row.brand,
        "dimensions": row.dimensions,
        "price": float(row.price),
        "stock": row.stock,
    }


async def add_product(stores: Stores, attrs: ProductAttributes) -> int:
    _validate(attrs)
    async with stores.transaction() as session:
        result = await session.execute(
            text("""
                INSERT INTO products
                    (name, description, category, material, brand, dimensions, price, stock)
                VALUES
                    (:name, :description, :category, :material, :brand, :dimensions, :price, :stock)
                RETURNING id
            """),
            _params(attrs),
        )
        product_id = result.scalar_one()

    logger.info("Product %s added: %s", product_id, attrs.name)
    return product_id


async def update_product(stores: Stores, product_id: int, attrs: ProductAttributes) -> None:
    """全属性を上書きする。対象が無ければ ProductNotFoundError。"""
    _validate(attrs)
    async with stores.transaction() as session:
        result = await session.execute(
            text("""
                UPDATE products
                SET name = :name, description = :description, category = :category,
                    material = :material, brand = :brand, dimensions = :dimensions,
                    price = :price, stock = :stock
                WHERE id = :id
            """),
            {**_params(attrs), "id": product_id},
        )
        if result.rowcount == 0:
            raise ProductNotFoundError(product_id)

    logger.info("Product %s updated", product_id)


async def get_product(stores: Stores, product_id: int) -> dict | None:
    async with stores.session() as session:
        result = await session.execute(
            text("SELECT * FROM products WHERE id = :id"),
            {"id": product_id},
        )
        row = result.fetchone()
    if not row:
        return None
    return _to_dict(row)


async def list_products(stores: Stores) -> list[dict]:
    async with stores.session() as session:
        result = await session.execute(text("SELECT * FROM products ORDER BY id"))
        return [_to_dict(row) for row in result.fetchall()]
