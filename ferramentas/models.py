"""
Ferramentas — 入力モデル / 明細レコード

フロントエンド (HTTP / CLI) はリクエストをこれらの型に詰め替えてから
コア操作を呼び出す。業務ルールの検証はコア側で行う。
"""

from pydantic import BaseModel


class ProductAttributes(BaseModel):
    """ツール (ferramenta) の属性一式"""
    name: str
    description: str = ""
    category: str = ""
    material: str = ""
    brand: str = ""
    dimensions: str = ""
    price: float
    stock: int


class LineItem(BaseModel):
    """
    注文明細の入力

    unit_price は受け付けるが価格計算には使わない (カタログ価格が正)。
    """
    product_id: int
    quantity: int
    unit_price: float | None = None


class LineItemDetail(BaseModel):
    """分析ストアの items 列に入る明細スナップショット"""
    product_id: int
    quantity: int
    unit_price: float
    title: str
    category: str | None = None
    material: str | None = None
    brand: str | None = None
    dimensions: str | None = None
