"""
Ferramentas — テーブル定義

トランザクション DB と分析 DB (DW) はそれぞれ独立した MetaData を持つ。
クエリは text() で書くため、ここではテーブル作成にのみ使う。
"""

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    func,
)

transactional_metadata = MetaData()
analytics_metadata = MetaData()

# ── トランザクション DB ─────────────────────────

clients = Table(
    "clients",
    transactional_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(200), nullable=False),
    Column("email", String(200), nullable=False, index=True),
    Column("secret", String(200), nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

products = Table(
    "products",
    transactional_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(200), nullable=False),
    Column("description", Text, nullable=False),
    Column("category", String(100), nullable=False),
    Column("material", String(100), nullable=False),
    Column("brand", String(100), nullable=False),
    Column("dimensions", String(100), nullable=False),
    Column("price", Numeric(12, 2), nullable=False),
    Column("stock", Integer, nullable=False),
)

orders = Table(
    "orders",
    transactional_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("client_id", Integer, ForeignKey("clients.id"), nullable=False),
    Column("status", String(20), nullable=False),
    Column("total", Numeric(12, 2), nullable=False),
    Column("processing_seconds", Float, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

order_items = Table(
    "order_items",
    transactional_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_id", Integer, ForeignKey("orders.id"), nullable=False, index=True),
    Column("product_id", Integer, ForeignKey("products.id"), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", Numeric(12, 2), nullable=False),
)

logins = Table(
    "logins",
    transactional_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("client_id", Integer, ForeignKey("clients.id"), nullable=False),
    Column("logged_at", DateTime(timezone=True), server_default=func.now()),
)

# ── 分析 DB (追記専用のファクトテーブル) ──────────

billed_events = Table(
    "billed_events",
    analytics_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("event_type", String(50), nullable=False, index=True),
    Column("order_id", Integer, nullable=True, index=True),
    Column("client_name", String(200), nullable=False),
    Column("client_email", String(200), nullable=False),
    Column("event_at", DateTime(timezone=True), nullable=False),
    Column("total", Numeric(12, 2), nullable=False),
    Column("items", Text, nullable=False),
)
