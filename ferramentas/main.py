"""
Ferramentas — FastAPI エントリーポイント

CQRS に倣い、Command (POST/PUT) と Query (GET) のエンドポイントを分離する。
ハンドラはリクエストを型に詰め替えてコア操作を呼ぶだけで、業務ルールは持たない。

┌──────────┐    ┌──────────────┐    ┌──────────────────┐
│  Client  │───▶│ Order Service│───▶│ Transactional DB │  (正)
└──────────┘    └──────┬───────┘    └──────────────────┘
                       │ commit 後 (ベストエフォート)
                ┌──────▼───────┐    ┌──────────────────┐
                │  Projector   │───▶│  Analytics DB    │  (派生)
                └──────────────┘    └──────────────────┘
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import accounts, catalog, commands, queries
from .config import Settings, configure_logging
from .errors import (
    FerramentasError,
    InsufficientStockError,
    InvalidCredentialsError,
    NotFoundError,
    OrderNotPendingError,
    StoreError,
    StoreUnavailableError,
    ValidationError,
)
from .models import LineItem, ProductAttributes
from .stores import Stores, open_stores

logger = logging.getLogger(__name__)

_STATUS_CODES = (
    (ValidationError, 400),
    (InvalidCredentialsError, 401),
    (NotFoundError, 404),
    (OrderNotPendingError, 409),
    (InsufficientStockError, 409),
    (StoreUnavailableError, 503),
    (StoreError, 500),
)


def status_code_for(error: FerramentasError) -> int:
    for error_class, status_code in _STATUS_CODES:
        if isinstance(error, error_class):
            return status_code
    return 500


# ── Request Models ───────────────────────────────


class CreateClientRequest(BaseModel):
    name: str
    email: str
    secret: str


class LoginRequest(BaseModel):
    email: str
    secret: str


class PlaceOrderRequest(BaseModel):
    client_id: int
    items: list[LineItem]


class AddItemsRequest(BaseModel):
    items: list[LineItem]


def get_stores(request: Request) -> Stores:
    return request.app.state.stores


def create_app(settings: Settings | None = None) -> FastAPI:
    """settings を省略すると起動時に環境変数から読む。"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolved = settings or Settings.from_env()
        configure_logging(resolved.log_level)
        async with open_stores(resolved) as stores:
            app.state.stores = stores
            yield

    app = FastAPI(title="Ferramentas Service", lifespan=lifespan)

    @app.exception_handler(FerramentasError)
    async def handle_core_error(request: Request, exc: FerramentasError):
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        body = {"detail": str(exc)}
        if isinstance(exc, StoreError):
            body["retryable"] = exc.retryable
        return JSONResponse(status_code=status_code, content=body)

    # ── Command Endpoints (Write 側) ─────────────────

    @app.post("/commands/clients", status_code=201)
    async def cmd_create_client(req: CreateClientRequest, stores: Stores = Depends(get_stores)):
        """顧客登録"""
        client_id = await accounts.create_client(stores, req.name, req.email, req.secret)
        return {"client_id": client_id}

    @app.post("/commands/login")
    async def cmd_login(req: LoginRequest, stores: Stores = Depends(get_stores)):
        client_id = await accounts.authenticate(stores, req.email, req.secret)
        return {"client_id": client_id}

    @app.post("/commands/orders", status_code=201)
    async def cmd_place_order(req: PlaceOrderRequest, stores: Stores = Depends(get_stores)):
        """注文作成 (在庫確認 → 書き込み → 投影)"""
        order_id = await commands.place_order(stores, req.client_id, req.items)
        return {"order_id": order_id}

    @app.post("/commands/orders/{order_id}/items")
    async def cmd_add_items(
        order_id: int, req: AddItemsRequest, stores: Stores = Depends(get_stores)
    ):
        agg = await commands.add_line_items(stores, order_id, req.items)
        return {"order_id": agg.id, "status": agg.status, "total": agg.total}

    @app.post("/commands/orders/{order_id}/bill")
    async def cmd_bill_order(order_id: int, stores: Stores = Depends(get_stores)):
        """請求 (pending → billed)"""
        agg = await commands.bill_order(stores, order_id)
        return {"order_id": agg.id, "status": agg.status, "total": agg.total}

    @app.post("/commands/products", status_code=201)
    async def cmd_add_product(req: ProductAttributes, stores: Stores = Depends(get_stores)):
        product_id = await catalog.add_product(stores, req)
        return {"product_id": product_id}

    @app.put("/commands/products/{product_id}")
    async def cmd_update_product(
        product_id: int, req: ProductAttributes, stores: Stores = Depends(get_stores)
    ):
        await catalog.update_product(stores, product_id, req)
        return {"product_id": product_id}

    # ── Query Endpoints (Read 側) ────────────────────

    @app.get("/queries/products")
    async def query_list_products(stores: Stores = Depends(get_stores)):
        return await catalog.list_products(stores)

    @app.get("/queries/products/{product_id}")
    async def query_get_product(product_id: int, stores: Stores = Depends(get_stores)):
        product = await catalog.get_product(stores, product_id)
        if not product:
            raise HTTPException(404, "Product not found")
        return product

    @app.get("/queries/orders/{order_id}")
    async def query_get_order(order_id: int, stores: Stores = Depends(get_stores)):
        order = await queries.get_order(stores, order_id)
        if not order:
            raise HTTPException(404, "Order not found")
        return order

    @app.get("/queries/events")
    async def query_list_events(
        event_type: str | None = None,
        order_id: int | None = None,
        stores: Stores = Depends(get_stores),
    ):
        """分析ストアのイベント一覧 (追記順)"""
        return await queries.list_events(stores, event_type, order_id)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "ferramentas-service"}

    return app


app = create_app()
