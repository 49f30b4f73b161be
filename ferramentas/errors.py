"""
Ferramentas — エラー定義

    FerramentasError
    ├── ConfigError
    ├── ValidationError          入力不正 (書き込み前に拒否)
    ├── NotFoundError            対象が存在しない
    │   ├── ClientNotFoundError
    │   ├── ProductNotFoundError
    │   └── OrderNotFoundError
    ├── OrderNotPendingError     注文が pending ではない
    ├── InsufficientStockError   在庫不足
    ├── InvalidCredentialsError
    ├── StoreError               DB エラー (原因は __cause__ に保持)
    │   ├── StoreUnavailableError  接続断・タイムアウト (再送可能)
    │   └── CommitError
    └── ProjectionError          分析ストアへの投影失敗 (ログのみ)
"""


class FerramentasError(Exception):
    retryable = False


class ConfigError(FerramentasError):
    pass


class ValidationError(FerramentasError):
    pass


class NotFoundError(FerramentasError):
    entity = "Resource"

    def __init__(self, entity_id: int) -> None:
        self.entity_id = entity_id
        super().__init__(f"{self.entity} {entity_id} not found")


class ClientNotFoundError(NotFoundError):
    entity = "Client"


class ProductNotFoundError(NotFoundError):
    entity = "Product"


class OrderNotFoundError(NotFoundError):
    entity = "Order"


class OrderNotPendingError(FerramentasError):
    def __init__(self, order_id: int, status: str) -> None:
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} is not pending (status={status})")


class InsufficientStockError(FerramentasError):
    def __init__(self, product_id: int, available: int, requested: int) -> None:
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested={requested}, available={available}"
        )


class InvalidCredentialsError(FerramentasError):
    def __init__(self) -> None:
        super().__init__("Invalid credentials")


class StoreError(FerramentasError):
    pass


class StoreUnavailableError(StoreError):
    retryable = True


class CommitError(StoreError):
    pass


class ProjectionError(FerramentasError):
    pass
