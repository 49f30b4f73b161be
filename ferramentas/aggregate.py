"""
Ferramentas — 注文集約 (Order Aggregate)

注文行から現在の状態を復元し、状態遷移のルールを一か所にまとめる。

状態遷移:
    pending → billed  (faturar)
"""

from .errors import OrderNotPendingError

PENDING = "pending"
BILLED = "billed"


class OrderAggregate:
    def __init__(self, order_id: int, client_id: int, status: str, total: float) -> None:
        self.id = order_id
        self.client_id = client_id
        self.status = status
        self.total = total

    @classmethod
    def from_row(cls, row) -> "OrderAggregate":
        return cls(row.id, row.client_id, row.status, float(row.total))

    def ensure_pending(self) -> None:
        if self.status != PENDING:
            raise OrderNotPendingError(self.id, self.status)

    # ── 状態遷移 ─────────────────────────────────

    def add_items(self, subtotal: float) -> None:
        self.ensure_pending()
        self.total = round(self.total + subtotal, 2)

    def bill(self) -> None:
        self.ensure_pending()
        self.status = BILLED
