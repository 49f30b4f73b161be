"""
Ferramentas — 分析イベント定義

分析ストアには業務上の事実(イベント)を 1 行ずつ追記する。
イベントは過去形で命名し、一度書いたら更新・削除しない。
"""

import json
from datetime import datetime

from pydantic import BaseModel

from .models import LineItemDetail

ACCOUNT_CREATED = "account_created"
LOGIN = "login"
ORDER_CREATED = "order_created"
ITEMS_ADDED = "items_added"
ORDER_BILLED = "order_billed"

EVENT_TYPES = (ACCOUNT_CREATED, LOGIN, ORDER_CREATED, ITEMS_ADDED, ORDER_BILLED)


class AnalyticalEvent(BaseModel):
    """billed_events テーブルの 1 行"""
    event_type: str
    order_id: int | None = None
    client_name: str
    client_email: str
    event_at: datetime
    total: float
    items: list[LineItemDetail] = []

    def items_json(self) -> str:
        """明細を JSON 配列にシリアライズする (順序は保持)。"""
        return json.dumps(
            [item.model_dump(mode="json") for item in self.items],
            ensure_ascii=False,
        )
