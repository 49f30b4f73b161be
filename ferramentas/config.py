"""
Ferramentas — 設定

環境変数から一度だけ読み込み、Settings として各コンポーネントへ渡す。
"""

import logging
import os
from dataclasses import dataclass

from .errors import ConfigError

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    transactional_database_url: str
    analytics_database_url: str
    store_timeout: float = 10.0
    create_schema: bool = False
    bcrypt_rounds: int = 12
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """環境変数から Settings を組み立てる。必須変数が無ければ ConfigError。"""
        missing = [
            name
            for name in ("TRANSACTIONAL_DATABASE_URL", "ANALYTICS_DATABASE_URL")
            if not os.environ.get(name)
        ]
        if missing:
            raise ConfigError(f"Missing environment variables: {', '.join(missing)}")

        try:
            store_timeout = float(os.environ.get("STORE_TIMEOUT", "10"))
            bcrypt_rounds = int(os.environ.get("BCRYPT_ROUNDS", "12"))
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

        return cls(
            transactional_database_url=os.environ["TRANSACTIONAL_DATABASE_URL"],
            analytics_database_url=os.environ["ANALYTICS_DATABASE_URL"],
            store_timeout=store_timeout,
            create_schema=os.environ.get("CREATE_SCHEMA", "false").lower() in _TRUE_VALUES,
            bcrypt_rounds=bcrypt_rounds,
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
