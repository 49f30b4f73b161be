"""
Ferramentas — アカウント (顧客登録・認証)

シークレットは bcrypt ハッシュで保存する。平文のまま保存・比較はしない。
認証成功ごとに logins に 1 行記録し、login イベントを投影する。
"""

import asyncio
import functools
import logging

import bcrypt
from sqlalchemy import text

from . import projections
from .errors import InvalidCredentialsError, ValidationError
from .events import ACCOUNT_CREATED, LOGIN
from .stores import Stores

logger = logging.getLogger(__name__)

# bcrypt が扱える入力の上限
MAX_SECRET_BYTES = 72


def hash_secret(secret: str, rounds: int = 12) -> str:
    encoded = secret.encode()
    if len(encoded) > MAX_SECRET_BYTES:
        raise ValidationError(f"Secret must be at most {MAX_SECRET_BYTES} bytes")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode()


def verify_secret(secret: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(secret.encode(), hashed.encode())
    except ValueError:
        # 72 バイト超の入力や壊れたハッシュ
        return False


@functools.lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> str:
    # 該当 email が無いときも同じコストの照合を行うための照合用ハッシュ
    return hash_secret("ferramentas-dummy-secret", rounds)


def _verify_dummy(secret: str, rounds: int) -> bool:
    return verify_secret(secret, _dummy_hash(rounds))


async def create_client(stores: Stores, name: str, email: str, secret: str) -> int:
    """顧客を登録し、account_created イベント (合計 0) を投影する。"""
    if not name.strip() or not email.strip() or not secret:
        raise ValidationError("name, email and secret are required")

    # bcrypt は CPU を占有するのでイベントループの外で実行する
    hashed = await asyncio.to_thread(hash_secret, secret, stores.settings.bcrypt_rounds)
    async with stores.transaction() as session:
        result = await session.execute(
            text("""
                INSERT INTO clients (name, email, secret)
                VALUES (:name, :email, :secret)
                RETURNING id
            """),
            {"name": name, "email": email, "secret": hashed},
        )
        client_id = result.scalar_one()

    logger.info("Client %s created", client_id)
    await projections.best_effort(
        projections.project(stores, ACCOUNT_CREATED, None, name, email, 0.0, []),
        f"{ACCOUNT_CREATED} for client {client_id}",
    )
    return client_id


async def authenticate(stores: Stores, email: str, secret: str) -> int:
    """
    email + secret で認証する。

    失敗理由 (email 不一致 / secret 不一致) は区別せず InvalidCredentialsError。
    email が未登録でも照合を 1 回行い、応答時間で登録有無が分からないようにする。
    """
    if not email or not secret:
        raise InvalidCredentialsError()

    async with stores.session() as session:
        result = await session.execute(
            text("SELECT id, name, email, secret FROM clients WHERE email = :email ORDER BY id"),
            {"email": email},
        )
        candidates = result.fetchall()

    client = None
    for row in candidates:
        if await asyncio.to_thread(verify_secret, secret, row.secret):
            client = row
            break
    if not candidates:
        await asyncio.to_thread(_verify_dummy, secret, stores.settings.bcrypt_rounds)
    if client is None:
        raise InvalidCredentialsError()

    async with stores.transaction() as session:
        await session.execute(
            text("INSERT INTO logins (client_id) VALUES (:cid)"),
            {"cid": client.id},
        )

    logger.info("Client %s logged in", client.id)
    await projections.best_effort(
        projections.project(stores, LOGIN, None, client.name, client.email, 0.0, []),
        f"{LOGIN} for client {client.id}",
    )
    return client.id
