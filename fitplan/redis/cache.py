from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional, Protocol

import redis.asyncio as AsyncRedis
from dotenv import load_dotenv
from upstash_redis.asyncio import Redis as UpstashRedis

load_dotenv()

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None: ...

    async def remove(self, key: str) -> None: ...


class MemoryStore:
    """Device-local store used when no Redis is configured."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)


class RedisStore:
    def __init__(self, client: Any) -> None:
        self._client = client

    async def get(self, key: str) -> Optional[str]:
        raw = await self._client.get(key)
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return raw

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        if ttl_seconds:
            await self._client.set(key, value, ex=ttl_seconds)
        else:
            await self._client.set(key, value)

    async def remove(self, key: str) -> None:
        await self._client.delete(key)


def _redis_client() -> Optional[Any]:
    tcp_url = os.getenv("REDIS_URL")
    if tcp_url:
        return AsyncRedis.from_url(tcp_url, decode_responses=True)
    url = os.getenv("UPSTASH_REDIS_REST_URL")
    token = os.getenv("UPSTASH_REDIS_REST_TOKEN")
    if not url or not token:
        return None
    return UpstashRedis(url=url, token=token)


def build_store() -> KeyValueStore:
    client = _redis_client()
    if client is None:
        logger.info("No Redis configured, using in-memory store")
        return MemoryStore()
    return RedisStore(client)


async def _store_get_json(store: KeyValueStore, key: str) -> Optional[Any]:
    try:
        raw = await store.get(key)
    except Exception as exc:
        logger.warning("Storage read failed for %s: %s", key, exc)
        return None
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding malformed JSON under %s", key)
        return None


async def _store_set_json(
    store: KeyValueStore,
    key: str,
    value: Any,
    ttl_seconds: Optional[int] = None,
) -> bool:
    try:
        await store.set(key, json.dumps(value), ttl_seconds)
    except Exception as exc:
        logger.warning("Storage write failed for %s: %s", key, exc)
        return False
    return True


async def _store_remove(store: KeyValueStore, key: str) -> None:
    try:
        await store.remove(key)
    except Exception as exc:
        logger.warning("Storage delete failed for %s: %s", key, exc)
