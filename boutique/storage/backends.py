"""
Backends de stockage clé/valeur pour l'état visiteur.
- MemoryBackend: dict en mémoire avec expiration (dev, tests).
- RedisBackend: une clé Redis par entrée, TTL via EX.
Le choix se fait par STORAGE_BACKEND; get_backend() renvoie une instance partagée.
"""
import time
import logging
from typing import Dict, Optional, Tuple

import redis

from boutique.config import STORAGE_BACKEND, STORAGE_REDIS_URL

logger = logging.getLogger(__name__)

_backend = None


class MemoryBackend:
    """Stockage process (dev, tests); les entrées expirées sont purgées au plus une fois par `sweep_interval`."""

    def __init__(self, clock=time.monotonic, sweep_interval: float = 60.0):
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            self._data.pop(key, None)
            return None
        return value

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        now = self._clock()
        if now >= self._next_sweep:
            self.sweep(now)
        expires_at = now + ttl if ttl else None
        self._data[key] = (value, expires_at)

    def sweep(self, now: Optional[float] = None) -> int:
        now = self._clock() if now is None else now
        expired = [k for k, (_, exp) in self._data.items() if exp is not None and now >= exp]
        for k in expired:
            self._data.pop(k, None)
        self._next_sweep = now + self._sweep_interval
        return len(expired)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        keys = [k for k in self._data if k.startswith(prefix)]
        for k in keys:
            self._data.pop(k, None)
        return len(keys)


class RedisBackend:
    def __init__(self, client, namespace: str = "boutique"):
        self._client = client
        self._ns = namespace

    @classmethod
    def from_url(cls, url: str) -> "RedisBackend":
        return cls(redis.Redis.from_url(url, encoding="utf-8", decode_responses=True))

    def _k(self, key: str) -> str:
        return f"{self._ns}:{key}"

    def get(self, key: str) -> Optional[str]:
        value = self._client.get(self._k(key))
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        if ttl:
            self._client.set(self._k(key), value, ex=int(ttl))
        else:
            self._client.set(self._k(key), value)

    def delete(self, key: str) -> None:
        self._client.delete(self._k(key))

    def delete_prefix(self, prefix: str) -> int:
        removed = 0
        for k in self._client.scan_iter(match=f"{self._k(prefix)}*"):
            removed += self._client.delete(k)
        return removed

    def close(self) -> None:
        self._client.close()


def get_backend():
    global _backend
    if _backend is None:
        if STORAGE_BACKEND == "redis":
            _backend = RedisBackend.from_url(STORAGE_REDIS_URL)
            logger.info("Visitor storage: redis")
        else:
            _backend = MemoryBackend()
            logger.info("Visitor storage: memory")
    return _backend


def set_backend(backend) -> None:
    """Remplace l'instance partagée (tests, scripts)."""
    global _backend
    _backend = backend
