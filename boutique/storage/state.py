"""
État d'un visiteur (équivalent serveur de localStorage / sessionStorage).
- Les valeurs sont des chaînes; read_json/write_json sérialisent en JSON.
- Lecture tolérante: un contenu illisible est journalisé et remplacé par la valeur par défaut.
"""
import json
import logging
from typing import Any, Optional

import redis

from boutique.config import SESSION_TTL_SECONDS
from boutique.errors import PersistenceError
from boutique.storage.backends import get_backend
from boutique.storage.keys import LOCAL, SESSION

logger = logging.getLogger(__name__)


class VisitorState:
    def __init__(self, visitor_id: str, backend=None, session_ttl: int = SESSION_TTL_SECONDS):
        if not visitor_id:
            raise ValueError("visitor_id is required")
        self.visitor_id = visitor_id
        self.backend = backend if backend is not None else get_backend()
        self.session_ttl = session_ttl

    def _key(self, key: str, scope: str) -> str:
        return f"{scope}:{self.visitor_id}:{key}"

    def get(self, key: str, scope: str = LOCAL) -> Optional[str]:
        try:
            return self.backend.get(self._key(key, scope))
        except redis.RedisError as e:
            logger.warning("Lecture impossible (%s:%s): %s", scope, key, e)
            return None

    def set(self, key: str, value: str, scope: str = LOCAL) -> None:
        ttl = self.session_ttl if scope == SESSION else None
        try:
            self.backend.set(self._key(key, scope), str(value), ttl=ttl)
        except redis.RedisError as e:
            logger.exception("Écriture impossible (%s:%s)", scope, key)
            raise PersistenceError(f"Écriture impossible: {key}") from e

    def remove(self, key: str, scope: str = LOCAL) -> None:
        self.backend.delete(self._key(key, scope))

    def read_json(self, key: str, default: Any = None, scope: str = LOCAL) -> Any:
        raw = self.get(key, scope)
        if raw is None or raw == "":
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Donnée illisible ignorée (%s:%s) pour visiteur %s", scope, key, self.visitor_id)
            return default

    def write_json(self, key: str, value: Any, scope: str = LOCAL) -> None:
        self.set(key, json.dumps(value), scope)

    def get_flag(self, key: str, scope: str = LOCAL) -> bool:
        return (self.get(key, scope) or "").lower() == "true"

    def set_flag(self, key: str, enabled: bool, scope: str = LOCAL) -> None:
        self.set(key, "true" if enabled else "false", scope)

    def clear_session(self) -> int:
        return self.backend.delete_prefix(f"{SESSION}:{self.visitor_id}:")
