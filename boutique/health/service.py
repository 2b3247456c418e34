from urllib.parse import urlparse
import uuid

from boutique.config import STORAGE_BACKEND, STORAGE_REDIS_URL, FX_API_URL
from boutique.fx import service as fx
from boutique.storage.backends import get_backend


def health_storage_info():
    """Aller-retour écriture/lecture/suppression sur le stockage visiteur."""
    parsed = urlparse(STORAGE_REDIS_URL) if STORAGE_BACKEND == "redis" else None
    info = {
        "backend": STORAGE_BACKEND,
        "host": parsed.hostname if parsed else None,
        "ok": False,
        "error": None,
    }
    key = f"health:{uuid.uuid4().hex}"
    try:
        backend = get_backend()
        backend.set(key, "1", ttl=10)
        info["ok"] = backend.get(key) == "1"
        backend.delete(key)
    except Exception as e:
        info["error"] = str(e)
    return info


def health_fx_info():
    rates = fx.get_rates()
    return {
        "source": urlparse(FX_API_URL).hostname,
        "fallback": rates == fx.FALLBACK_RATES,
        "currencies": len(rates),
    }
