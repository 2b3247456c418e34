# boutique.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

PUBLIC_DIR = BASE_DIR / "public"

"""
Configuration centrale de la boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Expose le chemin PUBLIC_DIR (pages statiques)
- Normalise et expose les clés Checkout.com, l'URL FX et le stockage visiteur
- Fournit les durées métier (hold de siège, debounce BIN) et les URLs de retour paiement
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _int_env(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name) or "") or default)
    except ValueError:
        return default

# Checkout.com: clés secrète/publique et canal de traitement
# - CK_ENVIRONMENT: "sandbox" (défaut) ou "production"
CK_SECRET = _clean_env(os.getenv("CK_SECRET") or "")
CK_PUBLIC = _clean_env(os.getenv("CK_PUBLIC") or "")
PROCESSING_CHANNEL_ID = _clean_env(os.getenv("PROCESSING_CHANNEL_ID") or "")
CK_ENVIRONMENT = _clean_env(os.getenv("CK_ENVIRONMENT") or "sandbox").lower()
CK_API_URL = _clean_env(os.getenv("CK_API_URL") or "")
if not CK_API_URL:
    CK_API_URL = "https://api.checkout.com" if CK_ENVIRONMENT == "production" else "https://api.sandbox.checkout.com"
CK_API_URL = CK_API_URL.rstrip("/")
CK_HTTP_TIMEOUT = float(_clean_env(os.getenv("CK_HTTP_TIMEOUT") or "15") or 15)

# Taux de change: base HKD (devise canonique du catalogue)
CANONICAL_CURRENCY = "HKD"
FX_API_URL = _clean_env(os.getenv("FX_API_URL") or "https://api.exchangerate-api.com/v4/latest/HKD")

# Stockage visiteur: "memory" (process local) ou "redis"
STORAGE_BACKEND = _clean_env(os.getenv("STORAGE_BACKEND") or "memory").lower()
STORAGE_REDIS_URL = _clean_env(os.getenv("STORAGE_REDIS_URL") or "redis://127.0.0.1:6379/1")
SESSION_TTL_SECONDS = _int_env("SESSION_TTL_SECONDS", 3600)

# Durées métier
HOLD_DURATION_SECONDS = _int_env("HOLD_DURATION_SECONDS", 5 * 60)
PROBE_DEBOUNCE_MS = _int_env("PROBE_DEBOUNCE_MS", 350)

# Cookies/ Sécurité
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
VISITOR_COOKIE_NAME = _clean_env(os.getenv("VISITOR_COOKIE_NAME") or "visitor_id")

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:4242").rstrip("/")

# Pages de retour du paiement hébergé
CHECKOUT_SUCCESS_PATH = os.getenv("CHECKOUT_SUCCESS_PATH", "/success.html")
CHECKOUT_FAILURE_PATH = os.getenv("CHECKOUT_FAILURE_PATH", "/failure.html")
CHECKOUT_CANCEL_PATH = os.getenv("CHECKOUT_CANCEL_PATH", "/cancel.html")
ELIGIBILITY_PATH = os.getenv("ELIGIBILITY_PATH", "/ticket-eligibility.html")
SEAT_SELECTION_PATH = os.getenv("SEAT_SELECTION_PATH", "/ticket-seat-selection.html")
TICKET_PAYMENT_PATH = os.getenv("TICKET_PAYMENT_PATH", "/ticket-payment.html")
PAYMENT_FLOW_PATH = os.getenv("PAYMENT_FLOW_PATH", "/payment-flow.html")

DISPLAY_NAME = os.getenv("DISPLAY_NAME", "iPhone Case Shop")
