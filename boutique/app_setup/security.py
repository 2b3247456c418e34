from urllib.parse import urlparse

from fastapi import FastAPI
from boutique.config import CK_API_URL, FX_API_URL, COOKIE_SECURE

CHECKOUT_COMPONENTS_CDN = "https://checkout-web-components.checkout.com"


def _origin(url: str) -> str:
    p = urlparse(url)
    return f"{p.scheme}://{p.netloc}" if p.scheme and p.netloc else ""


def register_security_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def security_headers(request, call_next):
        response = await call_next(request)

        # En-têtes de sécurité
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
        if COOKIE_SECURE:
            response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")

        # CSP: le composant de paiement intégré charge ses scripts et frames depuis Checkout.com
        csp_connect = ["'self'", CHECKOUT_COMPONENTS_CDN]
        for url in (CK_API_URL, FX_API_URL):
            origin = _origin(url)
            if origin and origin not in csp_connect:
                csp_connect.append(origin)
        swagger_cdns = ["https://cdn.jsdelivr.net", "https://unpkg.com"]
        csp_connect.extend(swagger_cdns)
        extra_img_sources = ["https://fastapi.tiangolo.com"]

        csp = (
            "default-src 'self'; "
            "base-uri 'self'; object-src 'none'; frame-ancestors 'none'; "
            f"img-src 'self' data: blob: {' '.join(extra_img_sources)}; "
            f"style-src 'self' 'unsafe-inline' {' '.join(swagger_cdns)}; "
            f"script-src 'self' 'unsafe-inline' {CHECKOUT_COMPONENTS_CDN} {' '.join(swagger_cdns)}; "
            f"frame-src {CHECKOUT_COMPONENTS_CDN}; "
            f"connect-src {' '.join(csp_connect)}"
        )
        response.headers["Content-Security-Policy"] = csp

        return response
