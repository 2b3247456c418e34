"""
ASGI entrypoint: expose `app` for process managers / deployments.

- En production, un process manager (ex: gunicorn/uvicorn-workers) importe `boutique.asgi:app`.
- Toute la configuration de FastAPI (routes, middlewares, sécurité, static, etc.) est centralisée
  dans boutique.app_setup, ce fichier ne fait qu'exposer l'instance `app`.
"""

from boutique.app import app

if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(
        "boutique.asgi:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "4242")),
        reload=True,
    )
