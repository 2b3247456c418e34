"""
Factory d'application pour les entrypoints (ex: boutique.asgi).
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
import logging
import os

from fastapi import FastAPI
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_no_cache_middleware, register_force_https_middleware
from .static import mount_static_files
from .security import register_security_middleware
from .exceptions import register_exception_handlers
from .routes import register_routes
from .routers import register_routers
from boutique.utils.visitor import register_visitor_middleware


def create_app() -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - middlewares de base, statiques, cookie visiteur, sécurité, no-cache
      - gestionnaires d'exceptions et routes simples
      - tous les routers (API v1, proxy Checkout.com, health)
      - redirection HTTPS en dernier (exécutée en premier)
    """
    logging.getLogger("boutique").setLevel(os.getenv("LOG_LEVEL", "info").upper())
    app = FastAPI(title="Boutique Checkout API", lifespan=lifespan)
    register_basic_middlewares(app)
    mount_static_files(app)
    register_visitor_middleware(app)
    register_security_middleware(app)
    register_no_cache_middleware(app)
    register_exception_handlers(app)
    register_routes(app)
    register_routers(app)
    register_force_https_middleware(app)
    return app
