"""
Factory d'application utilisée par les entrypoints (storefront.asgi, storefront.app).
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
from fastapi import FastAPI

from .exceptions import register_exception_handlers
from .lifespan import lifespan
from .middlewares import (
    register_basic_middlewares,
    register_force_https_middleware,
    register_no_cache_middleware,
    register_security_middleware,
)
from .routers import register_routers


def create_app() -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - middlewares de base, sécurité, no-cache
      - gestionnaires d'exceptions (erreurs du domaine, validation, HTTP)
      - tous les routers (API v1, health)
      - redirection HTTPS (en dernier)
    """
    app = FastAPI(title="Partner Storefront", lifespan=lifespan)
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_no_cache_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    # Ajouté en dernier pour s'exécuter en premier
    register_force_https_middleware(app)
    return app
