"""
Factory d'application recommandée pour les entrypoints (ex: backend.asgi).
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
import logging
from typing import Optional

from fastapi import FastAPI
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_force_https_middleware
from .security import register_security_middleware
from .exceptions import register_exception_handlers
from .routes import register_routes
from .routers import register_routers
from backend import config
from backend.utils.csrf import register_csrf_service

def create_app(csrf_secret: Optional[str] = None) -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - le CsrfService (secret injecté, sinon CSRF_SECRET)
      - middlewares CORS/sécurité, HTTPS forcé en production
      - gestionnaires d'exceptions, routes simples et routers
    """
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = FastAPI(title="Quibble Store API", lifespan=lifespan)
    register_csrf_service(app, csrf_secret if csrf_secret is not None else config.CSRF_SECRET)
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_exception_handlers(app)
    register_routes(app)
    register_routers(app)
    if config.IS_PRODUCTION:
        register_force_https_middleware(app)
    return app
