"""
Middlewares transverses de l'application.
- register_basic_middlewares: CORS (origines configurées, credentials) et confiance en X-Forwarded-*.
- register_force_https_middleware: redirige HTTP -> HTTPS derrière un proxy (production).
Notes:
- L'ordre d'ajout est important: le middleware HTTPS est ajouté en dernier pour s'exécuter en premier.
- Le CSRF n'est pas un middleware: c'est la dépendance csrf_protect posée route par route.
"""
from fastapi import Request, FastAPI
from fastapi.responses import RedirectResponse
from fastapi.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from backend.config import CORS_ORIGINS
from backend.utils.csrf import CSRF_HEADER_NAME


def register_basic_middlewares(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", CSRF_HEADER_NAME],
    )
    # Fait confiance aux en-têtes X-Forwarded-* (Render, Netlify, Nginx...)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")


def register_force_https_middleware(app: FastAPI) -> None:
    """
    Force la redirection HTTP -> HTTPS lorsqu'un proxy place x-forwarded-proto=http.
    - Ajouté en dernier afin qu'il s'exécute en premier dans la pile des middlewares.
    """
    @app.middleware("http")
    async def force_https(request: Request, call_next):
        if request.headers.get("x-forwarded-proto") == "http":
            url = str(request.url.replace(scheme="https"))
            return RedirectResponse(url, status_code=301)
        return await call_next(request)
