"""
Routes simples (hors routers).
- GET /api/csrf-token: émet un jeton CSRF signé par le CsrfService de l'application.
- /favicon.ico: pas de contenu (204) pour éviter des 404 dans les logs.
"""
from fastapi import FastAPI, Request
from fastapi.responses import Response
from starlette.status import HTTP_204_NO_CONTENT

from backend.utils.csrf import get_csrf_service

def register_routes(app: FastAPI) -> None:
    @app.get("/api/csrf-token", tags=["Security"])
    def csrf_token(request: Request):
        """Jeton sans état: aucune donnée de session n'est conservée côté serveur."""
        return {"token": get_csrf_service(request).issue_token()}

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return Response(status_code=HTTP_204_NO_CONTENT)
