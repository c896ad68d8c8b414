"""
ASGI entrypoint: expose `app` for process managers / deployments.

- En production, un process manager (ex: gunicorn/uvicorn-workers) importe `backend.asgi:app`.
- Toute la configuration (routes, middlewares, CSRF, rate limiting) est centralisée
  dans backend.app_setup.factory, ce fichier ne fait qu'exposer l'instance `app`.
"""

from backend.app_setup.factory import create_app

app = create_app()
