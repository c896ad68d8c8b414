"""
Rate limiting par adresse client, fenêtre fixe.
- fastapi-limiter (Redis) quand il est initialisé par le lifespan
- Fallback mémoire (LOCAL_RATE_LIMIT_FALLBACK=1): compteur par fenêtre fixe
- scope: regroupe plusieurs routes sous un même compteur (ex: "global", "chat")
"""
from typing import Dict, Any
from urllib.parse import urlparse
import os
import time

from fastapi import Request, Response, HTTPException
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter


def _client_key(req: Request, scope: str) -> str:
    ip = req.client.host if req.client else "local"
    return f"ip:{ip}:{scope}"

def optional_rate_limit(times: int, seconds: int, scope: str = "global"):
    async def _dep(request: Request, response: Response):
        # Forcer le fallback mémoire en DEV si demandé
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            now = time.time()
            key = _client_key(request, scope)
            store: Dict[str, Any] = getattr(request.app.state, "_rl_store", {})
            window_start, count = store.get(key, (now, 0))
            if now - window_start >= seconds:
                window_start, count = now, 0
            if count >= times:
                raise HTTPException(status_code=429, detail="Too Many Requests")
            store[key] = (window_start, count + 1)
            request.app.state._rl_store = store
            return

        # Respecter le flag global
        disabled_flag = getattr(request.app.state, "rate_limit_enabled", None) is False
        if disabled_flag:
            return

        # Utiliser fastapi-limiter si initialisé par le lifespan
        if getattr(FastAPILimiter, "redis", None) is None:
            return

        async def _identifier(req: Request) -> str:
            return _client_key(req, scope)
        return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
    return _dep

def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)

    limiter_ready = getattr(FastAPILimiter, "redis", None) is not None
    backend = "redis" if limiter_ready else None

    if backend is None and os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
        backend = "memory"

    info: Dict[str, Any] = {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": limiter_ready,
        "backend": backend,
    }

    if backend == "redis":
        redis_url = os.getenv("RATE_LIMIT_REDIS_URL")
        if redis_url:
            p = urlparse(redis_url)
            info["redis"] = {
                "scheme": p.scheme,
                "host": p.hostname,
                "port": p.port,
            }

    return info
