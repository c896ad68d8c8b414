"""Canaux annexes exposés au frontend.
- POST /api/send-email: relais Mailjet (CSRF + rate limit global)
- POST /api/chat: proxy OpenRouter (CSRF + fenêtre dédiée de 10 req/min par adresse)
"""
import logging

from fastapi import APIRouter, Request, Depends
from starlette.concurrency import run_in_threadpool

from backend.config import (
    CHAT_RATE_LIMIT_SECONDS,
    CHAT_RATE_LIMIT_TIMES,
    RATE_LIMIT_SECONDS,
    RATE_LIMIT_TIMES,
)
from backend.notifications import service as notifications_service
from backend.utils.csrf import csrf_protect
from backend.utils.rate_limit import optional_rate_limit
from backend.utils.validators import read_json_body

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Notifications API"], dependencies=[Depends(csrf_protect)])


@router.post(
    "/send-email",
    dependencies=[Depends(optional_rate_limit(times=RATE_LIMIT_TIMES, seconds=RATE_LIMIT_SECONDS))],
)
async def send_email(request: Request):
    """{ to, subject, htmlContent, fromEmail?, fromName? } -> { success, message, data }"""
    body = await read_json_body(request)
    return await run_in_threadpool(
        notifications_service.send_email,
        to=body.get("to"),
        subject=body.get("subject"),
        html_content=body.get("htmlContent"),
        from_email=body.get("fromEmail"),
        from_name=body.get("fromName"),
    )


@router.post(
    "/chat",
    dependencies=[
        Depends(optional_rate_limit(times=CHAT_RATE_LIMIT_TIMES, seconds=CHAT_RATE_LIMIT_SECONDS, scope="chat"))
    ],
)
async def chat(request: Request):
    body = await read_json_body(request)
    return await run_in_threadpool(
        notifications_service.chat_completion,
        body.get("messages"),
        body.get("model"),
        request.headers.get("origin"),
    )
