"""
Webhook API routes - lead-form notifications.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse

from lead_engine.api.deps import get_form_router
from lead_engine.config import settings
from lead_engine.schemas.webhook import WebhookResult
from lead_engine.services.webhook_service import FormLeadRouter

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{settings.API_PREFIX}/webhooks", tags=["webhooks"])


@router.get("/meta-leads", response_class=PlainTextResponse)
async def verify_meta_webhook(
    mode: str = Query(None, alias="hub.mode"),
    token: str = Query(None, alias="hub.verify_token"),
    challenge: str = Query("", alias="hub.challenge"),
):
    """Subscription handshake: echo the challenge when the verify token matches."""
    if mode == "subscribe" and token == settings.META_WEBHOOK_VERIFY_TOKEN:
        logger.info("Meta webhook verified")
        return challenge

    logger.warning("Meta webhook verification failed")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


@router.post("/meta-leads", response_model=WebhookResult)
async def receive_meta_leads(
    payload: Dict[str, Any] = Body(...),
    form_router: FormLeadRouter = Depends(get_form_router)
):
    """Ingest leadgen notifications into the branch of each form."""
    return await form_router.handle(payload)
