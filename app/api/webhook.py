"""
app/api/webhook.py

Purpose: Telegram webhook endpoint

- Receives Update JSON pushed by Telegram
- Checks the X-Telegram-Bot-Api-Secret-Token header when a secret is set
- Hands the update to the dispatcher as a background task
- Answers 200 right away so Telegram does not redeliver
"""

import hmac
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Header, HTTPException, Request

from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


@router.post("/webhook")
async def webhook_handler(
    request: Request,
    background_tasks: BackgroundTasks,
    secret_token: Optional[str] = Header(None, alias=SECRET_HEADER),
):
    """
    Telegram webhook endpoint.
    """
    expected = request.app.state.settings.WEBHOOK_SECRET
    if expected and not hmac.compare_digest(secret_token or "", expected):
        logger.warning("Webhook call with invalid secret token")
        raise HTTPException(status_code=403, detail="Invalid secret token")

    try:
        payload: Dict[str, Any] = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    logger.debug(f"📱 Update {payload.get('update_id')} received")
    background_tasks.add_task(request.app.state.dispatcher.feed_update, payload)
    return {"ok": True}


@router.get("/webhook")
async def webhook_verification():
    """
    Lets operators check the route is mounted.
    """
    return {"status": "ok", "message": "Webhook endpoint is active"}
