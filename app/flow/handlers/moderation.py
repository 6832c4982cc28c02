"""
app/flow/handlers/moderation.py

Handles: admin review controls

- ✅ Approve / ❌ Reject buttons on review requests
- /pending re-sends every pending product to the admin
"""

from app.core.exceptions import AuthorizationError, NotFoundError
from app.core.logging import get_logger
from app.schemas.telegram import InboundEvent
from utils.constants import (
    ACCESS_DENIED_MESSAGE,
    ADMIN_APPROVED_ACK,
    ADMIN_APPROVED_NOT_POSTED_ACK,
    ADMIN_REJECTED_ACK,
    NO_PENDING_MESSAGE,
)
from utils.telegram_utils import unpack

logger = get_logger(__name__)


def button_product_id(event: InboundEvent) -> str:
    parts = unpack(event.data)
    return parts[1] if len(parts) > 1 else ""


async def handle_approve(event: InboundEvent, ctx) -> None:
    try:
        posted = await ctx.moderation.approve(button_product_id(event), event.user_id)
    except (AuthorizationError, NotFoundError) as e:
        await ctx.transport.answer_interaction(event.callback_id, e.message, show_alert=True)
        return

    ack = ADMIN_APPROVED_ACK if posted else ADMIN_APPROVED_NOT_POSTED_ACK
    await ctx.transport.answer_interaction(event.callback_id, ack)


async def handle_reject(event: InboundEvent, ctx) -> None:
    try:
        await ctx.moderation.reject(button_product_id(event), event.user_id)
    except (AuthorizationError, NotFoundError) as e:
        await ctx.transport.answer_interaction(event.callback_id, e.message, show_alert=True)
        return

    await ctx.transport.answer_interaction(event.callback_id, ADMIN_REJECTED_ACK)


async def handle_pending(event: InboundEvent, ctx) -> None:
    try:
        sent = await ctx.moderation.resend_pending(event.user_id)
    except AuthorizationError:
        await ctx.transport.send_text(event.chat_id, ACCESS_DENIED_MESSAGE)
        return

    logger.info(f"Re-sent {sent} pending products", extra={"admin_id": event.user_id})
    if not sent:
        await ctx.transport.send_text(event.chat_id, NO_PENDING_MESSAGE)
