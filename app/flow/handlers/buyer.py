"""
app/flow/handlers/buyer.py

Handles: channel post buttons and "Mark as sold"

- 🛒 BUY / 💬 CONTACT SELLER under channel posts
- ✅ Mark as sold under /myproducts entries
"""

from app.core.exceptions import AuthorizationError, NotFoundError, TransportError, ValidationError
from app.core.logging import get_logger
from app.flow.handlers.moderation import button_product_id
from app.schemas.telegram import InboundEvent
from utils.constants import BUYER_NOTIFIED_ACK, CONTACT_SENT_ACK, MARKED_SOLD_ACK
from utils.telegram_utils import sold_buttons

logger = get_logger(__name__)


async def handle_buy(event: InboundEvent, ctx) -> None:
    try:
        await ctx.buyers.buy(button_product_id(event), event.sender)
    except (NotFoundError, ValidationError) as e:
        await ctx.transport.answer_interaction(event.callback_id, e.message, show_alert=True)
        return

    await ctx.transport.answer_interaction(event.callback_id, BUYER_NOTIFIED_ACK)


async def handle_contact(event: InboundEvent, ctx) -> None:
    try:
        await ctx.buyers.contact(button_product_id(event), event.sender)
    except (NotFoundError, ValidationError) as e:
        await ctx.transport.answer_interaction(event.callback_id, e.message, show_alert=True)
        return

    await ctx.transport.answer_interaction(event.callback_id, CONTACT_SENT_ACK)


async def handle_mark_sold(event: InboundEvent, ctx) -> None:
    try:
        await ctx.moderation.mark_sold(button_product_id(event), event.user_id)
    except (AuthorizationError, NotFoundError) as e:
        await ctx.transport.answer_interaction(event.callback_id, e.message, show_alert=True)
        return

    if event.message_id is not None:
        try:
            await ctx.transport.edit_message_controls(event.chat_id, event.message_id, sold_buttons())
        except TransportError as e:
            logger.debug(f"Could not update listing controls: {e.message}")

    await ctx.transport.answer_interaction(event.callback_id, MARKED_SOLD_ACK)
