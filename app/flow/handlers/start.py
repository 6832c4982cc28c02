"""
app/flow/handlers/start.py

Handles: /start, /help, /myproducts

- Registers or refreshes the user and their channel membership
- Shows the main menu (admins also see the pending count)
- Lists the user's own products with a "Mark as sold" button
"""

from app.core.logging import get_logger, LogContext
from app.models.product import ProductStatus
from app.schemas.telegram import InboundEvent
from utils.constants import (
    ADMIN_PENDING_SUFFIX,
    HELP_MESSAGE,
    MY_PRODUCT_LINE,
    NO_PRODUCTS_MESSAGE,
    UNKNOWN_INPUT_MESSAGE,
    WELCOME_MESSAGE,
)
from utils.telegram_utils import escape, main_menu_keyboard, mark_sold_buttons

logger = get_logger(__name__)

MY_PRODUCTS_LIMIT = 20


async def handle_start(event: InboundEvent, ctx) -> None:
    with LogContext(user_id=event.user_id):
        user = await ctx.user_service.register(event.sender)
        await ctx.user_service.check_membership(event.user_id)
        logger.info(f"👋 /start from {user.display_name}")

        text = WELCOME_MESSAGE.format(channel=ctx.channel)
        if ctx.user_service.is_admin(event.user_id):
            text += ADMIN_PENDING_SUFFIX.format(count=await ctx.moderation.count_pending())

        await ctx.transport.send_text(event.chat_id, text, reply_keyboard=main_menu_keyboard())


async def handle_help(event: InboundEvent, ctx) -> None:
    await ctx.transport.send_text(
        event.chat_id, HELP_MESSAGE.format(channel=ctx.channel), reply_keyboard=main_menu_keyboard()
    )


async def handle_unknown(event: InboundEvent, ctx) -> None:
    await ctx.transport.send_text(event.chat_id, UNKNOWN_INPUT_MESSAGE, reply_keyboard=main_menu_keyboard())


async def handle_my_products(event: InboundEvent, ctx) -> None:
    """One message per product, newest first."""
    products = await ctx.products.list_by_seller(event.user_id)
    if not products:
        await ctx.transport.send_text(event.chat_id, NO_PRODUCTS_MESSAGE, reply_keyboard=main_menu_keyboard())
        return

    for product in products[:MY_PRODUCTS_LIMIT]:
        text = MY_PRODUCT_LINE.format(
            title=escape(product.title),
            price=f"{product.price:,}",
            category=escape(product.category),
            status=product.status.value.title(),
        )
        buttons = mark_sold_buttons(product.id) if product.status == ProductStatus.APPROVED else None
        await ctx.transport.send_text(event.chat_id, text, buttons=buttons)
