"""
app/flow/dispatcher.py

Purpose: Central update dispatcher

- Receives normalized events from the webhook or the polling loop
- Routes commands, menu texts, photos and button presses to handlers
- Falls back to the live session's step handler for free text
- Serializes each user's events and contains every handler failure
"""

from typing import Any, Awaitable, Callable, Dict, Optional

from app.core.exceptions import MarketplaceError, TransportError
from app.core.logging import get_logger, LogContext
from app.schemas.telegram import InboundEvent, parse_update
from utils.constants import GENERIC_ERROR_MESSAGE
from utils.telegram_utils import unpack

logger = get_logger(__name__)

Handler = Callable[[InboundEvent, Any], Awaitable[None]]


class Dispatcher:
    """
    Handler registry plus the error boundary of every update.

    ctx is the service container passed to each handler.
    """

    def __init__(self, ctx):
        self.ctx = ctx
        self._commands: Dict[str, Handler] = {}
        self._texts: Dict[str, Handler] = {}
        self._buttons: Dict[str, Handler] = {}
        self._photo: Optional[Handler] = None
        self._fallback_text: Optional[Handler] = None
        self._fallback_command: Optional[Handler] = None

    # ============================================================
    # REGISTRATION
    # ============================================================

    def on_command(self, name: str, handler: Handler) -> None:
        self._commands[name.lstrip("/").lower()] = handler

    def on_text(self, label: Optional[str], handler: Handler) -> None:
        """Exact-match label (menu buttons); None registers the free-text handler."""
        if label is None:
            self._fallback_text = handler
        else:
            self._texts[label] = handler

    def on_photo(self, handler: Handler) -> None:
        self._photo = handler

    def on_button(self, action: str, handler: Handler) -> None:
        self._buttons[action] = handler

    def on_unknown_command(self, handler: Handler) -> None:
        self._fallback_command = handler

    # ============================================================
    # DISPATCH
    # ============================================================

    async def feed_update(self, payload: Dict[str, Any]) -> None:
        """Entry point for raw Telegram updates."""
        try:
            event = parse_update(payload)
        except ValueError as e:
            logger.warning(f"Malformed update {payload.get('update_id')}: {e}")
            return

        if event is None:
            logger.debug(f"Ignoring update {payload.get('update_id')}")
            return

        await self.dispatch(event)

    async def dispatch(self, event: InboundEvent) -> None:
        """
        Routes one event. Never raises: failures are logged and the user
        gets a generic error message.
        """
        with LogContext(user_id=event.user_id, chat_id=event.chat_id):
            logger.info(f"📨 {event.kind} from {event.user_id}: {self._preview(event)}")

            try:
                async with self.ctx.sessions.serialize(event.user_id):
                    await self._route(event)
            except MarketplaceError as e:
                logger.error(f"Handler failed ({e.code}): {e.message}")
                await self._report_failure(event)
            except Exception as e:
                logger.error(f"❌ Dispatcher error: {e}", exc_info=True)
                await self._report_failure(event)

    async def _route(self, event: InboundEvent) -> None:
        if event.kind == "button":
            parts = unpack(event.data)
            handler = self._buttons.get(parts[0]) if parts else None
            if handler is None:
                await self.ctx.transport.answer_interaction(event.callback_id)
                return
            await handler(event, self.ctx)
            return

        # menus and flows only run in private chats
        if not event.is_private:
            return

        if event.kind == "command":
            handler = self._commands.get(event.command) or self._fallback_command
        elif event.kind == "photo":
            handler = self._photo
        else:
            handler = self._texts.get(event.text.strip()) or self._fallback_text

        if handler is None:
            logger.debug(f"No handler for {event.kind}")
            return

        logger.debug(f"📞 Calling handler: {handler.__name__}")
        await handler(event, self.ctx)

    async def _report_failure(self, event: InboundEvent) -> None:
        try:
            if event.kind == "button" and event.callback_id:
                await self.ctx.transport.answer_interaction(
                    event.callback_id, GENERIC_ERROR_MESSAGE, show_alert=True
                )
            else:
                await self.ctx.transport.send_text(event.chat_id, GENERIC_ERROR_MESSAGE)
        except TransportError as e:
            logger.warning(f"Could not deliver error message: {e.message}")

    @staticmethod
    def _preview(event: InboundEvent) -> str:
        if event.kind == "photo":
            return "[photo]"
        if event.kind == "button":
            return event.data or ""
        return event.text[:50]


def build_dispatcher(ctx) -> Dispatcher:
    """Registers every command, menu label and button action."""
    from app.flow.handlers import admin, buyer, moderation, registration, start, submission
    from utils.constants import (
        BUTTON_ADD_PRODUCT,
        BUTTON_CANCEL,
        BUTTON_HELP,
        BUTTON_MY_PRODUCTS,
    )
    from utils.telegram_utils import Action

    dispatcher = Dispatcher(ctx)

    dispatcher.on_command("start", start.handle_start)
    dispatcher.on_command("help", start.handle_help)
    dispatcher.on_command("myproducts", start.handle_my_products)
    dispatcher.on_command("sell", submission.handle_start_submission)
    dispatcher.on_command("addproduct", submission.handle_start_submission)
    dispatcher.on_command("done", submission.handle_done)
    dispatcher.on_command("cancel", submission.handle_cancel)
    dispatcher.on_command("verify", registration.handle_start_verification)
    dispatcher.on_command("pending", moderation.handle_pending)
    dispatcher.on_command("broadcast", admin.handle_broadcast)
    dispatcher.on_command("broadcast_dept", admin.handle_broadcast_department)
    dispatcher.on_command("broadcast_members", admin.handle_broadcast_members)
    dispatcher.on_unknown_command(start.handle_unknown)

    dispatcher.on_text(BUTTON_ADD_PRODUCT, submission.handle_start_submission)
    dispatcher.on_text(BUTTON_MY_PRODUCTS, start.handle_my_products)
    dispatcher.on_text(BUTTON_HELP, start.handle_help)
    dispatcher.on_text(BUTTON_CANCEL, submission.handle_cancel)
    dispatcher.on_text(None, submission.handle_text)

    dispatcher.on_photo(submission.handle_photo)

    dispatcher.on_button(Action.APPROVE, moderation.handle_approve)
    dispatcher.on_button(Action.REJECT, moderation.handle_reject)
    dispatcher.on_button(Action.BUY, buyer.handle_buy)
    dispatcher.on_button(Action.CONTACT, buyer.handle_contact)
    dispatcher.on_button(Action.SOLD, buyer.handle_mark_sold)
    dispatcher.on_button(Action.CATEGORY, submission.handle_category_button)

    logger.info(f"Dispatcher ready: {len(dispatcher._commands)} commands, {len(dispatcher._buttons)} button actions")
    return dispatcher
