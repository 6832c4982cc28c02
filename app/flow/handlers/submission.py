"""
app/flow/handlers/submission.py

Handles: STEPS 1-5 – Product submission

- /sell, /addproduct or "➕ Add Product" starts a fresh draft
- Photos (1-5), title, price, description, category
- Creates the pending product and notifies admins
- /cancel or "❌ Cancel" drops the draft

A step's new state is saved only after its reply was delivered, so a failed
send leaves the user at the step they were in.
"""

from typing import Awaitable, Callable, Dict

from app.core.exceptions import MarketplaceError, TransportError, ValidationError
from app.core.logging import get_logger, LogContext
from app.flow.handlers import registration
from app.flow.states import (
    FlowStep,
    RegistrationStep,
    SubmissionStep,
    get_progress_message,
)
from app.schemas.telegram import InboundEvent
from app.services.session_service import Session
from utils.constants import (
    ASK_CATEGORY_MESSAGE,
    ASK_DESCRIPTION_MESSAGE,
    ASK_IMAGES_MESSAGE,
    ASK_PRICE_MESSAGE,
    ASK_TITLE_MESSAGE,
    CANCELLED_MESSAGE,
    FORM_EXPIRED_MESSAGE,
    JOIN_CHANNEL_FIRST_MESSAGE,
    LAST_PHOTO_RECEIVED_MESSAGE,
    MAX_IMAGES_MESSAGE,
    NEED_ONE_IMAGE_MESSAGE,
    NOTHING_TO_CANCEL_MESSAGE,
    PHOTO_NOT_EXPECTED_MESSAGE,
    PHOTO_RECEIVED_MESSAGE,
    PRODUCT_CATEGORIES,
    SUBMITTED_MESSAGE,
    UNKNOWN_INPUT_MESSAGE,
)
from utils.telegram_utils import (
    cancel_keyboard,
    category_buttons,
    escape,
    main_menu_keyboard,
    unpack,
)
from utils.validation_utils import (
    is_done_keyword,
    normalize_category,
    normalize_description,
    normalize_title,
    parse_price,
)

logger = get_logger(__name__)

StepHandler = Callable[[InboundEvent, object, Session], Awaitable[None]]


def step_prompt(step: FlowStep, max_images: int) -> str:
    """The message asking for a step's input."""
    progress = get_progress_message(step)

    if step == SubmissionStep.AWAITING_IMAGES:
        return ASK_IMAGES_MESSAGE.format(progress=progress, max_images=max_images)
    if step == SubmissionStep.AWAITING_TITLE:
        return ASK_TITLE_MESSAGE.format(progress=progress)
    if step == SubmissionStep.AWAITING_PRICE:
        return ASK_PRICE_MESSAGE.format(progress=progress)
    if step == SubmissionStep.AWAITING_DESCRIPTION:
        return ASK_DESCRIPTION_MESSAGE.format(progress=progress)
    if step == SubmissionStep.AWAITING_CATEGORY:
        return ASK_CATEGORY_MESSAGE.format(progress=progress)
    return registration.step_prompt(step)


async def _move_to(event: InboundEvent, ctx, session: Session, step: SubmissionStep, lead: str = "") -> None:
    """Sends the next step's prompt, then commits the session at that step."""
    moved = session.advance(step)
    text = step_prompt(step, ctx.settings.MAX_PRODUCT_IMAGES)
    if lead:
        text = f"{lead}\n\n{text}"

    buttons = category_buttons(PRODUCT_CATEGORIES) if step == SubmissionStep.AWAITING_CATEGORY else None
    await ctx.transport.send_text(event.chat_id, text, buttons=buttons)
    ctx.sessions.save(moved)
    logger.info(f"➡️ {session.step.value} -> {step.value}")


# ============================================================
# ENTRY & CANCEL
# ============================================================

async def handle_start_submission(event: InboundEvent, ctx) -> None:
    """
    Starts a new product draft, replacing any live session.
    Channel membership is checked first when enforced.
    """
    with LogContext(user_id=event.user_id, step=SubmissionStep.AWAITING_IMAGES.value):
        await ctx.user_service.register(event.sender)

        if not await ctx.user_service.check_membership(event.user_id):
            logger.info("Submission refused: not a channel member")
            await ctx.transport.send_text(
                event.chat_id, JOIN_CHANNEL_FIRST_MESSAGE.format(channel=ctx.channel)
            )
            return

        session = ctx.sessions.start(event.user_id, SubmissionStep.IDLE).advance(SubmissionStep.AWAITING_IMAGES)
        await ctx.transport.send_text(
            event.chat_id,
            step_prompt(SubmissionStep.AWAITING_IMAGES, ctx.settings.MAX_PRODUCT_IMAGES),
            reply_keyboard=cancel_keyboard(),
        )
        ctx.sessions.save(session)
        logger.info("Submission started")


async def handle_done(event: InboundEvent, ctx) -> None:
    """/done only means something while photos are being collected."""
    session = ctx.sessions.get(event.user_id)
    if session is None or session.step != SubmissionStep.AWAITING_IMAGES:
        await ctx.transport.send_text(event.chat_id, UNKNOWN_INPUT_MESSAGE, reply_keyboard=main_menu_keyboard())
        return

    with LogContext(user_id=event.user_id, step=session.step.value):
        if not session.draft.images:
            await ctx.transport.send_text(event.chat_id, NEED_ONE_IMAGE_MESSAGE)
            return
        await _move_to(event, ctx, session, SubmissionStep.AWAITING_TITLE)


async def handle_cancel(event: InboundEvent, ctx) -> None:
    with LogContext(user_id=event.user_id):
        if ctx.sessions.clear(event.user_id):
            logger.info("Flow cancelled")
            text = CANCELLED_MESSAGE
        else:
            text = NOTHING_TO_CANCEL_MESSAGE
        await ctx.transport.send_text(event.chat_id, text, reply_keyboard=main_menu_keyboard())


# ============================================================
# PHOTOS
# ============================================================

async def handle_photo(event: InboundEvent, ctx) -> None:
    """
    Appends the photo while awaiting images (up to the limit; reaching it
    moves on to the title). In any other step nothing is stored.
    """
    session = ctx.sessions.get(event.user_id)
    if session is None:
        await ctx.transport.send_text(event.chat_id, UNKNOWN_INPUT_MESSAGE, reply_keyboard=main_menu_keyboard())
        return

    max_images = ctx.settings.MAX_PRODUCT_IMAGES
    images = session.draft.images

    with LogContext(user_id=event.user_id, step=session.step.value):
        if len(images) >= max_images:
            logger.info("Photo over the limit ignored")
            await ctx.transport.send_text(event.chat_id, MAX_IMAGES_MESSAGE.format(max_images=max_images))
            return

        if session.step != SubmissionStep.AWAITING_IMAGES:
            await ctx.transport.send_text(
                event.chat_id,
                PHOTO_NOT_EXPECTED_MESSAGE.format(prompt=step_prompt(session.step, max_images)),
            )
            return

        images.append(event.photo)
        count = len(images)
        logger.info(f"📸 Photo {count}/{max_images} received")

        if count >= max_images:
            lead = LAST_PHOTO_RECEIVED_MESSAGE.format(count=count, max_images=max_images)
            await _move_to(event, ctx, session, SubmissionStep.AWAITING_TITLE, lead=lead)
            return

        await ctx.transport.send_text(
            event.chat_id, PHOTO_RECEIVED_MESSAGE.format(count=count, max_images=max_images)
        )
        ctx.sessions.save(session)


# ============================================================
# TEXT STEPS
# ============================================================

async def handle_images_text(event: InboundEvent, ctx, session: Session) -> None:
    """Only done/next advance; any other text is ignored."""
    if not is_done_keyword(event.text):
        logger.debug("Ignoring text while awaiting images")
        return

    if not session.draft.images:
        raise ValidationError(NEED_ONE_IMAGE_MESSAGE)

    await _move_to(event, ctx, session, SubmissionStep.AWAITING_TITLE)


async def handle_title(event: InboundEvent, ctx, session: Session) -> None:
    session.draft.title = normalize_title(event.text)
    await _move_to(event, ctx, session, SubmissionStep.AWAITING_PRICE)


async def handle_price(event: InboundEvent, ctx, session: Session) -> None:
    session.draft.price = parse_price(event.text)
    await _move_to(event, ctx, session, SubmissionStep.AWAITING_DESCRIPTION)


async def handle_description(event: InboundEvent, ctx, session: Session) -> None:
    session.draft.description = normalize_description(event.text)
    await _move_to(event, ctx, session, SubmissionStep.AWAITING_CATEGORY)


async def handle_category(event: InboundEvent, ctx, session: Session) -> None:
    await submit(event, ctx, session, normalize_category(event.text, PRODUCT_CATEGORIES))


async def handle_category_button(event: InboundEvent, ctx) -> None:
    """Category picked from the inline keyboard ("category:<index>")."""
    parts = unpack(event.data)
    choice = parts[1] if len(parts) > 1 else ""

    session = ctx.sessions.get(event.user_id)
    if session is None or session.step != SubmissionStep.AWAITING_CATEGORY:
        await ctx.transport.answer_interaction(event.callback_id, FORM_EXPIRED_MESSAGE)
        return

    await ctx.transport.answer_interaction(event.callback_id)

    if choice == "cancel":
        await handle_cancel(event, ctx)
        return

    try:
        category = PRODUCT_CATEGORIES[int(choice)]
    except (ValueError, IndexError):
        category = normalize_category(None, PRODUCT_CATEGORIES)

    await submit(event, ctx, session, category)


async def submit(event: InboundEvent, ctx, session: Session, category: str) -> None:
    """
    Creates the pending product, clears the session, confirms to the seller
    and fans the review request out to the admins.
    """
    session.draft.category = category
    session = session.advance(SubmissionStep.SUBMITTED)

    with LogContext(user_id=event.user_id, step=SubmissionStep.SUBMITTED.value):
        product = await ctx.products.create(session.draft, event.user_id)
        ctx.sessions.clear(event.user_id)
        logger.info(f"✅ Product submitted: {product.id}")

        try:
            await ctx.transport.send_text(
                event.chat_id,
                SUBMITTED_MESSAGE.format(title=escape(product.title), channel=ctx.channel),
                reply_keyboard=main_menu_keyboard(),
            )
        except TransportError as e:
            logger.warning(f"Submission confirmation not delivered: {e.message}")

        try:
            await ctx.moderation.notify_admins(product)
        except MarketplaceError as e:
            logger.error(f"Admin notification failed for {product.id}: {e.message}")


# Every step a live session can be in must appear here
STEP_HANDLERS: Dict[FlowStep, StepHandler] = {
    SubmissionStep.AWAITING_IMAGES: handle_images_text,
    SubmissionStep.AWAITING_TITLE: handle_title,
    SubmissionStep.AWAITING_PRICE: handle_price,
    SubmissionStep.AWAITING_DESCRIPTION: handle_description,
    SubmissionStep.AWAITING_CATEGORY: handle_category,
    RegistrationStep.AWAITING_DEPARTMENT: registration.handle_department,
    RegistrationStep.AWAITING_YEAR: registration.handle_year,
}


async def handle_text(event: InboundEvent, ctx) -> None:
    """
    Free text: routed to the handler of the user's current step.
    Invalid input gets the step's corrective prompt and no state change.
    """
    session = ctx.sessions.get(event.user_id)
    if session is None:
        await ctx.transport.send_text(event.chat_id, UNKNOWN_INPUT_MESSAGE, reply_keyboard=main_menu_keyboard())
        return

    handler = STEP_HANDLERS.get(session.step)
    if handler is None:
        logger.error(f"No handler for step {session.step.value}, dropping session", extra={"user_id": event.user_id})
        ctx.sessions.clear(event.user_id)
        raise MarketplaceError(f"Unhandled step {session.step.value}")

    with LogContext(user_id=event.user_id, step=session.step.value):
        try:
            await handler(event, ctx, session)
        except ValidationError as e:
            logger.info(f"Invalid input: {e.message}")
            await ctx.transport.send_text(event.chat_id, e.message)
