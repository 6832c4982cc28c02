"""
app/flow/handlers/registration.py

Handles: /verify – Profile registration

- Asks for department, then year of study
- Saves both on the user record
"""

from app.core.exceptions import ValidationError
from app.core.logging import get_logger, LogContext
from app.flow.states import FlowStep, RegistrationStep
from app.schemas.telegram import InboundEvent
from app.services.session_service import Session
from utils.constants import (
    ASK_DEPARTMENT_MESSAGE,
    ASK_YEAR_MESSAGE,
    EMPTY_PROFILE_FIELD_MESSAGE,
    VERIFICATION_SAVED_MESSAGE,
)
from utils.telegram_utils import cancel_keyboard, main_menu_keyboard

logger = get_logger(__name__)


def step_prompt(step: FlowStep) -> str:
    if step == RegistrationStep.AWAITING_YEAR:
        return ASK_YEAR_MESSAGE
    return ASK_DEPARTMENT_MESSAGE


def _required(text: str) -> str:
    value = (text or "").strip()
    if not value:
        raise ValidationError(EMPTY_PROFILE_FIELD_MESSAGE)
    return value


async def handle_start_verification(event: InboundEvent, ctx) -> None:
    with LogContext(user_id=event.user_id, step=RegistrationStep.AWAITING_DEPARTMENT.value):
        await ctx.user_service.register(event.sender)

        session = ctx.sessions.start(event.user_id, RegistrationStep.AWAITING_DEPARTMENT)
        await ctx.transport.send_text(event.chat_id, ASK_DEPARTMENT_MESSAGE, reply_keyboard=cancel_keyboard())
        ctx.sessions.save(session)
        logger.info("Verification started")


async def handle_department(event: InboundEvent, ctx, session: Session) -> None:
    session.department = _required(event.text)
    moved = session.advance(RegistrationStep.AWAITING_YEAR)

    await ctx.transport.send_text(event.chat_id, ASK_YEAR_MESSAGE)
    ctx.sessions.save(moved)


async def handle_year(event: InboundEvent, ctx, session: Session) -> None:
    year = _required(event.text)

    await ctx.user_service.save_profile(event.user_id, session.department, year)
    ctx.sessions.clear(event.user_id)

    await ctx.transport.send_text(event.chat_id, VERIFICATION_SAVED_MESSAGE, reply_keyboard=main_menu_keyboard())
