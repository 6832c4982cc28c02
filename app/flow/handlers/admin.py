"""
app/flow/handlers/admin.py

Handles: broadcast commands (admins only)

- /broadcast <message>             all known users
- /broadcast_dept <dept>\\n<message> one department
- /broadcast_members <message>     channel members only
"""

from app.core.exceptions import AuthorizationError
from app.schemas.telegram import InboundEvent
from app.services.broadcast_service import BroadcastFilter
from utils.constants import ACCESS_DENIED_MESSAGE, BROADCAST_USAGE_MESSAGE


async def _run(event: InboundEvent, ctx, message: str, audience: BroadcastFilter) -> None:
    if not message.strip():
        usage = BROADCAST_USAGE_MESSAGE if ctx.user_service.is_admin(event.user_id) else ACCESS_DENIED_MESSAGE
        await ctx.transport.send_text(event.chat_id, usage)
        return

    try:
        await ctx.broadcasts.broadcast(event.user_id, event.chat_id, message.strip(), audience)
    except AuthorizationError as e:
        await ctx.transport.send_text(event.chat_id, e.message)


async def handle_broadcast(event: InboundEvent, ctx) -> None:
    await _run(event, ctx, event.args, BroadcastFilter())


async def handle_broadcast_department(event: InboundEvent, ctx) -> None:
    department, _, message = event.args.partition("\n")
    if not department.strip():
        message = ""
    await _run(event, ctx, message, BroadcastFilter(department=department.strip()))


async def handle_broadcast_members(event: InboundEvent, ctx) -> None:
    await _run(event, ctx, event.args, BroadcastFilter(joined_only=True))
