"""
app/services/broadcast_service.py

Purpose: Admin announcements

- Sends one message to every known user (optionally filtered)
- Keeps a single progress message updated with the running tally
"""

from dataclasses import dataclass
from typing import Optional

from app.core.exceptions import TransportError
from app.core.logging import get_logger, LogContext
from app.db.repositories import UserRepository
from app.services.delivery import DeliveryReport, deliver_sequentially
from app.services.telegram_service import Transport
from app.services.user_service import UserService
from utils.constants import (
    BROADCAST_DONE_MESSAGE,
    BROADCAST_PROGRESS_MESSAGE,
    BROADCAST_TEMPLATE,
)
from utils.telegram_utils import escape

logger = get_logger(__name__)


@dataclass(frozen=True)
class BroadcastFilter:
    department: Optional[str] = None
    joined_only: bool = False


class BroadcastService:

    def __init__(
        self,
        users: UserRepository,
        user_service: UserService,
        transport: Transport,
        send_delay: float = 0.0,
        progress_every: int = 10,
    ):
        self.users = users
        self.user_service = user_service
        self.transport = transport
        self.send_delay = send_delay
        self.progress_every = progress_every

    async def broadcast(
        self,
        admin_id: int,
        chat_id: int,
        message: str,
        audience: BroadcastFilter = BroadcastFilter(),
    ) -> DeliveryReport:
        """
        Sends message to the selected users, one at a time.

        Args:
            admin_id: Who asked for the broadcast
            chat_id: Where the progress message is shown
            message: Announcement text (sent HTML-escaped)
            audience: Department and/or channel membership filter

        Raises:
            AuthorizationError: If admin_id is not an admin
        """
        with LogContext(admin_id=admin_id):
            self.user_service.require_admin(admin_id)

            recipients = [
                user.telegram_id
                for user in await self.users.list_users(audience.department, audience.joined_only)
            ]
            total = len(recipients)
            logger.info(f"Broadcast started: {total} recipients ({audience})")

            progress_id = await self.transport.send_text(
                chat_id, BROADCAST_PROGRESS_MESSAGE.format(total=total, sent=0, failed=0)
            )

            async def update_progress(report: DeliveryReport):
                await self._edit(chat_id, progress_id, BROADCAST_PROGRESS_MESSAGE.format(
                    total=total, sent=report.succeeded, failed=report.failed
                ))

            text = BROADCAST_TEMPLATE.format(message=escape(message))

            async def send(user_id):
                return await self.transport.send_text(user_id, text)

            report = await deliver_sequentially(
                recipients,
                send,
                delay=self.send_delay,
                on_progress=update_progress,
                progress_every=self.progress_every,
            )

            await self._edit(chat_id, progress_id, BROADCAST_DONE_MESSAGE.format(
                sent=report.succeeded, failed=report.failed
            ))
            logger.info(f"Broadcast finished: {report.succeeded} sent, {report.failed} failed")
            return report

    async def _edit(self, chat_id: int, message_id: int, text: str) -> None:
        try:
            await self.transport.edit_message_text(chat_id, message_id, text)
        except TransportError as e:
            # "message is not modified" and similar
            logger.debug(f"Progress update skipped: {e.message}")
