"""
app/services/user_service.py

Purpose: User data management

- Register / refresh users from Telegram senders
- Channel membership checks
- Admin allowlist checks
- Profile (department, year) updates
"""

from typing import FrozenSet, Optional

from app.core.exceptions import AuthorizationError, TransportError
from app.core.logging import get_logger, LogContext
from app.db.repositories import UserRepository
from app.models.user import Sender, User
from app.services.telegram_service import Transport
from utils.constants import ACCESS_DENIED_MESSAGE

logger = get_logger(__name__)

MEMBER_STATUSES = {"member", "administrator", "creator"}


class UserService:

    def __init__(
        self,
        users: UserRepository,
        transport: Transport,
        admin_ids: FrozenSet[int],
        channel: str,
        require_membership: bool = True,
    ):
        self.users = users
        self.transport = transport
        self.admin_ids = admin_ids
        self.channel = channel
        self.require_membership = require_membership

    def is_admin(self, user_id: int) -> bool:
        return user_id in self.admin_ids

    def require_admin(self, user_id: int) -> None:
        """
        Raises:
            AuthorizationError: If user_id is not in the admin allowlist
        """
        if not self.is_admin(user_id):
            logger.warning("Admin action denied", extra={"user_id": user_id})
            raise AuthorizationError(ACCESS_DENIED_MESSAGE)

    async def register(self, sender: Sender) -> User:
        """
        Creates the user on first contact, refreshes name and handle otherwise.
        """
        with LogContext(user_id=sender.id):
            user = await self.users.upsert_from_sender(sender)
            logger.debug("User registered/refreshed")
            return user

    async def get(self, user_id: int) -> Optional[User]:
        return await self.users.get(user_id)

    async def check_membership(self, user_id: int) -> bool:
        """
        Asks Telegram whether the user is in the marketplace channel and
        stores the answer on the user.

        Always True when membership is not enforced. A failed lookup counts
        as "not a member".
        """
        if not self.require_membership:
            return True

        with LogContext(user_id=user_id):
            try:
                status = await self.transport.get_member_status(self.channel, user_id)
            except TransportError as e:
                logger.warning(f"Membership lookup failed: {e.message}")
                status = "left"

            joined = status in MEMBER_STATUSES
            await self.users.set_joined_channel(user_id, joined)
            logger.debug(f"Channel membership: {status}")
            return joined

    async def save_profile(self, user_id: int, department: str, year: str) -> bool:
        with LogContext(user_id=user_id):
            saved = await self.users.set_profile(user_id, department, year)
            if saved:
                logger.info(f"Profile saved: {department}, year {year}")
            return saved
