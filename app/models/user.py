"""
app/models/user.py

Purpose: User document model

- Telegram user id (primary key)
- Display name and handle, refreshed on every /start
- Optional registration profile (department, year)
- Channel membership flag
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class User(BaseModel):
    """A marketplace participant (buyer, seller or admin)."""

    telegram_id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    department: Optional[str] = None
    year: Optional[str] = None
    joined_channel: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        if parts:
            return " ".join(parts)
        if self.username:
            return f"@{self.username}"
        return str(self.telegram_id)

    @property
    def handle(self) -> str:
        """@username when available, otherwise a tg:// deep link."""
        if self.username:
            return f"@{self.username}"
        return f"tg://user?id={self.telegram_id}"

    @property
    def is_verified(self) -> bool:
        return bool(self.department and self.year)


class Sender(BaseModel):
    """Identity of whoever sent an update, as reported by Telegram."""

    id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
