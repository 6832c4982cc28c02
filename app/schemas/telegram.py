"""
app/schemas/telegram.py

Purpose: Telegram update payload schemas and parsers

- Normalizes message / callback_query updates into InboundEvent
- Splits commands from their arguments ("/broadcast_dept CSE\nhi")
- Picks the largest photo size
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, Optional, Literal

from app.models.user import Sender


EventKind = Literal["text", "photo", "button", "command"]


class InboundEvent(BaseModel):
    """
    Normalized update for internal processing.
    """
    kind: EventKind = Field(..., description="What the user did")
    update_id: Optional[int] = None
    chat_id: int = Field(..., description="Chat the update came from")
    chat_type: str = Field(default="private", description="private, group, supergroup or channel")
    sender: Sender
    message_id: Optional[int] = None

    text: str = ""
    command: Optional[str] = None
    args: str = ""

    photo: Optional[str] = Field(default=None, description="file_id of the largest photo size")
    media_group_id: Optional[str] = None

    callback_id: Optional[str] = None
    data: Optional[str] = None

    @property
    def user_id(self) -> int:
        return self.sender.id

    @property
    def is_private(self) -> bool:
        return self.chat_type == "private"

    class Config:
        json_schema_extra = {
            "example": {
                "kind": "command",
                "chat_id": 123456789,
                "sender": {"id": 123456789, "first_name": "Abebe"},
                "text": "/start",
                "command": "start",
            }
        }


def split_command(text: str) -> Optional[tuple]:
    """
    Splits "/cmd@BotName args" into ("cmd", "args").
    Returns None when the text is not a command.
    """
    if not text.startswith("/"):
        return None

    head, _, rest = text.partition(" ")
    if "\n" in head:
        head, _, tail = head.partition("\n")
        rest = f"{tail}\n{rest}" if rest else tail

    name = head[1:].split("@", 1)[0].lower()
    if not name:
        return None
    return name, rest.strip()


def parse_update(payload: Dict[str, Any]) -> Optional[InboundEvent]:
    """
    Parses a Telegram Update.

    Telegram format (JSON):
    {
        "update_id": 10000,
        "message": {
            "message_id": 1,
            "from": {"id": 123, "first_name": "Abebe", "username": "abebe"},
            "chat": {"id": 123, "type": "private"},
            "text": "/start"
        }
    }

    Returns:
        InboundEvent, or None for update types the bot ignores
        (edited messages, channel posts, stickers, ...)
    """
    update_id = payload.get("update_id")

    query = payload.get("callback_query")
    if query:
        message = query.get("message") or {}
        chat = message.get("chat") or {}
        sender = Sender(**_sender_fields(query.get("from") or {}))
        return InboundEvent(
            kind="button",
            update_id=update_id,
            chat_id=chat.get("id", sender.id),
            chat_type=chat.get("type", "private"),
            sender=sender,
            message_id=message.get("message_id"),
            callback_id=str(query.get("id", "")),
            data=query.get("data"),
        )

    message = payload.get("message")
    if not message or "from" not in message:
        return None

    chat = message.get("chat") or {}
    sender = Sender(**_sender_fields(message["from"]))
    common = dict(
        update_id=update_id,
        chat_id=chat.get("id", sender.id),
        chat_type=chat.get("type", "private"),
        sender=sender,
        message_id=message.get("message_id"),
    )

    photos = message.get("photo")
    if photos:
        largest = max(photos, key=lambda p: p.get("file_size") or p.get("width", 0) * p.get("height", 0))
        return InboundEvent(
            kind="photo",
            photo=largest["file_id"],
            text=message.get("caption") or "",
            media_group_id=message.get("media_group_id"),
            **common,
        )

    text = message.get("text")
    if text is None:
        return None

    command = split_command(text.strip())
    if command:
        name, args = command
        return InboundEvent(kind="command", text=text, command=name, args=args, **common)

    return InboundEvent(kind="text", text=text, **common)


def _sender_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": raw.get("id"),
        "username": raw.get("username"),
        "first_name": raw.get("first_name"),
        "last_name": raw.get("last_name"),
    }
