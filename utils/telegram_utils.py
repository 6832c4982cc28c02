"""
utils/telegram_utils.py

Purpose: Telegram message builders

- Inline / reply keyboard payloads
- Callback data packing ("action:arg")
- HTML escaping for captions
- Ready-made control rows (review, channel, category)
"""

import html
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from utils.constants import (
    BUTTON_APPROVE,
    BUTTON_REJECT,
    BUTTON_BUY,
    BUTTON_CONTACT,
    BUTTON_MARK_SOLD,
    BUTTON_SOLD,
    BUTTON_CANCEL,
    MAIN_MENU,
)

# Single callback_data format: "ACTION:arg1:arg2"
SEP = ":"

# Telegram limits
CAPTION_LIMIT = 1024
CALLBACK_DATA_LIMIT = 64


class Action:
    APPROVE = "approve"
    REJECT = "reject"
    BUY = "buy"
    CONTACT = "contact"
    SOLD = "sold"
    CATEGORY = "category"
    NOOP = "noop"


@dataclass(frozen=True)
class Button:
    """One inline button; exactly one of callback_data / url is set."""
    text: str
    callback_data: Optional[str] = None
    url: Optional[str] = None

    def to_payload(self) -> Dict[str, str]:
        payload = {"text": self.text}
        if self.url:
            payload["url"] = self.url
        else:
            payload["callback_data"] = self.callback_data or Action.NOOP
        return payload


Keyboard = List[List[Button]]


def pack(*parts: Any) -> str:
    data = SEP.join(str(p) for p in parts)
    if len(data.encode("utf-8")) > CALLBACK_DATA_LIMIT:
        raise ValueError(f"callback_data too long: {data!r}")
    return data


def unpack(data: Optional[str]) -> List[str]:
    return data.split(SEP) if data else []


def inline_keyboard_markup(buttons: Optional[Keyboard]) -> Dict[str, Any]:
    """
    Builds an InlineKeyboardMarkup payload.
    An empty keyboard removes the buttons of an existing message.
    """
    return {
        "inline_keyboard": [
            [button.to_payload() for button in row]
            for row in (buttons or [])
        ]
    }


def reply_keyboard_markup(rows: Sequence[Sequence[str]], one_time: bool = False) -> Dict[str, Any]:
    return {
        "keyboard": [[{"text": label} for label in row] for row in rows],
        "resize_keyboard": True,
        "one_time_keyboard": one_time,
    }


def main_menu_keyboard() -> Dict[str, Any]:
    return reply_keyboard_markup(MAIN_MENU)


def cancel_keyboard() -> Dict[str, Any]:
    return reply_keyboard_markup([[BUTTON_CANCEL]])


def escape(text: Optional[str]) -> str:
    """Escapes user supplied text for parse_mode=HTML."""
    if not text:
        return ""
    return html.escape(text, quote=False)


def truncate(text: str, limit: int = CAPTION_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def review_buttons(product_id: str) -> Keyboard:
    return [[
        Button(BUTTON_APPROVE, pack(Action.APPROVE, product_id)),
        Button(BUTTON_REJECT, pack(Action.REJECT, product_id)),
    ]]


def channel_buttons(product_id: str) -> Keyboard:
    return [[
        Button(BUTTON_BUY, pack(Action.BUY, product_id)),
        Button(BUTTON_CONTACT, pack(Action.CONTACT, product_id)),
    ]]


def sold_buttons() -> Keyboard:
    return [[Button(BUTTON_SOLD, Action.NOOP)]]


def mark_sold_buttons(product_id: str) -> Keyboard:
    return [[Button(BUTTON_MARK_SOLD, pack(Action.SOLD, product_id))]]


def category_buttons(categories: Sequence[str], per_row: int = 2) -> Keyboard:
    """Category picker; the callback carries the category index."""
    buttons = [
        Button(name, pack(Action.CATEGORY, index))
        for index, name in enumerate(categories)
    ]
    rows = [buttons[i:i + per_row] for i in range(0, len(buttons), per_row)]
    rows.append([Button(BUTTON_CANCEL, pack(Action.CATEGORY, "cancel"))])
    return rows


def user_link(user_id: int, label: str) -> str:
    return f'<a href="tg://user?id={user_id}">{escape(label)}</a>'


def decided_buttons(label: str) -> Keyboard:
    """Replaces review controls once another admin decided."""
    return [[Button(label, Action.NOOP)]]


def mention(user_id: int, username: Optional[str] = None, name: Optional[str] = None) -> str:
    """@username when known, otherwise a clickable tg:// link."""
    if username:
        return f"@{escape(username)}"
    return user_link(user_id, name or "user")
