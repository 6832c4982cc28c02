import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest

from app.core.config import Settings
from app.core.exceptions import TransportError
from app.db.memory import MemoryProductRepository, MemoryUserRepository
from app.flow.dispatcher import build_dispatcher
from app.services.container import build_container
from app.services.telegram_service import Transport

ADMINS = (9001, 9002, 9003)
CHANNEL = "@testmarket"
SELLER = 501
BUYER = 502


@dataclass
class Call:
    method: str
    chat_id: Any
    kwargs: Dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.kwargs.get("text") or self.kwargs.get("caption") or ""


class FakeTransport(Transport):
    """Records every outbound call; chats in fail_chats raise TransportError."""

    def __init__(self):
        self.calls: List[Call] = []
        self.fail_chats = set()
        self.fail_methods = set()
        self.member_status = "member"
        self._ids = itertools.count(1000)

    def _record(self, method: str, chat_id: Any, **kwargs) -> int:
        if chat_id in self.fail_chats or method in self.fail_methods:
            raise TransportError(f"{method} to {chat_id} failed")
        self.calls.append(Call(method, chat_id, kwargs))
        return next(self._ids)

    async def send_text(self, chat_id, text, buttons=None, reply_keyboard=None):
        return self._record("send_text", chat_id, text=text, buttons=buttons, reply_keyboard=reply_keyboard)

    async def send_photo(self, chat_id, media_ref, caption=None, buttons=None):
        return self._record("send_photo", chat_id, media_ref=media_ref, caption=caption, buttons=buttons)

    async def send_media_group(self, chat_id, items):
        self._record("send_media_group", chat_id, items=list(items))
        return [next(self._ids) for _ in items]

    async def edit_message_controls(self, chat_id, message_id, buttons):
        self._record("edit_message_controls", chat_id, message_id=message_id, buttons=buttons)

    async def edit_message_text(self, chat_id, message_id, text):
        self._record("edit_message_text", chat_id, message_id=message_id, text=text)

    async def answer_interaction(self, interaction_id, text=None, show_alert=False):
        self._record("answer_interaction", None, interaction_id=interaction_id, text=text, show_alert=show_alert)

    async def get_member_status(self, chat_id, user_id):
        self._record("get_member_status", chat_id, user_id=user_id)
        return self.member_status

    # helpers

    def sent(self, chat_id=None, method=None) -> List[Call]:
        return [
            c for c in self.calls
            if (chat_id is None or c.chat_id == chat_id) and (method is None or c.method == method)
        ]

    def texts_to(self, chat_id) -> List[str]:
        return [c.text for c in self.sent(chat_id) if c.method in ("send_text", "send_photo")]

    def last_text_to(self, chat_id) -> str:
        texts = self.texts_to(chat_id)
        return texts[-1] if texts else ""

    def answers(self) -> List[Call]:
        return self.sent(method="answer_interaction")

    def reset(self):
        self.calls.clear()


def make_settings(**overrides) -> Settings:
    values = dict(
        ENVIRONMENT="development",
        BOT_TOKEN="123:test",
        ADMIN_IDS=",".join(str(a) for a in ADMINS),
        CHANNEL_USERNAME=CHANNEL,
        REQUIRE_CHANNEL_MEMBERSHIP=True,
        STORAGE_BACKEND="memory",
        SEND_DELAY_SECONDS=0,
        SESSION_TIMEOUT_MINUTES=60,
        WEBHOOK_URL=None,
        WEBHOOK_SECRET=None,
        USE_POLLING=False,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


class Bot:
    """Feeds raw Telegram updates through the dispatcher on one event loop."""

    admins = ADMINS
    channel = CHANNEL
    seller = SELLER
    buyer = BUYER

    def __init__(self, ctx, loop):
        self.ctx = ctx
        self.dispatcher = build_dispatcher(ctx)
        self.loop = loop
        self._update_ids = itertools.count(1)
        self._message_ids = itertools.count(1)

    def run(self, coro):
        return self.loop.run_until_complete(coro)

    @staticmethod
    def user(user_id: int) -> Dict[str, Any]:
        return {"id": user_id, "is_bot": False, "first_name": f"User{user_id}", "username": f"user{user_id}"}

    def message_update(self, user_id: int, **message) -> Dict[str, Any]:
        return {
            "update_id": next(self._update_ids),
            "message": {
                "message_id": next(self._message_ids),
                "from": self.user(user_id),
                "chat": {"id": user_id, "type": "private"},
                **message,
            },
        }

    def photo_update(self, user_id: int, file_id: str) -> Dict[str, Any]:
        return self.message_update(user_id, photo=[
            {"file_id": f"{file_id}-small", "width": 90, "height": 90},
            {"file_id": file_id, "width": 1280, "height": 960},
        ])

    def button_update(self, user_id: int, data: str, chat_id: Optional[int] = None,
                      chat_type: str = "private", message_id: int = 1) -> Dict[str, Any]:
        return {
            "update_id": next(self._update_ids),
            "callback_query": {
                "id": f"cb{next(self._update_ids)}",
                "from": self.user(user_id),
                "data": data,
                "message": {
                    "message_id": message_id,
                    "chat": {"id": chat_id if chat_id is not None else user_id, "type": chat_type},
                },
            },
        }

    def text(self, user_id: int, text: str):
        self.run(self.dispatcher.feed_update(self.message_update(user_id, text=text)))

    def photo(self, user_id: int, file_id: str):
        self.run(self.dispatcher.feed_update(self.photo_update(user_id, file_id)))

    def button(self, user_id: int, data: str, **kwargs):
        self.run(self.dispatcher.feed_update(self.button_update(user_id, data, **kwargs)))

    def session(self, user_id: int):
        return self.ctx.sessions.get(user_id)

    def products(self):
        return self.run(self.ctx.products.list_by_seller(SELLER))

    def submit_product(self, user_id: int = SELLER, images=("P1",), title="Calculus Textbook",
                       price="800", description="skip", category="Academic Books"):
        """Runs the whole submission flow and returns the created product."""
        before = {p.id for p in self.run(self.ctx.products.list_by_seller(user_id))}
        self.text(user_id, "/sell")
        for image in images:
            self.photo(user_id, image)
        if len(images) < self.ctx.settings.MAX_PRODUCT_IMAGES:
            self.text(user_id, "done")
        self.text(user_id, title)
        self.text(user_id, price)
        self.text(user_id, description)
        self.text(user_id, category)
        created = [p for p in self.run(self.ctx.products.list_by_seller(user_id)) if p.id not in before]
        assert len(created) == 1, "submission did not create a product"
        return created[0]


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def ctx(settings, transport):
    return build_container(settings, transport, MemoryUserRepository(), MemoryProductRepository())


@pytest.fixture
def loop():
    event_loop = asyncio.new_event_loop()
    yield event_loop
    event_loop.close()


@pytest.fixture
def bot(ctx, loop):
    return Bot(ctx, loop)


@pytest.fixture
def make_app(transport):
    """create_app() with test settings and the fake transport."""
    from app.main import create_app

    def factory(**overrides):
        return create_app(make_settings(**overrides), transport=transport)

    return factory
