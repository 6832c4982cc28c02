import pytest

from app.models.product import ProductStatus
from utils.constants import (
    BUYER_NOTIFIED_ACK,
    CONTACT_SENT_ACK,
    OWN_PRODUCT_MESSAGE,
    PRODUCT_UNAVAILABLE_MESSAGE,
    START_BOT_FIRST_MESSAGE,
)

CHANNEL_CHAT = -1001234


@pytest.fixture
def listed(bot, transport):
    """An approved product, with the transport log cleared."""
    product = bot.submit_product(title="Desk Lamp", price="350")
    bot.button(bot.admins[0], f"approve:{product.id}")
    transport.reset()
    return product


def press(bot, user_id, action, product):
    bot.button(user_id, f"{action}:{product.id}", chat_id=CHANNEL_CHAT, chat_type="channel")


def last_answer(transport):
    return transport.answers()[-1].kwargs


def test_buy_introduces_buyer_and_seller(bot, transport, listed):
    press(bot, bot.buyer, "buy", listed)

    to_buyer = transport.last_text_to(bot.buyer)
    assert "Desk Lamp" in to_buyer
    assert f"@user{bot.seller}" in to_buyer

    to_seller = transport.last_text_to(bot.seller)
    assert "wants to buy" in to_seller
    assert f"@user{bot.buyer}" in to_seller
    assert "350" in to_seller

    assert last_answer(transport)["text"] == BUYER_NOTIFIED_ACK
    product = bot.run(bot.ctx.products.get(listed.id))
    assert product.status == ProductStatus.APPROVED


def test_buy_registers_the_buyer(bot, listed):
    press(bot, bot.buyer, "buy", listed)
    assert bot.run(bot.ctx.users.get(bot.buyer)) is not None


def test_contact_only_messages_the_buyer(bot, transport, listed):
    press(bot, bot.buyer, "contact", listed)

    assert f"@user{bot.seller}" in transport.last_text_to(bot.buyer)
    assert transport.texts_to(bot.seller) == []
    assert last_answer(transport)["text"] == CONTACT_SENT_ACK


@pytest.mark.parametrize("action", ["buy", "contact"])
def test_seller_cannot_act_on_own_listing(bot, transport, listed, action):
    press(bot, bot.seller, action, listed)

    answer = last_answer(transport)
    assert answer["text"] == OWN_PRODUCT_MESSAGE
    assert answer["show_alert"] is True
    assert transport.texts_to(bot.seller) == []


def test_buyer_who_never_started_the_bot(bot, transport, listed):
    transport.fail_chats.add(bot.buyer)

    press(bot, bot.buyer, "buy", listed)

    assert last_answer(transport)["text"] == START_BOT_FIRST_MESSAGE
    assert transport.texts_to(bot.seller) == []


def test_unreachable_seller_does_not_fail_the_buyer(bot, transport, listed):
    transport.fail_chats.add(bot.seller)

    press(bot, bot.buyer, "buy", listed)

    assert "Desk Lamp" in transport.last_text_to(bot.buyer)
    assert last_answer(transport)["text"] == BUYER_NOTIFIED_ACK


def test_sold_products_refuse_buyers(bot, transport, listed):
    bot.run(bot.ctx.moderation.mark_sold(listed.id, bot.seller))

    press(bot, bot.buyer, "buy", listed)

    assert last_answer(transport)["text"] == PRODUCT_UNAVAILABLE_MESSAGE
    assert transport.texts_to(bot.buyer) == []


def test_pending_products_refuse_buyers(bot, transport):
    product = bot.submit_product()

    press(bot, bot.buyer, "contact", product)

    assert last_answer(transport)["text"] == PRODUCT_UNAVAILABLE_MESSAGE


def test_unknown_button_action_is_acknowledged(bot, transport):
    bot.button(bot.buyer, "noop")

    answer = last_answer(transport)
    assert answer["text"] is None
