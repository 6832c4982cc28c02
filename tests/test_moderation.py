import asyncio

import pytest

from app.core.exceptions import NotFoundError, StorageError
from app.models.product import ProductDraft, ProductStatus
from utils.constants import (
    ACCESS_DENIED_MESSAGE,
    ADMIN_APPROVED_ACK,
    ADMIN_APPROVED_NOT_POSTED_ACK,
    ADMIN_REJECTED_ACK,
    NO_PENDING_MESSAGE,
    BUTTON_BUY,
    BUTTON_SOLD,
    PRODUCT_UNAVAILABLE_MESSAGE,
)


def last_answer(transport):
    return transport.answers()[-1].kwargs


def stored(bot, product):
    return bot.run(bot.ctx.products.get(product.id))


def test_approve_publishes_and_notifies(bot, transport):
    product = bot.submit_product()
    admin = bot.admins[0]
    transport.reset()

    bot.button(admin, f"approve:{product.id}")

    product = stored(bot, product)
    assert product.status == ProductStatus.APPROVED
    assert product.approved_by == admin
    assert product.review_messages == []

    post = transport.sent(bot.channel, "send_photo")
    assert len(post) == 1
    assert post[0].kwargs["media_ref"] == "P1"
    assert "Calculus Textbook" in post[0].text
    assert post[0].kwargs["buttons"][0][0].text == BUTTON_BUY
    assert product.channel_message_ids == [product.controls_message_id]

    assert "approved" in transport.last_text_to(bot.seller)
    closed = transport.sent(method="edit_message_controls")
    assert {call.chat_id for call in closed} == set(bot.admins)
    assert "Approved by" in closed[0].kwargs["buttons"][0][0].text
    assert last_answer(transport)["text"] == ADMIN_APPROVED_ACK


def test_second_approval_is_a_no_op(bot, transport):
    product = bot.submit_product()

    bot.button(bot.admins[0], f"approve:{product.id}")
    bot.button(bot.admins[1], f"approve:{product.id}")

    assert len(transport.sent(bot.channel, "send_photo")) == 1
    approved = [t for t in transport.texts_to(bot.seller) if "has been approved" in t]
    assert len(approved) == 1
    answer = last_answer(transport)
    assert answer["text"] == PRODUCT_UNAVAILABLE_MESSAGE
    assert answer["show_alert"] is True


def test_concurrent_approvals_publish_once(bot, transport):
    product = bot.submit_product()

    async def both():
        return await asyncio.gather(
            bot.ctx.moderation.approve(product.id, bot.admins[0]),
            bot.ctx.moderation.approve(product.id, bot.admins[1]),
            return_exceptions=True,
        )

    results = bot.run(both())

    assert sum(1 for r in results if r is True) == 1
    assert sum(1 for r in results if isinstance(r, NotFoundError)) == 1
    assert len(transport.sent(bot.channel, "send_photo")) == 1


def test_non_admin_cannot_approve(bot, transport):
    product = bot.submit_product()

    bot.button(bot.seller, f"approve:{product.id}")

    assert stored(bot, product).status == ProductStatus.PENDING
    assert last_answer(transport)["text"] == ACCESS_DENIED_MESSAGE
    assert transport.sent(bot.channel, "send_photo") == []


def test_approve_unknown_product(bot, transport):
    bot.button(bot.admins[0], "approve:doesnotexist")
    assert last_answer(transport)["text"] == PRODUCT_UNAVAILABLE_MESSAGE


def test_one_failing_admin_does_not_block_the_others(bot, transport):
    transport.fail_chats.add(bot.admins[1])

    product = bot.submit_product()

    reviews = stored(bot, product).review_messages
    assert sorted(r.chat_id for r in reviews) == [bot.admins[0], bot.admins[2]]
    assert bot.run(bot.ctx.moderation.notify_admins(product)) == 2


def test_review_request_falls_back_to_text(bot, transport):
    transport.fail_methods.add("send_photo")

    product = bot.submit_product(title="<Desk> Lamp")

    for admin_id in bot.admins:
        texts = transport.sent(admin_id, "send_text")
        assert len(texts) == 1
        assert "&lt;Desk&gt; Lamp" in texts[0].text
        assert texts[0].kwargs["buttons"][0][0].callback_data == f"approve:{product.id}"


def test_publish_failure_still_approves(bot, transport):
    product = bot.submit_product()
    transport.fail_chats.add(bot.channel)

    bot.button(bot.admins[0], f"approve:{product.id}")

    product = stored(bot, product)
    assert product.status == ProductStatus.APPROVED
    assert product.channel_message_ids == []
    assert last_answer(transport)["text"] == ADMIN_APPROVED_NOT_POSTED_ACK
    assert "approved" in transport.last_text_to(bot.seller)


def test_several_images_publish_as_gallery_plus_controls(bot, transport):
    product = bot.submit_product(images=("P1", "P2", "P3"))

    bot.button(bot.admins[0], f"approve:{product.id}")

    gallery = transport.sent(bot.channel, "send_media_group")
    assert len(gallery) == 1
    items = gallery[0].kwargs["items"]
    assert [item.media for item in items] == ["P1", "P2", "P3"]
    assert "Calculus Textbook" in items[0].caption
    assert items[1].caption is None

    controls = transport.sent(bot.channel, "send_text")
    assert len(controls) == 1
    assert controls[0].kwargs["buttons"][0][0].callback_data == f"buy:{product.id}"

    product = stored(bot, product)
    assert len(product.channel_message_ids) == 4


def test_product_without_images_publishes_as_text(bot, transport):
    product = bot.run(bot.ctx.products.create(
        ProductDraft(title="Notes", price=50, description="", category="Other"), bot.seller
    ))

    ids = bot.run(bot.ctx.moderation.publish_to_channel(product))

    assert len(ids) == 1
    assert transport.sent(bot.channel, "send_text")[0].kwargs["buttons"][0][0].text == BUTTON_BUY


def test_reject(bot, transport):
    product = bot.submit_product()

    bot.button(bot.admins[2], f"reject:{product.id}")

    assert stored(bot, product).status == ProductStatus.REJECTED
    assert "was not approved" in transport.last_text_to(bot.seller)
    assert transport.sent(bot.channel, "send_photo") == []
    assert last_answer(transport)["text"] == ADMIN_REJECTED_ACK

    bot.button(bot.admins[0], f"approve:{product.id}")
    assert stored(bot, product).status == ProductStatus.REJECTED
    assert last_answer(transport)["text"] == PRODUCT_UNAVAILABLE_MESSAGE


def rejections_to(bot, transport):
    return [t for t in transport.texts_to(bot.seller) if "was not approved" in t]


def test_non_admin_cannot_reject(bot, transport):
    product = bot.submit_product()

    bot.button(bot.seller, f"reject:{product.id}")
    bot.button(bot.buyer, f"reject:{product.id}", chat_id=-100, chat_type="channel")

    assert stored(bot, product).status == ProductStatus.PENDING
    assert last_answer(transport)["text"] == ACCESS_DENIED_MESSAGE
    assert rejections_to(bot, transport) == []


def test_second_rejection_is_a_no_op(bot, transport):
    product = bot.submit_product()

    bot.button(bot.admins[0], f"reject:{product.id}")
    bot.button(bot.admins[1], f"reject:{product.id}")

    rejected = stored(bot, product)
    assert rejected.status == ProductStatus.REJECTED
    assert rejected.approved_by == bot.admins[0]
    assert len(rejections_to(bot, transport)) == 1
    answer = last_answer(transport)
    assert answer["text"] == PRODUCT_UNAVAILABLE_MESSAGE
    assert answer["show_alert"] is True


def test_review_copies_delivered_after_a_decision_are_closed(bot, transport):
    product = bot.submit_product()
    bot.button(bot.admins[0], f"approve:{product.id}")
    transport.reset()

    # a fan-out still running with the pending snapshot
    assert bot.run(bot.ctx.moderation.notify_admins(product)) == 3

    assert stored(bot, product).review_messages == []
    closed = transport.sent(method="edit_message_controls")
    assert {call.chat_id for call in closed} == set(bot.admins)
    assert all("Approved by" in call.kwargs["buttons"][0][0].text for call in closed)


def test_review_copies_are_recorded_one_by_one(bot, transport):
    transport.fail_chats.add(bot.admins[2])
    product = bot.submit_product()

    reviews = stored(bot, product).review_messages
    assert [r.chat_id for r in reviews] == [bot.admins[0], bot.admins[1]]


def test_approval_survives_admin_lookup_failure(bot, transport, monkeypatch):
    product = bot.submit_product()
    admin = bot.admins[1]

    async def unavailable(user_id):
        raise StorageError("users collection unavailable")

    monkeypatch.setattr(bot.ctx.user_service, "get", unavailable)
    bot.button(admin, f"approve:{product.id}")

    assert stored(bot, product).status == ProductStatus.APPROVED
    assert last_answer(transport)["text"] == ADMIN_APPROVED_ACK
    closed = transport.sent(method="edit_message_controls")
    assert closed
    assert f"Approved by {admin}" in closed[0].kwargs["buttons"][0][0].text


def test_pending_resends_review_requests(bot, transport):
    first = bot.submit_product(title="Lamp")
    bot.submit_product(title="Chair")
    admin = bot.admins[0]
    transport.reset()

    bot.text(admin, "/pending")

    requests = transport.sent(admin, "send_photo")
    assert len(requests) == 2
    assert len(stored(bot, first).review_messages) == len(bot.admins) + 1


def test_pending_when_queue_is_empty(bot, transport):
    bot.text(bot.admins[0], "/pending")
    assert transport.last_text_to(bot.admins[0]) == NO_PENDING_MESSAGE


def test_pending_is_admin_only(bot, transport):
    bot.text(bot.seller, "/pending")
    assert transport.last_text_to(bot.seller) == ACCESS_DENIED_MESSAGE


def test_seller_marks_product_sold(bot, transport):
    product = bot.submit_product()
    bot.button(bot.admins[0], f"approve:{product.id}")
    controls_id = stored(bot, product).controls_message_id
    transport.reset()

    bot.button(bot.seller, f"sold:{product.id}", message_id=321)

    assert stored(bot, product).status == ProductStatus.SOLD
    edits = transport.sent(method="edit_message_controls")
    channel_edit = [e for e in edits if e.chat_id == bot.channel]
    assert channel_edit[0].kwargs["message_id"] == controls_id
    assert channel_edit[0].kwargs["buttons"][0][0].text == BUTTON_SOLD
    assert any(e.chat_id == bot.seller and e.kwargs["message_id"] == 321 for e in edits)


def test_only_seller_or_admin_can_mark_sold(bot, transport):
    product = bot.submit_product()
    bot.button(bot.admins[0], f"approve:{product.id}")

    bot.button(bot.buyer, f"sold:{product.id}")

    assert stored(bot, product).status == ProductStatus.APPROVED
    assert last_answer(transport)["text"] == ACCESS_DENIED_MESSAGE


def test_pending_product_cannot_be_marked_sold(bot):
    product = bot.submit_product()

    with pytest.raises(NotFoundError):
        bot.run(bot.ctx.moderation.mark_sold(product.id, bot.seller))
