import pytest

from app.core.exceptions import AuthorizationError
from app.services.broadcast_service import BroadcastFilter
from utils.constants import ACCESS_DENIED_MESSAGE, BROADCAST_USAGE_MESSAGE

USERS = list(range(700, 712))


@pytest.fixture
def audience(bot, transport):
    """Twelve registered users; the first four are CSE students outside the channel."""
    for user_id in USERS:
        transport.member_status = "left" if user_id in USERS[:4] else "member"
        bot.text(user_id, "/start")
    for user_id in USERS[:4]:
        bot.run(bot.ctx.users.set_profile(user_id, "CSE", "3"))
    transport.member_status = "member"
    transport.reset()
    return USERS


def announcements(transport, recipients):
    return [c for c in transport.sent(method="send_text") if c.chat_id in recipients]


def test_broadcast_reaches_everyone_and_counts_failures(bot, transport, audience):
    admin = bot.admins[0]
    transport.fail_chats.update(audience[:2])

    bot.text(admin, "/broadcast Exam books sale <today>")

    delivered = announcements(transport, audience)
    assert len(delivered) == len(audience) - 2
    assert "Exam books sale &lt;today&gt;" in delivered[0].text

    edits = transport.sent(admin, "edit_message_text")
    assert "Sent: 8" in edits[0].kwargs["text"]
    assert "Failed: 2" in edits[0].kwargs["text"]
    assert "Broadcast done" in edits[-1].kwargs["text"]
    assert "Sent: 10" in edits[-1].kwargs["text"]
    assert "Failed: 2" in edits[-1].kwargs["text"]


def test_department_broadcast(bot, transport, audience):
    bot.text(bot.admins[0], "/broadcast_dept cse\nCSE books wanted")

    assert {c.chat_id for c in announcements(transport, audience)} == set(audience[:4])


def test_members_broadcast(bot, transport, audience):
    bot.text(bot.admins[0], "/broadcast_members Channel news")

    assert {c.chat_id for c in announcements(transport, audience)} == set(audience[4:])


def test_non_admin_broadcast_is_denied(bot, transport, audience):
    bot.text(audience[5], "/broadcast hello everyone")

    assert announcements(transport, audience[:5] + audience[6:]) == []
    assert transport.last_text_to(audience[5]) == ACCESS_DENIED_MESSAGE


def test_empty_broadcast_shows_usage(bot, transport, audience):
    bot.text(bot.admins[0], "/broadcast")
    assert transport.last_text_to(bot.admins[0]) == BROADCAST_USAGE_MESSAGE

    bot.text(bot.admins[0], "/broadcast_dept CSE")
    assert transport.last_text_to(bot.admins[0]) == BROADCAST_USAGE_MESSAGE
    assert announcements(transport, audience) == []


def test_service_rejects_non_admins(bot, audience):
    with pytest.raises(AuthorizationError):
        bot.run(bot.ctx.broadcasts.broadcast(audience[0], audience[0], "hi", BroadcastFilter()))


def test_progress_edit_failures_are_ignored(bot, transport, audience):
    transport.fail_methods.add("edit_message_text")

    report = bot.run(bot.ctx.broadcasts.broadcast(bot.admins[0], bot.admins[0], "hi"))

    assert report.succeeded == len(audience)
    assert report.failed == 0
