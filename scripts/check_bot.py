"""
Check the Telegram bot configuration

Verifies the token, the admin list, the channel and the webhook, and can
send a test message to the first admin.

Usage: python scripts/check_bot.py
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from app.core.config import settings
from app.core.exceptions import TransportError
from app.services.telegram_service import TelegramTransport


async def check_config(transport: TelegramTransport) -> bool:
    """Token, admins and channel"""
    print("=" * 60)
    print("  Bot Configuration Check")
    print("=" * 60 + "\n")

    print(f"Bot token: {'✅ Set' if settings.BOT_TOKEN else '❌ Not set'}")
    print(f"Admin ids: {sorted(settings.admin_ids) or '❌ Not set'}")
    print(f"Channel: {settings.CHANNEL_USERNAME}")

    if not settings.BOT_TOKEN:
        print("\n⚠️  Please set BOT_TOKEN in the .env file")
        return False

    try:
        me = await transport.call("getMe", {})
        print(f"\n✅ Token valid: @{me.get('username')} (id {me.get('id')})")
    except TransportError as e:
        print(f"\n❌ Token rejected: {e.message}")
        return False

    try:
        chat = await transport.call("getChat", {"chat_id": settings.CHANNEL_USERNAME})
        print(f"✅ Channel found: {chat.get('title')}")
    except TransportError as e:
        print(f"❌ Channel not reachable: {e.message}")
        print("   Add the bot to the channel as an administrator.")

    return True


async def check_webhook(transport: TelegramTransport):
    """Current webhook registration"""
    print("\n" + "=" * 60)
    print("  Webhook")
    print("=" * 60 + "\n")

    info = await transport.call("getWebhookInfo", {})
    print(f"Registered URL: {info.get('url') or '(none, polling mode)'}")
    print(f"Pending updates: {info.get('pending_update_count', 0)}")
    if info.get("last_error_message"):
        print(f"⚠️  Last error: {info['last_error_message']}")

    if settings.WEBHOOK_URL:
        print(f"\nExpected URL: {settings.WEBHOOK_URL.rstrip('/')}{settings.API_PREFIX}/webhook")


async def send_test_message(transport: TelegramTransport):
    admin_id = sorted(settings.admin_ids)[0]
    print(f"\n📤 Sending test message to admin {admin_id}...")
    try:
        message_id = await transport.send_text(
            admin_id,
            "🧪 <b>Test Message from Campus Marketplace</b>\n\nIf you received this, the bot can reach you. ✅"
        )
        print(f"✅ Message sent (id {message_id})")
    except TransportError as e:
        print(f"❌ Failed to send message: {e.message}")
        print("   The admin must open a private chat with the bot and press /start first.")


async def main():
    print("\n🧪 Campus Marketplace Bot Check\n")

    transport = TelegramTransport(settings.BOT_TOKEN, settings.TELEGRAM_API_URL, settings.TELEGRAM_TIMEOUT)
    try:
        if not await check_config(transport):
            print("\n❌ Configuration check failed. Please fix the .env file and try again.")
            return

        await check_webhook(transport)

        if settings.admin_ids:
            answer = input("\nDo you want to send a test message to the first admin? (y/n): ")
            if answer.lower() == "y":
                await send_test_message(transport)

        print("\n✅ All checks completed!")
    finally:
        await transport.close()


if __name__ == "__main__":
    asyncio.run(main())
