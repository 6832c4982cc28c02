"""
Posts a fake Telegram update to a running server to verify the webhook route

Usage: python scripts/send_test_update.py [user_id] [text]
"""

import asyncio
import sys
import time
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.config import settings
from app.api.webhook import SECRET_HEADER


async def send_update(user_id: int, text: str):
    """Simulate what Telegram pushes to our webhook"""

    url = f"http://localhost:{settings.PORT}{settings.API_PREFIX}/webhook"

    update = {
        "update_id": int(time.time()),
        "message": {
            "message_id": 1,
            "date": int(time.time()),
            "from": {"id": user_id, "is_bot": False, "first_name": "Test", "username": "test_user"},
            "chat": {"id": user_id, "type": "private"},
            "text": text,
        },
    }
    headers = {SECRET_HEADER: settings.WEBHOOK_SECRET} if settings.WEBHOOK_SECRET else {}

    print(f"🧪 Testing webhook: {url}")
    print(f"📤 Sending update: {update}\n")

    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(url, json=update, headers=headers, timeout=10.0)

            print(f"✅ Status: {response.status_code}")
            print(f"📥 Response: {response.text[:200]}")

            if response.status_code == 200:
                print("\n✅ Webhook is working!")
            else:
                print(f"\n❌ Webhook returned {response.status_code}")

    except httpx.HTTPError as e:
        print(f"❌ Error: {e}")


if __name__ == "__main__":
    user = int(sys.argv[1]) if len(sys.argv) > 1 else 123456789
    message = sys.argv[2] if len(sys.argv) > 2 else "/start"
    asyncio.run(send_update(user, message))
