"""
app/services/polling_service.py

Purpose: Long-poll update loop (USE_POLLING=true, no webhook)

- Fetches updates with getUpdates and acknowledges them by offset
- Schedules one task per update so a slow handler never blocks polling
"""

import asyncio
from typing import Optional, Set

from app.core.exceptions import TransportError
from app.core.logging import get_logger
from app.services.telegram_service import TelegramTransport

logger = get_logger(__name__)


async def run_polling(transport: TelegramTransport, dispatcher, timeout: int = 30, max_backoff: float = 30.0):
    """
    Runs until cancelled.

    Args:
        transport: Bot API client
        dispatcher: Object with an async feed_update(payload) method
        timeout: Long-poll wait in seconds
    """
    await transport.delete_webhook()
    logger.info("🔁 Long polling started")

    offset: Optional[int] = None
    backoff = 1.0
    tasks: Set[asyncio.Task] = set()

    try:
        while True:
            try:
                updates = await transport.get_updates(offset, timeout)
            except TransportError as e:
                logger.warning(f"getUpdates failed, retrying in {backoff:.0f}s: {e.message}")
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, max_backoff)
                continue

            backoff = 1.0
            for update in updates:
                offset = update["update_id"] + 1
                task = asyncio.create_task(dispatcher.feed_update(update))
                tasks.add(task)
                task.add_done_callback(tasks.discard)
    finally:
        for task in tasks:
            task.cancel()
        logger.info("Long polling stopped")
