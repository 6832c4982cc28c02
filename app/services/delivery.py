"""
app/services/delivery.py

Purpose: Sequential bulk delivery

- Sends to many recipients one at a time with a fixed pause
- A failing recipient never stops the rest
- Reports succeeded / failed counts and per-recipient results
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class DeliveryReport:
    succeeded: int = 0
    failed: int = 0
    results: Dict[Any, Any] = field(default_factory=dict)
    errors: Dict[Any, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed


async def deliver_sequentially(
    targets: Iterable[Any],
    send: Callable[[Any], Awaitable[Any]],
    delay: float = 0.0,
    on_progress: Optional[Callable[[DeliveryReport], Awaitable[None]]] = None,
    progress_every: int = 10,
) -> DeliveryReport:
    """
    Calls send(target) for every target in order.

    Args:
        targets: Recipients (chat ids, users, ...)
        send: Coroutine function performing one delivery; its return value
            is kept in report.results
        delay: Seconds to wait between two sends
        on_progress: Awaited after every progress_every deliveries

    Returns:
        DeliveryReport with the outcome of each target
    """
    report = DeliveryReport()
    targets = list(targets)

    for index, target in enumerate(targets):
        if index and delay:
            await asyncio.sleep(delay)

        try:
            report.results[target] = await send(target)
            report.succeeded += 1
        except Exception as e:
            report.failed += 1
            report.errors[target] = str(e)
            logger.warning(f"Delivery to {target} failed: {e}")

        if on_progress and (index + 1) % progress_every == 0 and index + 1 < len(targets):
            await on_progress(report)

    logger.info(f"Delivery finished: {report.succeeded} sent, {report.failed} failed")
    return report
