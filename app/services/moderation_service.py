"""
app/services/moderation_service.py

Purpose: Admin moderation and channel publishing

- Fans out approval requests to every admin
- Approve / reject with guarded, idempotent status transitions
- Publishes approved products to the channel (gallery + controls)
- Mark as sold (edits the channel controls)
"""

from typing import List, Optional

from app.core.exceptions import (
    MarketplaceError,
    NotFoundError,
    StorageError,
    TransportError,
)
from app.core.logging import get_logger, LogContext
from app.db.repositories import ProductRepository
from app.models.product import Product, ProductStatus, ReviewMessage
from app.models.user import User
from app.services.delivery import deliver_sequentially
from app.services.telegram_service import MediaItem, Transport
from app.services.user_service import UserService
from utils.constants import (
    CHANNEL_CONTROLS_MESSAGE,
    CHANNEL_POST_MESSAGE,
    DESCRIPTION_LINE,
    PRODUCT_UNAVAILABLE_MESSAGE,
    REJECTION_REASONS,
    REVIEW_DECIDED_LABEL,
    REVIEW_SUMMARY_MESSAGE,
    SELLER_APPROVED_MESSAGE,
    SELLER_REJECTED_MESSAGE,
)
from utils.telegram_utils import (
    channel_buttons,
    decided_buttons,
    escape,
    mention,
    review_buttons,
    sold_buttons,
)
from utils.time_utils import format_timestamp

logger = get_logger(__name__)


def format_review_summary(product: Product, seller: Optional[User]) -> str:
    if seller is not None:
        seller_label = f"{escape(seller.display_name)} ({mention(seller.telegram_id, seller.username, seller.display_name)})"
    else:
        seller_label = mention(product.seller_id, name=str(product.seller_id))

    return REVIEW_SUMMARY_MESSAGE.format(
        title=escape(product.title),
        price=f"{product.price:,}",
        category=escape(product.category),
        seller=seller_label,
        description_line=_description_line(product),
        submitted=format_timestamp(product.created_at),
    )


def format_channel_post(product: Product) -> str:
    return CHANNEL_POST_MESSAGE.format(
        title=escape(product.title),
        price=f"{product.price:,}",
        category=escape(product.category),
        description_line=_description_line(product),
    )


def _description_line(product: Product) -> str:
    if not product.description:
        return ""
    return DESCRIPTION_LINE.format(description=escape(product.description))


class ModerationService:

    def __init__(
        self,
        products: ProductRepository,
        user_service: UserService,
        transport: Transport,
        channel: str,
        send_delay: float = 0.0,
    ):
        self.products = products
        self.user_service = user_service
        self.transport = transport
        self.channel = channel
        self.send_delay = send_delay

    @property
    def admin_ids(self) -> List[int]:
        return sorted(self.user_service.admin_ids)

    async def send_review_request(self, product: Product, admin_id: int, summary: Optional[str] = None) -> int:
        """
        Sends one admin the product (first photo + summary + approve/reject).
        Falls back to a text message when the photo cannot be sent.

        Returns:
            The message id carrying the controls

        Raises:
            TransportError: If neither the photo nor the text could be sent
        """
        if summary is None:
            seller = await self.user_service.get(product.seller_id)
            summary = format_review_summary(product, seller)
        buttons = review_buttons(product.id)

        if product.images:
            try:
                return await self.transport.send_photo(admin_id, product.images[0], caption=summary, buttons=buttons)
            except TransportError as e:
                logger.warning(f"Review photo to admin {admin_id} failed, sending text: {e.message}")

        return await self.transport.send_text(admin_id, summary, buttons=buttons)

    async def notify_admins(self, product: Product) -> int:
        """
        Fans the approval request out to every admin.

        Each admin is tried independently with a pause between sends.

        Returns:
            Number of admins that received the request
        """
        with LogContext(product_id=product.id):
            seller = await self.user_service.get(product.seller_id)
            summary = format_review_summary(product, seller)

            async def send(admin_id):
                message_id = await self.send_review_request(product, admin_id, summary)
                await self._record_review(product.id, ReviewMessage(chat_id=admin_id, message_id=message_id))
                return message_id

            report = await deliver_sequentially(self.admin_ids, send, delay=self.send_delay)

            if report.succeeded == 0:
                logger.error("No admin received the approval request")
            else:
                logger.info(f"Approval request sent to {report.succeeded}/{report.total} admins")

            return report.succeeded

    async def approve(self, product_id: str, admin_id: int) -> bool:
        """
        Approves a pending product and publishes it.

        Repeated or concurrent approvals are no-ops: only the call that moves
        the product out of pending publishes and notifies.

        Returns:
            True when the channel post succeeded

        Raises:
            AuthorizationError: If admin_id is not an admin
            NotFoundError: If the product is missing or no longer pending
        """
        with LogContext(product_id=product_id, admin_id=admin_id):
            self.user_service.require_admin(admin_id)

            product = await self.products.transition(
                product_id, ProductStatus.PENDING, ProductStatus.APPROVED, approved_by=admin_id
            )
            if product is None:
                raise NotFoundError(PRODUCT_UNAVAILABLE_MESSAGE)

            logger.info("Product approved")

            posted = True
            try:
                await self.publish_to_channel(product)
            except MarketplaceError as e:
                posted = False
                logger.error(f"Channel publish failed: {e.message}")

            await self._notify_seller(
                product,
                SELLER_APPROVED_MESSAGE.format(title=escape(product.title), channel=self.channel)
            )
            await self._close_review(product, "✅", "Approved", admin_id)
            return posted

    async def reject(self, product_id: str, admin_id: int) -> Product:
        """
        Raises:
            AuthorizationError: If admin_id is not an admin
            NotFoundError: If the product is missing or no longer pending
        """
        with LogContext(product_id=product_id, admin_id=admin_id):
            self.user_service.require_admin(admin_id)

            product = await self.products.transition(
                product_id, ProductStatus.PENDING, ProductStatus.REJECTED, approved_by=admin_id
            )
            if product is None:
                raise NotFoundError(PRODUCT_UNAVAILABLE_MESSAGE)

            logger.info("Product rejected")

            reasons = "\n".join(f"• {reason}" for reason in REJECTION_REASONS)
            await self._notify_seller(
                product,
                SELLER_REJECTED_MESSAGE.format(title=escape(product.title), reasons=reasons)
            )
            await self._close_review(product, "❌", "Rejected", admin_id)
            return product

    async def publish_to_channel(self, product: Product) -> List[int]:
        """
        Posts the product to the channel and stores every resulting message id.

        - several images: media group (caption on the first item) followed by
          a separate message carrying the buy/contact buttons
        - one image: photo with caption and buttons
        - no image: text with buttons

        Raises:
            TransportError: If a send fails (ids sent so far are still stored)
        """
        caption = format_channel_post(product)
        buttons = channel_buttons(product.id)
        message_ids: List[int] = []

        try:
            if len(product.images) > 1:
                items = [
                    MediaItem(media=ref, caption=caption if index == 0 else None)
                    for index, ref in enumerate(product.images)
                ]
                message_ids.extend(await self.transport.send_media_group(self.channel, items))
                message_ids.append(await self.transport.send_text(
                    self.channel,
                    CHANNEL_CONTROLS_MESSAGE.format(title=escape(product.title)),
                    buttons=buttons,
                ))
            elif product.images:
                message_ids.append(await self.transport.send_photo(
                    self.channel, product.images[0], caption=caption, buttons=buttons
                ))
            else:
                message_ids.append(await self.transport.send_text(self.channel, caption, buttons=buttons))
        finally:
            if message_ids:
                await self.products.set_channel_message_ids(product.id, message_ids)

        logger.info(f"Published to {self.channel} ({len(message_ids)} messages)", extra={"product_id": product.id})
        return message_ids

    async def mark_sold(self, product_id: str, user_id: int) -> Product:
        """
        Marks an approved product as sold and swaps the channel buttons for
        a SOLD marker. Allowed for the seller and for admins.

        Raises:
            NotFoundError: If the product is missing or not approved
            AuthorizationError: If user_id is neither the seller nor an admin
        """
        with LogContext(product_id=product_id, user_id=user_id):
            product = await self.products.get(product_id)
            if product is None:
                raise NotFoundError(PRODUCT_UNAVAILABLE_MESSAGE)
            if product.seller_id != user_id:
                self.user_service.require_admin(user_id)

            sold = await self.products.transition(product_id, ProductStatus.APPROVED, ProductStatus.SOLD)
            if sold is None:
                raise NotFoundError(PRODUCT_UNAVAILABLE_MESSAGE)

            logger.info("Product marked as sold")

            if sold.controls_message_id is not None:
                try:
                    await self.transport.edit_message_controls(
                        self.channel, sold.controls_message_id, sold_buttons()
                    )
                except TransportError as e:
                    logger.warning(f"Could not update channel controls: {e.message}")
            return sold

    async def list_pending(self, admin_id: int) -> List[Product]:
        self.user_service.require_admin(admin_id)
        return await self.products.list_by_status(ProductStatus.PENDING)

    async def count_pending(self) -> int:
        return await self.products.count_by_status(ProductStatus.PENDING)

    async def resend_pending(self, admin_id: int) -> int:
        """
        Sends every pending product to one admin again.

        Returns:
            Number of review requests delivered
        """
        pending = {p.id: p for p in await self.list_pending(admin_id)}

        async def send(product_id):
            message_id = await self.send_review_request(pending[product_id], admin_id)
            await self._record_review(product_id, ReviewMessage(chat_id=admin_id, message_id=message_id))
            return message_id

        report = await deliver_sequentially(list(pending), send, delay=self.send_delay)
        return report.succeeded

    async def _notify_seller(self, product: Product, text: str) -> None:
        try:
            await self.transport.send_text(product.seller_id, text)
        except TransportError as e:
            logger.warning(f"Could not notify seller {product.seller_id}: {e.message}")

    async def _record_review(self, product_id: str, review: ReviewMessage) -> None:
        """
        Stores a delivered review copy. When the product was decided while the
        copy was in flight, its controls are closed right away.
        """
        if await self.products.add_review_message(product_id, review):
            return

        product = await self.products.get(product_id)
        if product is None:
            return
        if product.status == ProductStatus.REJECTED:
            label = await self._decision_label("❌", "Rejected", product.approved_by)
        else:
            label = await self._decision_label("✅", "Approved", product.approved_by)

        logger.info(f"Closing late review copy for admin {review.chat_id}")
        try:
            await self.transport.edit_message_controls(review.chat_id, review.message_id, decided_buttons(label))
        except TransportError as e:
            logger.debug(f"Could not clear review controls for {review.chat_id}: {e.message}")

    async def _decision_label(self, mark: str, decision: str, admin_id: Optional[int]) -> str:
        admin = None
        if admin_id is not None:
            try:
                admin = await self.user_service.get(admin_id)
            except StorageError as e:
                logger.warning(f"Could not load admin {admin_id} for the review label: {e.message}")
        return REVIEW_DECIDED_LABEL.format(
            mark=mark,
            decision=decision,
            admin=admin.display_name if admin else admin_id,
        )

    async def _close_review(self, product: Product, mark: str, decision: str, admin_id: int) -> None:
        """Replaces the approve/reject buttons on every admin's copy."""
        label = await self._decision_label(mark, decision, admin_id)

        for review in product.review_messages:
            try:
                await self.transport.edit_message_controls(
                    review.chat_id, review.message_id, decided_buttons(label)
                )
            except TransportError as e:
                logger.debug(f"Could not clear review controls for {review.chat_id}: {e.message}")

        await self.products.set_review_messages(product.id, [])
