"""
app/services/buyer_service.py

Purpose: Buyer actions on channel posts

- BUY: introduces buyer and seller to each other
- CONTACT SELLER: sends the seller's handle to the buyer only
- Only approved products accept buyer actions
"""

from app.core.exceptions import NotFoundError, TransportError, ValidationError
from app.core.logging import get_logger, LogContext
from app.db.repositories import ProductRepository
from app.models.product import Product, ProductStatus
from app.models.user import Sender
from app.services.telegram_service import Transport
from app.services.user_service import UserService
from utils.constants import (
    BUY_BUYER_MESSAGE,
    BUY_SELLER_MESSAGE,
    CONTACT_BUYER_MESSAGE,
    OWN_PRODUCT_MESSAGE,
    PRODUCT_UNAVAILABLE_MESSAGE,
    START_BOT_FIRST_MESSAGE,
)
from utils.telegram_utils import escape, mention

logger = get_logger(__name__)


class BuyerService:

    def __init__(self, products: ProductRepository, user_service: UserService, transport: Transport):
        self.products = products
        self.user_service = user_service
        self.transport = transport

    async def _available(self, product_id: str, buyer: Sender) -> Product:
        """
        Raises:
            NotFoundError: If the product is missing or not approved (pending, rejected or sold)
            ValidationError: If the buyer is the seller
        """
        product = await self.products.get(product_id)
        if product is None or product.status != ProductStatus.APPROVED:
            raise NotFoundError(PRODUCT_UNAVAILABLE_MESSAGE)
        if product.seller_id == buyer.id:
            raise ValidationError(OWN_PRODUCT_MESSAGE)
        return product

    async def _seller_handle(self, product: Product) -> str:
        seller = await self.user_service.get(product.seller_id)
        if seller is None:
            return mention(product.seller_id, name="Seller")
        return mention(seller.telegram_id, seller.username, seller.display_name)

    async def _send_to_buyer(self, buyer: Sender, text: str) -> None:
        """
        Raises:
            ValidationError: If the bot cannot message the buyer
                (they never opened a private chat with it)
        """
        try:
            await self.transport.send_text(buyer.id, text)
        except TransportError as e:
            logger.info(f"Cannot message buyer: {e.message}")
            raise ValidationError(START_BOT_FIRST_MESSAGE)

    async def buy(self, product_id: str, buyer: Sender) -> Product:
        """
        Sends the buyer the seller's handle and the seller the buyer's handle.
        The product status does not change.
        """
        with LogContext(product_id=product_id, user_id=buyer.id):
            product = await self._available(product_id, buyer)
            buyer_user = await self.user_service.register(buyer)

            await self._send_to_buyer(buyer, BUY_BUYER_MESSAGE.format(
                title=escape(product.title),
                seller_handle=await self._seller_handle(product),
            ))

            try:
                await self.transport.send_text(product.seller_id, BUY_SELLER_MESSAGE.format(
                    buyer=escape(buyer_user.display_name),
                    title=escape(product.title),
                    price=f"{product.price:,}",
                    buyer_handle=mention(buyer.id, buyer.username, buyer_user.display_name),
                ))
            except TransportError as e:
                logger.warning(f"Could not notify seller {product.seller_id}: {e.message}")

            logger.info("Buy request delivered")
            return product

    async def contact(self, product_id: str, buyer: Sender) -> Product:
        """Sends only the buyer the seller's handle."""
        with LogContext(product_id=product_id, user_id=buyer.id):
            product = await self._available(product_id, buyer)
            await self.user_service.register(buyer)

            await self._send_to_buyer(buyer, CONTACT_BUYER_MESSAGE.format(
                title=escape(product.title),
                seller_handle=await self._seller_handle(product),
            ))

            logger.info("Seller contact delivered")
            return product
