"""
app/db/memory.py

Purpose: In-process repositories (STORAGE_BACKEND=memory, tests)

Check-and-mutate sections never await, so status transitions are atomic
with respect to other tasks on the event loop.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from app.db.repositories import (
    ProductRepository,
    UserRepository,
    check_transition,
    draft_fields,
)
from app.core.logging import get_logger
from app.models.product import Product, ProductDraft, ProductStatus, ReviewMessage
from app.models.user import Sender, User

logger = get_logger(__name__)


class MemoryUserRepository(UserRepository):

    def __init__(self):
        self._users: Dict[int, User] = {}

    async def upsert_from_sender(self, sender: Sender) -> User:
        now = datetime.utcnow()
        user = self._users.get(sender.id)
        if user is None:
            user = User(
                telegram_id=sender.id,
                username=sender.username,
                first_name=sender.first_name,
                last_name=sender.last_name,
                created_at=now,
                updated_at=now,
            )
            logger.info("New user registered", extra={"user_id": sender.id})
        else:
            user = user.model_copy(update={
                "username": sender.username,
                "first_name": sender.first_name,
                "last_name": sender.last_name,
                "updated_at": now,
            })
        self._users[sender.id] = user
        return user.model_copy()

    async def get(self, telegram_id: int) -> Optional[User]:
        user = self._users.get(telegram_id)
        return user.model_copy() if user else None

    async def set_profile(self, telegram_id: int, department: str, year: str) -> bool:
        user = self._users.get(telegram_id)
        if user is None:
            return False
        self._users[telegram_id] = user.model_copy(update={
            "department": department,
            "year": year,
            "updated_at": datetime.utcnow(),
        })
        return True

    async def set_joined_channel(self, telegram_id: int, joined: bool) -> None:
        user = self._users.get(telegram_id)
        if user is not None:
            self._users[telegram_id] = user.model_copy(update={"joined_channel": joined})

    async def list_users(self, department: Optional[str] = None, joined_only: bool = False) -> List[User]:
        users = sorted(self._users.values(), key=lambda u: u.created_at)
        if department:
            wanted = department.strip().lower()
            users = [u for u in users if (u.department or "").lower() == wanted]
        if joined_only:
            users = [u for u in users if u.joined_channel]
        return [u.model_copy() for u in users]


class MemoryProductRepository(ProductRepository):

    def __init__(self):
        self._products: Dict[str, Product] = {}

    async def create(self, draft: ProductDraft, seller_id: int) -> Product:
        product = Product(id=uuid.uuid4().hex, seller_id=seller_id, **draft_fields(draft))
        self._products[product.id] = product
        logger.info("Product created", extra={"user_id": seller_id, "product_id": product.id})
        return product.model_copy(deep=True)

    async def get(self, product_id: str) -> Optional[Product]:
        product = self._products.get(product_id)
        return product.model_copy(deep=True) if product else None

    async def transition(self, product_id, from_status, to_status, **fields) -> Optional[Product]:
        check_transition(from_status, to_status)
        product = self._products.get(product_id)
        if product is None or product.status != from_status:
            return None

        updated = product.model_copy(update={
            **fields,
            "status": to_status,
            "updated_at": datetime.utcnow(),
        })
        self._products[product_id] = updated
        return updated.model_copy(deep=True)

    async def set_channel_message_ids(self, product_id: str, message_ids: List[int]) -> None:
        self._update(product_id, channel_message_ids=list(message_ids))

    async def set_review_messages(self, product_id: str, messages: List[ReviewMessage]) -> None:
        self._update(product_id, review_messages=list(messages))

    async def add_review_message(self, product_id: str, message: ReviewMessage) -> bool:
        product = self._products.get(product_id)
        if product is None or product.status != ProductStatus.PENDING:
            return False
        self._update(product_id, review_messages=product.review_messages + [message])
        return True

    async def list_by_seller(self, seller_id: int) -> List[Product]:
        products = [p for p in self._products.values() if p.seller_id == seller_id]
        products.sort(key=lambda p: p.created_at, reverse=True)
        return [p.model_copy(deep=True) for p in products]

    async def list_by_status(self, status: ProductStatus) -> List[Product]:
        products = [p for p in self._products.values() if p.status == status]
        products.sort(key=lambda p: p.created_at)
        return [p.model_copy(deep=True) for p in products]

    async def count_by_status(self, status: ProductStatus) -> int:
        return sum(1 for p in self._products.values() if p.status == status)

    def __len__(self) -> int:
        return len(self._products)

    def _update(self, product_id: str, **fields) -> None:
        product = self._products.get(product_id)
        if product is not None:
            fields["updated_at"] = datetime.utcnow()
            self._products[product_id] = product.model_copy(update=fields)
