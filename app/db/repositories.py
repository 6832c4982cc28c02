"""
app/db/repositories.py

Purpose: Persistence for users and products

- Repository interfaces consumed by the services
- MongoDB (Motor) implementations
- Guarded status transitions as conditional updates
  (find_one_and_update filtered on the expected status)
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from app.core.exceptions import StorageError
from app.core.logging import get_logger, LogContext
from app.models.product import (
    Product,
    ProductDraft,
    ProductStatus,
    ReviewMessage,
    can_transition,
)
from app.models.user import Sender, User
from utils.constants import DEFAULT_CATEGORY

logger = get_logger(__name__)


class UserRepository:
    """User registry keyed by Telegram user id."""

    async def upsert_from_sender(self, sender: Sender) -> User:
        """Creates the user on first contact; refreshes name and handle otherwise."""
        raise NotImplementedError

    async def get(self, telegram_id: int) -> Optional[User]:
        raise NotImplementedError

    async def set_profile(self, telegram_id: int, department: str, year: str) -> bool:
        raise NotImplementedError

    async def set_joined_channel(self, telegram_id: int, joined: bool) -> None:
        raise NotImplementedError

    async def list_users(self, department: Optional[str] = None, joined_only: bool = False) -> List[User]:
        raise NotImplementedError


class ProductRepository:
    """Product records keyed by an opaque string id."""

    async def create(self, draft: ProductDraft, seller_id: int) -> Product:
        """Materializes a completed draft as a pending product."""
        raise NotImplementedError

    async def get(self, product_id: str) -> Optional[Product]:
        raise NotImplementedError

    async def transition(
        self,
        product_id: str,
        from_status: ProductStatus,
        to_status: ProductStatus,
        **fields: Any,
    ) -> Optional[Product]:
        """
        Moves a product from from_status to to_status atomically.

        Returns:
            The updated product, or None when the product does not exist or
            is no longer in from_status (a concurrent or repeated decision)

        Raises:
            ValueError: If the transition is not allowed by the lifecycle
        """
        raise NotImplementedError

    async def set_channel_message_ids(self, product_id: str, message_ids: List[int]) -> None:
        raise NotImplementedError

    async def set_review_messages(self, product_id: str, messages: List[ReviewMessage]) -> None:
        raise NotImplementedError

    async def add_review_message(self, product_id: str, message: ReviewMessage) -> bool:
        """
        Appends one admin review copy while the product is still pending.

        Returns:
            False when the product was decided (or removed) in the meantime
        """
        raise NotImplementedError

    async def list_by_seller(self, seller_id: int) -> List[Product]:
        raise NotImplementedError

    async def list_by_status(self, status: ProductStatus) -> List[Product]:
        raise NotImplementedError

    async def count_by_status(self, status: ProductStatus) -> int:
        raise NotImplementedError


def check_transition(from_status: ProductStatus, to_status: ProductStatus) -> None:
    if not can_transition(from_status, to_status):
        raise ValueError(f"Invalid product transition: {from_status.value} -> {to_status.value}")


def draft_fields(draft: ProductDraft) -> Dict[str, Any]:
    """Product fields taken from a completed draft."""
    if not draft.title or not draft.price:
        raise ValueError("Draft is missing title or price")
    return {
        "title": draft.title,
        "description": draft.description or "",
        "price": draft.price,
        "category": draft.category or DEFAULT_CATEGORY,
        "images": list(draft.images),
    }


# ============================================================
# MONGODB
# ============================================================

class MongoUserRepository(UserRepository):

    def __init__(self, db: AsyncIOMotorDatabase):
        self.users = db["users"]

    async def upsert_from_sender(self, sender: Sender) -> User:
        now = datetime.utcnow()
        try:
            doc = await self.users.find_one_and_update(
                {"telegram_id": sender.id},
                {
                    "$set": {
                        "username": sender.username,
                        "first_name": sender.first_name,
                        "last_name": sender.last_name,
                        "updated_at": now,
                    },
                    "$setOnInsert": {
                        "telegram_id": sender.id,
                        "department": None,
                        "year": None,
                        "joined_channel": False,
                        "created_at": now,
                    },
                },
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error(f"Failed to upsert user {sender.id}: {e}")
            raise StorageError("Failed to save user", details=str(e))
        return _to_user(doc)

    async def get(self, telegram_id: int) -> Optional[User]:
        try:
            doc = await self.users.find_one({"telegram_id": telegram_id})
        except PyMongoError as e:
            raise StorageError("Failed to load user", details=str(e))
        return _to_user(doc) if doc else None

    async def set_profile(self, telegram_id: int, department: str, year: str) -> bool:
        with LogContext(user_id=telegram_id):
            try:
                result = await self.users.update_one(
                    {"telegram_id": telegram_id},
                    {"$set": {"department": department, "year": year, "updated_at": datetime.utcnow()}}
                )
            except PyMongoError as e:
                logger.error(f"Failed to save profile: {e}")
                raise StorageError("Failed to save profile", details=str(e))

            success = result.matched_count > 0
            if success:
                logger.info("Profile updated")
            else:
                logger.warning("Profile update for unknown user")
            return success

    async def set_joined_channel(self, telegram_id: int, joined: bool) -> None:
        try:
            await self.users.update_one(
                {"telegram_id": telegram_id},
                {"$set": {"joined_channel": joined, "updated_at": datetime.utcnow()}}
            )
        except PyMongoError as e:
            raise StorageError("Failed to save membership", details=str(e))

    async def list_users(self, department: Optional[str] = None, joined_only: bool = False) -> List[User]:
        query: Dict[str, Any] = {}
        if department:
            query["department"] = {"$regex": f"^{_escape_regex(department)}$", "$options": "i"}
        if joined_only:
            query["joined_channel"] = True

        try:
            cursor = self.users.find(query).sort("created_at", 1)
            return [_to_user(doc) async for doc in cursor]
        except PyMongoError as e:
            raise StorageError("Failed to list users", details=str(e))


class MongoProductRepository(ProductRepository):

    def __init__(self, db: AsyncIOMotorDatabase):
        self.products = db["products"]

    async def create(self, draft: ProductDraft, seller_id: int) -> Product:
        now = datetime.utcnow()
        doc = {
            "seller_id": seller_id,
            **draft_fields(draft),
            "status": ProductStatus.PENDING.value,
            "channel_message_ids": [],
            "review_messages": [],
            "created_at": now,
            "updated_at": now,
            "approved_by": None,
        }
        try:
            result = await self.products.insert_one(doc)
        except PyMongoError as e:
            logger.error(f"Failed to create product for seller {seller_id}: {e}")
            raise StorageError("Failed to save product", details=str(e))

        doc["_id"] = result.inserted_id
        product = _to_product(doc)
        logger.info("Product created", extra={"user_id": seller_id, "product_id": product.id})
        return product

    async def get(self, product_id: str) -> Optional[Product]:
        oid = _object_id(product_id)
        if oid is None:
            return None
        try:
            doc = await self.products.find_one({"_id": oid})
        except PyMongoError as e:
            raise StorageError("Failed to load product", details=str(e))
        return _to_product(doc) if doc else None

    async def transition(self, product_id, from_status, to_status, **fields) -> Optional[Product]:
        check_transition(from_status, to_status)
        oid = _object_id(product_id)
        if oid is None:
            return None

        update = {**fields, "status": to_status.value, "updated_at": datetime.utcnow()}
        try:
            doc = await self.products.find_one_and_update(
                {"_id": oid, "status": from_status.value},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error(f"Failed to update product {product_id}: {e}")
            raise StorageError("Failed to update product", details=str(e))

        if doc is None:
            logger.info(
                f"Transition {from_status.value} -> {to_status.value} skipped",
                extra={"product_id": product_id}
            )
            return None
        return _to_product(doc)

    async def set_channel_message_ids(self, product_id: str, message_ids: List[int]) -> None:
        await self._set(product_id, {"channel_message_ids": list(message_ids)})

    async def set_review_messages(self, product_id: str, messages: List[ReviewMessage]) -> None:
        await self._set(product_id, {"review_messages": [m.model_dump() for m in messages]})

    async def add_review_message(self, product_id: str, message: ReviewMessage) -> bool:
        oid = _object_id(product_id)
        if oid is None:
            return False
        try:
            result = await self.products.update_one(
                {"_id": oid, "status": ProductStatus.PENDING.value},
                {"$push": {"review_messages": message.model_dump()}},
            )
        except PyMongoError as e:
            logger.error(f"Failed to record review message for {product_id}: {e}")
            raise StorageError("Failed to update product", details=str(e))
        return result.matched_count == 1

    async def list_by_seller(self, seller_id: int) -> List[Product]:
        return await self._find({"seller_id": seller_id}, sort=-1)

    async def list_by_status(self, status: ProductStatus) -> List[Product]:
        return await self._find({"status": status.value}, sort=1)

    async def count_by_status(self, status: ProductStatus) -> int:
        try:
            return await self.products.count_documents({"status": status.value})
        except PyMongoError as e:
            raise StorageError("Failed to count products", details=str(e))

    async def _set(self, product_id: str, fields: Dict[str, Any]) -> None:
        oid = _object_id(product_id)
        if oid is None:
            return
        fields["updated_at"] = datetime.utcnow()
        try:
            await self.products.update_one({"_id": oid}, {"$set": fields})
        except PyMongoError as e:
            logger.error(f"Failed to update product {product_id}: {e}")
            raise StorageError("Failed to update product", details=str(e))

    async def _find(self, query: Dict[str, Any], sort: int) -> List[Product]:
        try:
            cursor = self.products.find(query).sort("created_at", sort)
            return [_to_product(doc) async for doc in cursor]
        except PyMongoError as e:
            raise StorageError("Failed to list products", details=str(e))


def _object_id(product_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(product_id)
    except (InvalidId, TypeError):
        return None


def _escape_regex(value: str) -> str:
    return re.escape(value.strip())


def _to_user(doc: Dict[str, Any]) -> User:
    doc = {k: v for k, v in doc.items() if k != "_id"}
    return User(**doc)


def _to_product(doc: Dict[str, Any]) -> Product:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return Product(**doc)
