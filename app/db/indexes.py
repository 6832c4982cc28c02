"""
app/db/indexes.py

Purpose: Database index management

- Creates unique and performance indexes
- Ensures fast lookups and data integrity
"""

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes(db: AsyncIOMotorDatabase):
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        users = db["users"]
        products = db["products"]

        logger.info("Creating database indexes...")

        # ==============================================
        # USERS COLLECTION INDEXES
        # ==============================================

        # Unique index on telegram_id (primary identifier)
        await users.create_index("telegram_id", unique=True, name="telegram_id_unique")
        logger.debug("Created unique index on users.telegram_id")

        # Broadcast filters
        await users.create_index("department", name="department_idx")
        await users.create_index("joined_channel", name="joined_channel_idx")
        logger.debug("Created broadcast filter indexes on users")

        # ==============================================
        # PRODUCTS COLLECTION INDEXES
        # ==============================================

        # Pending queue and admin counts
        await products.create_index(
            [("status", 1), ("created_at", 1)],
            name="status_created_idx"
        )
        logger.debug("Created compound index on products.status + created_at")

        # Seller's listings
        await products.create_index(
            [("seller_id", 1), ("created_at", -1)],
            name="seller_products_idx"
        )
        logger.debug("Created compound index on products.seller_id + created_at")

        logger.info("✅ All database indexes created successfully")

        user_indexes = await users.index_information()
        product_indexes = await products.index_information()

        logger.info(
            f"Index summary: Users={len(user_indexes)}, "
            f"Products={len(product_indexes)}"
        )

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise
