"""
Database initialization script

Run once to create collections and indexes:
    python scripts/init_db.py
"""

import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
load_dotenv()

from app.core.config import settings
from app.core.logging import setup_logging, get_logger
from app.db.indexes import create_indexes
from app.db.mongo import connect_to_mongo, close_mongo_connection

setup_logging()
logger = get_logger("scripts.init_db")


async def main():
    """Main initialization"""
    logger.info("=" * 60)
    logger.info("  Campus Marketplace Database Setup")
    logger.info("=" * 60)

    client = await connect_to_mongo(settings.MONGODB_URL, settings.MONGODB_DB_NAME)
    db = client[settings.MONGODB_DB_NAME]

    try:
        await create_indexes(db)

        stats = {
            "users": await db.users.count_documents({}),
            "products": await db.products.count_documents({}),
        }
        logger.info("📊 Current documents:")
        logger.info(f"  Users: {stats['users']}")
        logger.info(f"  Products: {stats['products']}")

        for status in ("pending", "approved", "rejected", "sold"):
            count = await db.products.count_documents({"status": status})
            logger.info(f"    {status}: {count}")

        logger.info("✅ Database initialization complete!")

    finally:
        close_mongo_connection(client)


if __name__ == "__main__":
    asyncio.run(main())
