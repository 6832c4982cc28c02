"""
app/db/mongo.py

Purpose: MongoDB connection setup

- Initializes Motor client with connection pooling
- Collections: users, products
- Health checks and retry logic
"""

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
import asyncio
from app.core.logging import get_logger

logger = get_logger(__name__)


async def connect_to_mongo(url: str, db_name: str, max_retries: int = 3) -> AsyncIOMotorClient:
    """
    Establishes connection to MongoDB with retry logic.
    Called during application startup.

    Returns:
        A connected AsyncIOMotorClient

    Raises:
        ConnectionError: If every attempt failed
    """
    retry_delay = 2

    for attempt in range(1, max_retries + 1):
        try:
            logger.info(
                f"Attempting to connect to MongoDB (attempt {attempt}/{max_retries})"
            )

            # Fix URL encoding for special characters
            mongodb_url = url.replace("%%", "%25")

            client = AsyncIOMotorClient(
                mongodb_url,
                maxPoolSize=50,
                minPoolSize=5,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                retryWrites=True,
                retryReads=True,
            )

            # Verify connection
            await client.admin.command("ping")

            logger.info(f"✅ Successfully connected to MongoDB: {db_name}")
            return client

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(
                f"Failed to connect to MongoDB (attempt {attempt}/{max_retries}): {e}"
            )

            if attempt < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2  # Exponential backoff
            else:
                logger.critical("Failed to connect to MongoDB after all retries")
                raise ConnectionError("Could not establish MongoDB connection") from e

    raise ConnectionError("Could not establish MongoDB connection")


def close_mongo_connection(client: AsyncIOMotorClient):
    """
    Closes the MongoDB connection.
    Called during application shutdown.
    """
    logger.info("Closing MongoDB connection")
    client.close()
    logger.info("MongoDB connection closed")


async def check_database_health(client: AsyncIOMotorClient) -> bool:
    """
    Checks if the database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        await client.admin.command("ping")
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False
