"""
app/services/container.py

Purpose: Service wiring

- Builds repositories, session store, transport and services once
  (FastAPI lifespan, scripts, tests)
- Picks Mongo or in-memory storage from settings
"""

from dataclasses import dataclass
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient

from app.core.config import Settings
from app.core.logging import get_logger
from app.db.indexes import create_indexes
from app.db.memory import MemoryProductRepository, MemoryUserRepository
from app.db.mongo import check_database_health, close_mongo_connection, connect_to_mongo
from app.db.repositories import (
    MongoProductRepository,
    MongoUserRepository,
    ProductRepository,
    UserRepository,
)
from app.services.broadcast_service import BroadcastService
from app.services.buyer_service import BuyerService
from app.services.moderation_service import ModerationService
from app.services.session_service import SessionStore
from app.services.telegram_service import TelegramTransport, Transport
from app.services.user_service import UserService

logger = get_logger(__name__)


@dataclass
class Container:
    settings: Settings
    transport: Transport
    users: UserRepository
    products: ProductRepository
    sessions: SessionStore
    user_service: UserService
    moderation: ModerationService
    buyers: BuyerService
    broadcasts: BroadcastService
    mongo_client: Optional[AsyncIOMotorClient] = None

    @property
    def channel(self) -> str:
        return self.settings.CHANNEL_USERNAME

    async def storage_healthy(self) -> bool:
        if self.mongo_client is None:
            return True
        return await check_database_health(self.mongo_client)

    async def close(self) -> None:
        if isinstance(self.transport, TelegramTransport):
            await self.transport.close()
        if self.mongo_client is not None:
            close_mongo_connection(self.mongo_client)


def build_container(
    settings: Settings,
    transport: Transport,
    users: UserRepository,
    products: ProductRepository,
    mongo_client: Optional[AsyncIOMotorClient] = None,
) -> Container:
    user_service = UserService(
        users,
        transport,
        admin_ids=settings.admin_ids,
        channel=settings.CHANNEL_USERNAME,
        require_membership=settings.REQUIRE_CHANNEL_MEMBERSHIP,
    )
    return Container(
        settings=settings,
        transport=transport,
        users=users,
        products=products,
        sessions=SessionStore(timeout_minutes=settings.SESSION_TIMEOUT_MINUTES),
        user_service=user_service,
        moderation=ModerationService(
            products,
            user_service,
            transport,
            channel=settings.CHANNEL_USERNAME,
            send_delay=settings.SEND_DELAY_SECONDS,
        ),
        buyers=BuyerService(products, user_service, transport),
        broadcasts=BroadcastService(
            users,
            user_service,
            transport,
            send_delay=settings.SEND_DELAY_SECONDS,
        ),
        mongo_client=mongo_client,
    )


async def create_container(settings: Settings, transport: Optional[Transport] = None) -> Container:
    """
    Connects storage and the Bot API client according to settings.

    Raises:
        ConnectionError: If the Mongo backend cannot be reached
    """
    if transport is None:
        transport = TelegramTransport(
            settings.BOT_TOKEN,
            base_url=settings.TELEGRAM_API_URL,
            timeout=settings.TELEGRAM_TIMEOUT,
        )

    if settings.STORAGE_BACKEND == "memory":
        logger.warning("Using in-memory storage; data is lost on restart")
        return build_container(settings, transport, MemoryUserRepository(), MemoryProductRepository())

    client = await connect_to_mongo(settings.MONGODB_URL, settings.MONGODB_DB_NAME)
    db = client[settings.MONGODB_DB_NAME]
    await create_indexes(db)
    return build_container(
        settings,
        transport,
        MongoUserRepository(db),
        MongoProductRepository(db),
        mongo_client=client,
    )
