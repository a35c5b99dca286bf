"""MongoDB database connection and management."""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING
from typing import Optional
from preanesthesia.config.settings import settings
import logging

logger = logging.getLogger(__name__)


class Database:
    """MongoDB database connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    database: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB and make sure the indexes exist."""
        try:
            cls.client = AsyncIOMotorClient(settings.mongodb_uri)
            cls.database = cls.client[settings.mongodb_database]

            # Test connection
            await cls.client.admin.command("ping")
            logger.info(f"Connected to MongoDB: {settings.mongodb_database}")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

        await cls.ensure_indexes()

    @classmethod
    async def ensure_indexes(cls):
        """Create the unique and lookup indexes the services rely on."""
        patients = cls.get_collection(settings.mongodb_collection_patients)
        await patients.create_index([("national_id", ASCENDING)], unique=True)
        await patients.create_index([("session_key", ASCENDING)], unique=True)

        # One conversation per session key; the bootstrap upsert depends on it
        conversations = cls.get_collection(settings.mongodb_collection_conversations)
        await conversations.create_index([("session_key", ASCENDING)], unique=True)

        recommendations = cls.get_collection(
            settings.mongodb_collection_recommendations
        )
        await recommendations.create_index(
            [("session_key", ASCENDING), ("created_at", ASCENDING)]
        )
        logger.info("MongoDB indexes ensured")

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection."""
        if cls.client:
            cls.client.close()
            logger.info("Closed MongoDB connection")
        cls.client = None
        cls.database = None

    @classmethod
    def get_database(cls) -> AsyncIOMotorDatabase:
        """Get database instance."""
        if cls.database is None:
            raise RuntimeError("Database not initialized. Call connect_db() first.")
        return cls.database

    @classmethod
    def get_collection(cls, collection_name: str):
        """Get a collection from the database."""
        db = cls.get_database()
        return db[collection_name]


# Convenience functions
async def get_patients_collection():
    """Get patients collection."""
    return Database.get_collection(settings.mongodb_collection_patients)


async def get_conversations_collection():
    """Get conversations collection."""
    return Database.get_collection(settings.mongodb_collection_conversations)


async def get_recommendations_collection():
    """Get recommendations collection."""
    return Database.get_collection(settings.mongodb_collection_recommendations)
