from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure
import logging
from typing import Optional, Tuple
from .config import get_db_config

logger = logging.getLogger(__name__)

def get_motor_client(uri: Optional[str] = None) -> AsyncIOMotorClient:
    """Get an async MongoDB client with proper connection settings."""
    db_config = get_db_config()
    uri = uri or db_config.get("uri")
    options = db_config.get("options", {})

    return AsyncIOMotorClient(
        uri,
        serverSelectionTimeoutMS=options.get("serverSelectionTimeoutMS", 5000),
        socketTimeoutMS=options.get("socketTimeoutMS", 20000),
        connectTimeoutMS=options.get("connectTimeoutMS", 10000),
        maxPoolSize=options.get("maxPoolSize", 50),
        tz_aware=True,
    )

async def connect_database(uri: Optional[str] = None, database_name: Optional[str] = None) -> Tuple[AsyncIOMotorClient, AsyncIOMotorDatabase]:
    """Connect to MongoDB, verify the connection and return the client and database."""
    db_config = get_db_config()
    client = get_motor_client(uri)
    try:
        # Test connection
        await client.admin.command('ping')
        logger.info("Successfully connected to MongoDB")
    except ConnectionFailure as e:
        logger.error(f"Failed to connect to MongoDB: {e}")
        client.close()
        raise
    return client, client[database_name or db_config["database"]]
