"""MongoDB Client - Connection and Collection Management"""
from typing import Any, Dict, Optional
from pymongo import MongoClient as PyMongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING
from pymongo.errors import ConnectionFailure

from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            tz_aware=True,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
        )
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def get_collection(name: str) -> Collection:
    """Get a collection from the database"""
    db = get_database()
    return db[name]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def create_indexes() -> None:
    """Create all required indexes"""
    db = get_database()
    logger.info("Creating MongoDB indexes...")
    
    # Circuits collection
    circuits = db["circuits"]
    circuits.create_index("circuit_id", unique=True)
    circuits.create_index("circuit_key", unique=True)
    circuits.create_index("is_active")
    
    # Steps collection
    steps = db["steps"]
    steps.create_index("step_id", unique=True)
    steps.create_index([("circuit_id", ASCENDING), ("order_index", ASCENDING)])
    
    # Statuses collection
    statuses = db["statuses"]
    statuses.create_index("status_id", unique=True)
    statuses.create_index([("step_id", ASCENDING), ("created_at", ASCENDING)])
    
    # Actions collection
    actions = db["actions"]
    actions.create_index("action_id", unique=True)
    actions.create_index("action_key", unique=True)
    actions.create_index("step_id")
    
    # Document workflow states collection
    states = db["document_workflow_states"]
    states.create_index("document_id", unique=True)
    states.create_index("circuit_id")
    states.create_index("current_step_id")
    states.create_index("lifecycle_status")
    
    # Document history collection (append-only)
    history = db["document_history"]
    history.create_index("history_id", unique=True)
    history.create_index([("document_id", ASCENDING), ("processed_at", ASCENDING)])
    history.create_index([("step_id", ASCENDING), ("processed_at", ASCENDING)])
    history.create_index("correlation_id")
    
    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        client = get_client()
        client.admin.command("ping")
        return {
            "status": "healthy",
            "database": settings.mongo_db,
            "connection": "ok"
        }
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": settings.mongo_db,
            "error": str(e)
        }
