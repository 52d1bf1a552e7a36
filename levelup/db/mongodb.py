"""
MongoDB Access

One collection: `github_snapshots`, a document per profile capture
(topics, repo counts, recent commit days, raw follower numbers).
Documents are only ever read back as "latest N for a user".
"""
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from levelup.core.config import get_settings
from levelup.core.logging_config import get_logger

settings = get_settings()
logger = get_logger(__name__)

GITHUB_SNAPSHOTS = "github_snapshots"

# pymongo pools connections inside the client; one per process
_client: MongoClient = None


def get_mongo_client() -> MongoClient:
    global _client
    if _client is None:
        _client = MongoClient(
            settings.mongodb_uri,
            serverSelectionTimeoutMS=settings.mongodb_timeout_ms,
            tz_aware=True
        )
    return _client


def get_mongo_db() -> Database:
    return get_mongo_client()[settings.mongodb_db]


def get_collection(name: str) -> Collection:
    return get_mongo_db()[name]


def test_mongo_connection() -> bool:
    """True when MongoDB answers a ping."""
    try:
        get_mongo_client().admin.command("ping")
        return True
    except PyMongoError as e:
        logger.error("MongoDB connection failed: %s", e)
        return False


def init_mongo_indexes():
    """Create the snapshot lookup index. Safe to call on every startup."""
    get_collection(GITHUB_SNAPSHOTS).create_index(
        [("user_id", ASCENDING), ("captured_at", DESCENDING)],
        name="user_latest_snapshot"
    )
    logger.info("MongoDB indexes ensured on %s", GITHUB_SNAPSHOTS)
