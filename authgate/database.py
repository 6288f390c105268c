from authgate.config import get_settings
from authgate.utils.logger import get_logger
from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie

settings = get_settings()
logger = get_logger("database")

DEFAULT_DB_NAME = "authgate"

_mongo_client: AsyncIOMotorClient | None = None


async def init_db() -> None:
    """Initialize MongoDB (Beanie) and register document models."""
    global _mongo_client
    _mongo_client = AsyncIOMotorClient(settings.MONGODB_URI, tz_aware=True)
    from authgate.models import DOCUMENT_MODELS

    # Database name comes from the URI path when present
    database = _mongo_client.get_default_database(DEFAULT_DB_NAME)
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    logger.info(f"Beanie initialised on database '{database.name}'")


async def ping_db() -> bool:
    """Check MongoDB connectivity."""
    if not _mongo_client:
        return False
    try:
        await _mongo_client.admin.command("ping")
        return True
    except Exception as e:
        logger.warning(f"Database ping failed: {e}")
        return False


def close_db() -> None:
    global _mongo_client
    if _mongo_client:
        _mongo_client.close()
        _mongo_client = None
