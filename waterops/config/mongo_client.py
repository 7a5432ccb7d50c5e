import logging
from typing import Optional

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

# Configure logging
logger = logging.getLogger(__name__)


class OperationsMongoClient:
    """
    Wrapper for MongoDB connection handling for the operations store.
    Connects lazily and fails fast when the server is unreachable.
    """

    def __init__(self, uri: str, db_name: str):
        self._uri = uri
        self._db_name = db_name
        self._client: Optional[MongoClient] = None

    def connect(self) -> None:
        """
        Establishes the MongoDB connection.
        Raises connection errors immediately instead of on the first query.
        """
        if not self._uri:
            raise ValueError("MONGO_URI is not set.")

        # Mask credentials before logging the target
        masked_uri = self._uri.split("@")[1] if "@" in self._uri else self._uri
        logger.info(f"Connecting to MongoDB at {masked_uri} (database: {self._db_name})")

        try:
            # tz_aware so datetimes come back as UTC-aware values
            self._client = MongoClient(
                self._uri,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=5000,
                tz_aware=True,
            )

            # Lightweight verification command
            self._client.admin.command('ping')
            logger.info("✅ Connected to MongoDB successfully.")

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.critical(f"❌ Failed to connect to MongoDB: {e}")
            raise

    def get_db(self) -> Database:
        if not self._client:
            self.connect()
        return self._client.get_database(self._db_name)

    def close(self):
        """Closes the connection."""
        if self._client:
            self._client.close()
            self._client = None
            logger.info("MongoDB connection closed.")
