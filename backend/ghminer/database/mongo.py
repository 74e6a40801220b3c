from __future__ import annotations

"""
MongoDB connection helpers.
"""

import logging

from pymongo import MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)

_client: MongoClient | None = None


def get_client(settings=None) -> MongoClient:
    global _client
    if _client is None:
        # Import settings lazily to ensure env vars are loaded
        if settings is None:
            from ghminer.config import get_settings

            settings = get_settings()

        uri = settings.require_mongo()
        logger.info(f"Initializing MongoClient for database {settings.MONGODB_DB_NAME}")
        _client = MongoClient(uri)
    return _client


def get_database(settings=None) -> Database:
    if settings is None:
        from ghminer.config import get_settings

        settings = get_settings()

    client = get_client(settings)
    return client[settings.MONGODB_DB_NAME]


def close_client() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
