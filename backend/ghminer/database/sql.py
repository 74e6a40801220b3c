"""
Relational database connection helpers.
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ArgumentError

from ghminer.services.pipeline_exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def get_engine(settings) -> Engine:
    """Pooled engine shared by all worker threads of one process run."""
    url = settings.require_sql()
    try:
        engine = create_engine(url, pool_pre_ping=True)
    except (ArgumentError, ImportError) as exc:
        raise ConfigurationError(f"Cannot create database engine: {exc}") from exc
    logger.info(f"Connected relational store ({engine.dialect.name})")
    return engine
