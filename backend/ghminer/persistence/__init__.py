"""Persister adapters for mirrored GitHub resources."""

import logging
from typing import Callable, Dict

from ghminer.persistence.base import BasePersister, Document
from ghminer.persistence.mongo_persister import MongoPersister
from ghminer.persistence.noop_persister import NoopPersister
from ghminer.services.pipeline_exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _mongo(settings) -> BasePersister:
    from ghminer.database.mongo import get_database

    persister = MongoPersister(get_database(settings))
    persister.ensure_indexes()
    return persister


def _noop(settings) -> BasePersister:
    return NoopPersister()


ADAPTERS: Dict[str, Callable[..., BasePersister]] = {
    "mongo": _mongo,
    "noop": _noop,
}


def connect(adapter: str, settings) -> BasePersister:
    try:
        factory = ADAPTERS[adapter]
    except KeyError:
        raise ConfigurationError(
            f"Unknown persister adapter {adapter!r}, expected one of {sorted(ADAPTERS)}"
        ) from None
    logger.info(f"Using {adapter} persister")
    return factory(settings)


__all__ = ["ADAPTERS", "BasePersister", "Document", "MongoPersister", "NoopPersister", "connect"]
