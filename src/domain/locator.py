"""
Locator for the root records of a batch run.
"""

import logging
from typing import Iterator

from services import dynamodb as dynamodb_service

logger = logging.getLogger(__name__)


class RootCursor:
    """
    Lazy, re-iterable sequence of root ids.

    Every iteration starts a fresh paged scan of the store.
    """

    def __init__(self, store):
        self._store = store

    def __iter__(self) -> Iterator[str]:
        return iter(self._store.scan_root_ids())


class Locator:
    """Produces the cursor over every root record in the store."""

    def __init__(self, store=None):
        self._store = store or dynamodb_service

    def open(self) -> RootCursor:
        """
        Check the store is reachable and return a cursor over all root ids.

        Raises:
            StoreUnreachable: If the store cannot be reached
        """
        self._store.check_root_table()
        logger.info("Root cursor opened")
        return RootCursor(self._store)
