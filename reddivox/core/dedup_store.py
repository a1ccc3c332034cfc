"""Session-scoped store of consumed content identifiers."""

import logging
import threading
from typing import Iterable

from reddivox.core.exceptions import InvalidArgumentError

logger = logging.getLogger("reddivox")


class SessionDedupStore:
    """Thread-safe set of content ids consumed during one running session.

    Entries live as long as the store instance. There is no eviction and no
    persistence. The lock is never held across an await, so the store can
    be shared by asyncio tasks and worker threads alike.
    """

    def __init__(self, initial: Iterable[str] = ()):
        self._lock = threading.Lock()
        self._ids: set[str] = set(initial)

    def contains(self, content_id: str) -> bool:
        with self._lock:
            return content_id in self._ids

    def add(self, content_id: str) -> bool:
        """Insert an id. Idempotent.

        Returns:
            True if the id was newly added, False if already present

        Raises:
            InvalidArgumentError: content_id is empty
        """
        if not content_id:
            raise InvalidArgumentError("content_id must be non-empty")
        with self._lock:
            if content_id in self._ids:
                return False
            self._ids.add(content_id)
        logger.debug(f"Marked {content_id} as consumed")
        return True

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._ids)

    def __contains__(self, content_id: object) -> bool:
        return isinstance(content_id, str) and self.contains(content_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)
