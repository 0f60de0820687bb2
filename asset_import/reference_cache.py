import logging
import threading
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

SITE = "site"
CUSTOMER = "customer"

GROUP_TYPE_COMPANY = "5"
GROUP_TYPE_DEPARTMENT = "2"


def group_kind(group_type: str) -> str:
    """Cache kind for organisational groups of one type."""
    return f"group:{group_type}"


@dataclass(frozen=True)
class ResolvedReference:
    """A remote identifier and its display name."""
    identifier: str
    display_name: str = ""


class ReferenceCache:
    """
    In-memory lookup of resolved references keyed by (kind, natural key).

    The cache never calls the remote service. Entries are replaced whole
    under a lock, so concurrent backfills of the same key are harmless.
    Nothing is evicted or refreshed during a run.
    """

    def __init__(self):
        self._entries: Dict[Tuple[str, str], ResolvedReference] = {}
        self._lock = threading.Lock()

    def lookup(self, kind: str, key: str) -> Tuple[bool, Optional[ResolvedReference]]:
        with self._lock:
            value = self._entries.get((kind, key))
        return value is not None, value

    def store(self, kind: str, key: str, value: ResolvedReference) -> None:
        with self._lock:
            self._entries[(kind, key)] = value

    def warm(self, kind: str, entries: Mapping[str, Tuple[str, str]]) -> int:
        """
        Bulk-loads (identifier, display name) pairs for one kind.

        Returns:
            int: The number of entries loaded.
        """
        loaded = {(kind, key): ResolvedReference(identifier, name)
                  for key, (identifier, name) in entries.items()}
        with self._lock:
            self._entries.update(loaded)
        logger.info(f"Cached {len(loaded)} {kind} records")
        return len(loaded)

    def size(self, kind: str) -> int:
        with self._lock:
            return sum(1 for entry_kind, _ in self._entries if entry_kind == kind)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
