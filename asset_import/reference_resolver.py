import logging
from dataclasses import dataclass
from typing import Dict, Optional

from xmlmc.facade.xmlmc_facade import SearchResult, XmlmcFacade

from .models import FieldMappingSpec, ReferenceRole, SourceRow
from .reference_cache import (
    CUSTOMER,
    GROUP_TYPE_COMPANY,
    GROUP_TYPE_DEPARTMENT,
    SITE,
    ReferenceCache,
    ResolvedReference,
    group_kind,
)

logger = logging.getLogger(__name__)

# organisational group type searched for each group role
GROUP_TYPES = {
    ReferenceRole.COMPANY: GROUP_TYPE_COMPANY,
    ReferenceRole.DEPARTMENT: GROUP_TYPE_DEPARTMENT,
}


@dataclass(frozen=True)
class RowReference:
    """A reference as it applies to one row: the source key and what it resolved to."""
    key: str
    identifier: str
    display_name: str


class ReferenceResolver:
    """
    Resolves the reference fields of a row, cache first.

    A cache miss falls back to a remote search through the row's own
    facade; a successful search is written back to the cache so each
    distinct key costs at most one round trip per run (two workers racing
    on the same key may both search, and both store the same value).
    """

    def __init__(self, cache: ReferenceCache):
        self.cache = cache

    def resolve(self, row: SourceRow, mappings: FieldMappingSpec,
                facade: XmlmcFacade) -> Dict[ReferenceRole, RowReference]:
        """
        Resolves every mapped reference role present in the row.

        Roles whose key is empty, not found, or whose lookup call failed
        are left out of the result; the row still proceeds without them.
        """
        resolved = {}
        for role in ReferenceRole:
            if role is ReferenceRole.NONE:
                continue
            entry = mappings.mapping_for(role)
            if entry is None:
                continue
            key = row.render(entry.source)
            if key is None:
                continue
            reference = self.resolve_key(role, key, facade)
            if reference is not None:
                resolved[role] = RowReference(key, reference.identifier, reference.display_name)
            logger.debug(f"{entry.target_field} mapping [{entry.source}] : {key} : {reference}")
        return resolved

    def resolve_key(self, role: ReferenceRole, key: str,
                    facade: XmlmcFacade) -> Optional[ResolvedReference]:
        kind = self._kind(role)
        found, cached = self.cache.lookup(kind, key)
        if found:
            return cached

        result = self._search(role, key, facade)
        if not result.call_succeeded:
            logger.warning(f"Unable to resolve {role.value} [{key}]: lookup call failed")
            return None
        if not result.matched:
            logger.debug(f"No {role.value} record found for [{key}]")
            return None

        reference = ResolvedReference(result.resolved_id, result.display_name or "")
        self.cache.store(kind, key, reference)
        return reference

    @staticmethod
    def _kind(role: ReferenceRole) -> str:
        if role is ReferenceRole.SITE:
            return SITE
        if role in GROUP_TYPES:
            return group_kind(GROUP_TYPES[role])
        return CUSTOMER

    @staticmethod
    def _search(role: ReferenceRole, key: str, facade: XmlmcFacade) -> SearchResult:
        if role is ReferenceRole.SITE:
            return facade.search_site(key)
        if role in GROUP_TYPES:
            return facade.search_group(key, GROUP_TYPES[role])
        return facade.search_customer(key)
