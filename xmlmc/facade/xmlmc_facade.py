from ..api.xmlmc_api import (
    APP_SERVICE_MANAGER,
    XmlmcError,
    XmlmcResponseError,
    create_headers,
)
from ..api.entity_api import EntityAPI, response_rows, modified_columns
from dataclasses import dataclass, field
import logging
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

NO_VALUES_TO_UPDATE = "There are no values to update"
DEFAULT_PAGE_SIZE = 500

ASSET_ENTITY = "Asset"
ASSET_KEY_COLUMN = "h_pk_asset_id"


@dataclass
class SearchResult:
    """
    Outcome of a single-entity exact-match search.

    ``call_succeeded`` is False when the call itself failed; in that case
    ``matched`` carries no information about whether the record exists.
    """
    matched: bool
    call_succeeded: bool
    resolved_id: Optional[str] = None
    display_name: Optional[str] = None


@dataclass
class WriteResult:
    """Outcome of an add or update call that reached the server."""
    success: bool
    changed_columns: List[str] = field(default_factory=list)
    primary_key: Optional[str] = None
    error: str = ""


class XmlmcFacade:
    """
    Remote lookup client for the asset import.

    Wraps single-entity searches and record writes. A facade holds only
    configuration, so every worker builds its own instead of sharing one.
    """

    def __init__(self, endpoint, api_key, user_id_column="h_user_id",
                 application=APP_SERVICE_MANAGER, timeout=60):
        headers = create_headers(api_key)
        self.entities = EntityAPI(endpoint, headers, timeout=timeout)
        self.user_id_column = user_id_column
        self.application = application

    # ------------------------------------------------------------------
    # Searches
    # ------------------------------------------------------------------

    def search_entity(self, entity: str, column: str, value: str,
                      return_column: str = ASSET_KEY_COLUMN,
                      name_column: Optional[str] = None,
                      extra_filters: Optional[List[Tuple[str, Any]]] = None) -> SearchResult:
        """
        Searches for one record where ``column`` exactly matches ``value``.

        Args:
            entity: The entity to search.
            column: The column to match against.
            value: The value to match.
            return_column: The column holding the identifier to return.
            name_column: Optional column holding a display name to return.
            extra_filters: Additional exact-match (column, value) filters.

        Returns:
            SearchResult: matched/call_succeeded flags with the resolved id.
        """
        filters = [(column, value)] + list(extra_filters or [])
        try:
            response = self.entities.browse_records(entity, filters, max_results=1,
                                                    application=self.application)
        except XmlmcError as e:
            logger.error(f"Search of {entity}.{column} for [{value}] failed: {e}")
            return SearchResult(matched=False, call_succeeded=False)

        if not response.ok:
            logger.warning(f"Unable to search {entity}.{column} for [{value}]: {response.error}")
            return SearchResult(matched=False, call_succeeded=False)

        rows = response_rows(response)
        if not rows:
            return SearchResult(matched=False, call_succeeded=True)

        row = rows[0]
        resolved_id = row.get(return_column)
        if resolved_id in (None, ""):
            return SearchResult(matched=False, call_succeeded=True)
        display_name = row.get(name_column) if name_column else None
        return SearchResult(
            matched=True,
            call_succeeded=True,
            resolved_id=str(resolved_id),
            display_name=str(display_name) if display_name is not None else None,
        )

    def search_site(self, site_name: str) -> SearchResult:
        return self.search_entity("Site", "h_site_name", site_name,
                                  return_column="h_id", name_column="h_site_name")

    def search_group(self, group_name: str, group_type: str) -> SearchResult:
        return self.search_entity("Group", "h_name", group_name,
                                  return_column="h_id", name_column="h_name",
                                  extra_filters=[("h_type", group_type)])

    def search_customer(self, user_id: str) -> SearchResult:
        return self.search_entity("UserAccount", self.user_id_column, user_id,
                                  return_column="h_user_id", name_column="h_name")

    def get_asset_class(self, asset_type: str) -> Optional[Tuple[str, int]]:
        """
        Gets the asset class and numeric type id for an asset type name.

        Returns:
            (asset_class, type_id), or None when the type does not exist.

        Raises:
            XmlmcError: If the lookup call fails or returns a protocol error.
            XmlmcResponseError: If the type record has no class or no integer type id.
        """
        response = self.entities.browse_records("AssetsTypes", [("h_name", asset_type)],
                                                max_results=1, application=self.application)
        if not response.ok:
            raise XmlmcError(f"Unable to look up asset type {asset_type}: {response.error}")
        rows = response_rows(response)
        if not rows:
            return None

        asset_class = rows[0].get("h_class")
        type_id = rows[0].get("h_pk_type_id")
        if not asset_class:
            raise XmlmcResponseError(f"Asset type {asset_type} has no asset class")
        try:
            return str(asset_class), int(str(type_id).strip())
        except ValueError:
            raise XmlmcResponseError(f"Asset type {asset_type} has no usable type id: {type_id!r}")

    # ------------------------------------------------------------------
    # Bulk listings used to warm the reference cache
    # ------------------------------------------------------------------

    def _browse_all(self, entity, filters=None, page_size=DEFAULT_PAGE_SIZE):
        rows = []
        row_start = 0
        while True:
            response = self.entities.browse_records(entity, filters or [], max_results=page_size,
                                                    row_start=row_start,
                                                    application=self.application)
            if not response.ok:
                raise XmlmcError(f"Unable to list {entity} records: {response.error}")
            page = response_rows(response)
            rows.extend(page)
            if len(page) < page_size:
                return rows
            row_start += page_size

    def _index(self, rows, key_column, id_column, name_column) -> Dict[str, Tuple[str, str]]:
        index = {}
        for row in rows:
            key = row.get(key_column)
            if key in (None, ""):
                continue
            index[str(key)] = (str(row.get(id_column, "")), str(row.get(name_column) or ""))
        return index

    def list_sites(self) -> Dict[str, Tuple[str, str]]:
        """Site name -> (site id, site name)."""
        return self._index(self._browse_all("Site"), "h_site_name", "h_id", "h_site_name")

    def list_groups(self, group_type: str) -> Dict[str, Tuple[str, str]]:
        """Group name -> (group id, group name), for one group type."""
        rows = self._browse_all("Group", [("h_type", group_type)])
        return self._index(rows, "h_name", "h_id", "h_name")

    def list_customers(self) -> Dict[str, Tuple[str, str]]:
        """Configured user id column value -> (user id, display name)."""
        rows = self._browse_all("UserAccount")
        return self._index(rows, self.user_id_column, "h_user_id", "h_name")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _write_result(self, response, key_column=None) -> WriteResult:
        if not response.ok:
            if response.error == NO_VALUES_TO_UPDATE:
                return WriteResult(success=True)
            return WriteResult(success=False, error=response.error)

        primary = modified_columns(response, "primaryEntityData")
        related = modified_columns(response, "relatedEntityData")
        changed = [col for col in list(primary) + list(related) if col != key_column]
        primary_key = primary.get(key_column) if key_column else None
        return WriteResult(
            success=True,
            changed_columns=changed,
            primary_key=str(primary_key) if primary_key not in (None, "") else None,
        )

    def create_record(self, entity: str, fields: Dict[str, Any],
                      related: Optional[Dict[str, Any]] = None,
                      key_column: str = ASSET_KEY_COLUMN) -> WriteResult:
        """
        Creates a record, with an optional related record.

        Raises:
            XmlmcTransportError: If the request could not be delivered.
            XmlmcResponseError: If the response could not be read.
        """
        response = self.entities.add_record(entity, fields, related, application=self.application)
        return self._write_result(response, key_column)

    def update_record(self, entity: str, key_column: str, key: str, fields: Dict[str, Any],
                      related: Optional[Dict[str, Any]] = None) -> WriteResult:
        """
        Updates the record identified by ``key``.

        A "no values to update" response is a successful update with an
        empty change set.

        Raises:
            XmlmcTransportError: If the request could not be delivered.
            XmlmcResponseError: If the response could not be read.
        """
        record = {key_column: key}
        record.update(fields)
        response = self.entities.update_record(entity, record, related, application=self.application)
        return self._write_result(response, key_column)
