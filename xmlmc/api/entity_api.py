from .xmlmc_api import XmlmcAPI, XmlmcResponse, APP_SERVICE_MANAGER
from typing import Dict, List, Any, Optional, Tuple


def response_rows(response: XmlmcResponse) -> List[Dict[str, Any]]:
    """
    Extracts the browsed rows from an entityBrowseRecords2 response.

    The server returns a single object rather than a list when exactly one
    row matches, and omits rowData entirely when nothing matches.
    """
    row_data = response.params.get('rowData') or {}
    rows = row_data.get('row') if isinstance(row_data, dict) else None
    if rows is None:
        return []
    if isinstance(rows, dict):
        return [rows]
    return list(rows)


def modified_columns(response: XmlmcResponse, section: str = 'primaryEntityData') -> Dict[str, Any]:
    """
    Extracts the modified record columns returned when returnModifiedData is set.

    Args:
        response: The add or update response.
        section: 'primaryEntityData' or 'relatedEntityData'.
    """
    data = response.params.get(section) or {}
    record = data.get('record') if isinstance(data, dict) else None
    if isinstance(record, list):
        merged = {}
        for item in record:
            merged.update(item or {})
        return merged
    return dict(record or {})


class EntityAPI(XmlmcAPI):
    def browse_records(self, entity: str, filters: List[Tuple[str, Any]], max_results: int = 1,
                       row_start: int = 0, application: str = APP_SERVICE_MANAGER) -> XmlmcResponse:
        """
        Browses entity records with exact-match column filters.

        Args:
            entity: The entity name.
            filters: (column, value) pairs, all of which must match exactly.
            max_results: Maximum number of rows to return.
            row_start: Offset of the first row, for paging.
            application: The application owning the entity.
        """
        params = {
            'application': application,
            'entity': entity,
            'searchFilter': [
                {'column': column, 'value': str(value), 'matchType': 'exact'}
                for column, value in filters
            ],
            'maxResults': max_results,
        }
        if row_start:
            params['rowStart'] = row_start
        return self.invoke('data', 'entityBrowseRecords2', params)

    def add_record(self, entity: str, record: Dict[str, Any],
                   related: Optional[Dict[str, Any]] = None,
                   application: str = APP_SERVICE_MANAGER) -> XmlmcResponse:
        """
        Adds a record, optionally with a related record in the same call.

        Args:
            entity: The entity name.
            record: The primary record columns.
            related: Related entity data: relationshipName, entityAction and record.
            application: The application owning the entity.
        """
        params = {
            'application': application,
            'entity': entity,
            'returnModifiedData': True,
            'primaryEntityData': {'record': record},
        }
        if related:
            params['relatedEntityData'] = related
        return self.invoke('data', 'entityAddRecord', params)

    def update_record(self, entity: str, record: Dict[str, Any],
                      related: Optional[Dict[str, Any]] = None,
                      application: str = APP_SERVICE_MANAGER) -> XmlmcResponse:
        """
        Updates a record. The record must carry the entity primary key.

        Args:
            entity: The entity name.
            record: The primary record columns, including the key column.
            related: Related entity data: relationshipName, entityAction and record.
            application: The application owning the entity.
        """
        params = {
            'application': application,
            'entity': entity,
            'returnModifiedData': True,
            'primaryEntityData': {'record': record},
        }
        if related:
            params['relatedEntityData'] = related
        return self.invoke('data', 'entityUpdateRecord', params)
