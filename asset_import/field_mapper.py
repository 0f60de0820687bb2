"""
Builds remote record field sets from a source row and its resolved references.
"""

import logging
from typing import Dict, Mapping, Optional, Sequence

from .models import FieldMapping, ReferenceRole, SourceRow
from .reference_resolver import RowReference

logger = logging.getLogger(__name__)


def build_urn(display_name: Optional[str], key: Optional[str]) -> Optional[str]:
    """
    Builds the customer URN ``urn:sys:0:<display name>:<key>``.

    Returns None unless both parts are present.
    """
    if not display_name or not key:
        return None
    return f"urn:sys:0:{display_name}:{key}"


def _customer_fields(field_name: str, reference: RowReference, with_name: bool) -> Dict[str, str]:
    urn = build_urn(reference.display_name, reference.key)
    if urn is None:
        return {}
    fields = {field_name: urn}
    if with_name:
        fields[f"{field_name}_name"] = reference.display_name
    return fields


def _reference_fields(entry: FieldMapping, reference: Optional[RowReference]) -> Dict[str, str]:
    if reference is None:
        return {}
    role = entry.role
    if role in (ReferenceRole.OWNED_BY, ReferenceRole.USED_BY):
        return _customer_fields(entry.target_field, reference, with_name=True)
    if role is ReferenceRole.LAST_LOGGED_ON:
        return _customer_fields(entry.target_field, reference, with_name=False)
    if not reference.identifier or not reference.key:
        return {}
    if role is ReferenceRole.SITE:
        return {"h_site": reference.key, "h_site_id": reference.identifier}
    if role is ReferenceRole.COMPANY:
        return {"h_company_name": reference.key, "h_company_id": reference.identifier}
    if role is ReferenceRole.DEPARTMENT:
        return {"h_department_name": reference.key, "h_department_id": reference.identifier}
    return {}


class FieldMapper:
    """Applies a mapping table to a row."""

    def materialize(self, mappings: Sequence[FieldMapping], row: SourceRow,
                    references: Mapping[ReferenceRole, RowReference]) -> Dict[str, str]:
        """
        Builds the field set for one record.

        Plain fields are copied when their source renders to a value.
        Reference fields are written only from their resolved reference,
        never from the raw source value.

        Args:
            mappings: The mapping entries for the record.
            row: The source row.
            references: Resolved references for the row, keyed by role.

        Returns:
            Dict[str, str]: Target field -> value, without empty values.
        """
        fields = {}
        reference_fields = {}
        for entry in mappings:
            if not entry.is_mapped:
                continue
            if entry.role is not ReferenceRole.NONE:
                reference_fields.update(_reference_fields(entry, references.get(entry.role)))
                continue
            value = row.render(entry.source)
            if value is not None:
                fields[entry.target_field] = value
        # resolved references override any plain mapping of the same field
        fields.update(reference_fields)
        return fields
