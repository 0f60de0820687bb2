"""
Data model for the asset import.

Source rows are read-only snapshots of one database record. Field mappings
are an explicit table of (target field, source, reference role) so the
fields that need a resolved reference are known before any row is read.
"""

import math
import re
import threading
from dataclasses import dataclass, field
from enum import Enum
from collections.abc import Mapping
from typing import Any, Dict, Iterator, Optional, Tuple

NULL_SENTINEL = "<nil>"

_PLACEHOLDER = re.compile(r"\[([^\[\]]+)\]")


class SourceRow(Mapping):
    """
    One row returned by the source query.

    Behaves as a read-only mapping of column name to raw value. Use
    ``get_text`` to read a value the way it is written to the remote record.
    """

    def __init__(self, values: Mapping[str, Any]):
        self._values = dict(values)

    def __getitem__(self, column: str) -> Any:
        return self._values[column]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"SourceRow({self._values!r})"

    def get_text(self, column: str) -> Optional[str]:
        """
        Returns the column value as text, or None when it carries no value.

        Missing columns, NULL/NaN, blank strings and the "<nil>" sentinel
        all count as no value. Integral floats lose their ".0".
        """
        return to_text(self._values.get(column))

    def render(self, source: str) -> Optional[str]:
        """
        Renders a mapping source against this row.

        A source containing ``[Column]`` placeholders is treated as a
        template; anything else is a column name.
        """
        if not source:
            return None
        if not _PLACEHOLDER.search(source):
            return self.get_text(source)
        rendered = _PLACEHOLDER.sub(lambda m: self.get_text(m.group(1)) or "", source)
        return to_text(rendered)


def to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    if not text or text == NULL_SENTINEL:
        return None
    return text


@dataclass(frozen=True)
class AssetIdentifierSpec:
    """Where to find an asset's natural key, and what to match it against remotely."""
    db_column: str
    entity: str
    entity_column: str


class ReferenceRole(Enum):
    NONE = "none"
    SITE = "site"
    COMPANY = "company"
    DEPARTMENT = "department"
    OWNED_BY = "owned_by"
    USED_BY = "used_by"
    LAST_LOGGED_ON = "last_logged_on"

    @property
    def is_customer(self) -> bool:
        return self in (ReferenceRole.OWNED_BY, ReferenceRole.USED_BY, ReferenceRole.LAST_LOGGED_ON)


# Target fields that carry a resolved reference instead of the raw value.
REFERENCE_FIELDS = {
    "h_site": ReferenceRole.SITE,
    "h_company_name": ReferenceRole.COMPANY,
    "h_department_name": ReferenceRole.DEPARTMENT,
    "h_owned_by": ReferenceRole.OWNED_BY,
    "h_used_by": ReferenceRole.USED_BY,
    "h_last_logged_on_user": ReferenceRole.LAST_LOGGED_ON,
}


@dataclass(frozen=True)
class FieldMapping:
    target_field: str
    source: str = ""
    role: ReferenceRole = ReferenceRole.NONE

    @property
    def is_mapped(self) -> bool:
        return bool(self.source)


def build_mappings(mapping: Optional[Mapping[str, Any]]) -> Tuple[FieldMapping, ...]:
    """Turns a target-field -> source dictionary into a mapping table."""
    entries = []
    for target, source in (mapping or {}).items():
        source = "" if source is None else str(source).strip()
        entries.append(FieldMapping(target, source, REFERENCE_FIELDS.get(target, ReferenceRole.NONE)))
    return tuple(entries)


@dataclass(frozen=True)
class FieldMappingSpec:
    generic: Tuple[FieldMapping, ...] = ()
    type_specific: Tuple[FieldMapping, ...] = ()

    @classmethod
    def from_config(cls, generic: Optional[Mapping[str, Any]],
                    type_specific: Optional[Mapping[str, Any]]) -> "FieldMappingSpec":
        return cls(build_mappings(generic), build_mappings(type_specific))

    def all(self) -> Tuple[FieldMapping, ...]:
        return self.generic + self.type_specific

    def mapping_for(self, role: ReferenceRole) -> Optional[FieldMapping]:
        """Returns the mapped entry for a reference role, if that role is imported."""
        for entry in self.all():
            if entry.role is role and entry.is_mapped:
                return entry
        return None

    def maps_any(self, *roles: ReferenceRole) -> bool:
        return any(self.mapping_for(role) is not None for role in roles)


@dataclass(frozen=True)
class AssetTypeContext:
    """Per asset type values resolved once before any of its rows are processed."""
    name: str
    asset_class: str
    type_id: int
    query: str
    identifier: AssetIdentifierSpec


class Outcome(Enum):
    CREATED = "created"
    CREATE_SKIPPED = "create_skipped"
    CREATE_FAILED = "create_failed"
    UPDATED = "updated"
    UPDATE_SKIPPED = "update_skipped"
    UPDATE_FAILED = "update_failed"
    RELATED_UPDATE_SKIPPED = "related_update_skipped"
    RELATED_UPDATE_FAILED = "related_update_failed"
    FAILED = "failed"


SUMMARY_LABELS = {
    Outcome.CREATED: "Created",
    Outcome.CREATE_SKIPPED: "Create Skipped",
    Outcome.CREATE_FAILED: "Create Failed",
    Outcome.UPDATED: "Updated",
    Outcome.UPDATE_SKIPPED: "Update Skipped",
    Outcome.UPDATE_FAILED: "Update Failed",
    Outcome.RELATED_UPDATE_SKIPPED: "Update Extended Record Skipped",
    Outcome.RELATED_UPDATE_FAILED: "Update Extended Record Failed",
    Outcome.FAILED: "Search Failed",
}


@dataclass
class Counters:
    """
    Run-wide outcome totals.

    Only ``record`` mutates the totals, and it does so under one lock.
    """
    created: int = 0
    create_skipped: int = 0
    create_failed: int = 0
    updated: int = 0
    update_skipped: int = 0
    update_failed: int = 0
    related_update_skipped: int = 0
    related_update_failed: int = 0
    failed: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, outcome: Outcome) -> None:
        with self._lock:
            setattr(self, outcome.value, getattr(self, outcome.value) + 1)

    def get(self, outcome: Outcome) -> int:
        return getattr(self, outcome.value)

    @property
    def total(self) -> int:
        return sum(self.get(outcome) for outcome in Outcome)

    def as_dict(self) -> Dict[str, int]:
        return {outcome.value: self.get(outcome) for outcome in Outcome}
