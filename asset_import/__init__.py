__version__ = "1.0.0"

from .models import (
    SourceRow,
    AssetIdentifierSpec,
    FieldMapping,
    FieldMappingSpec,
    ReferenceRole,
    AssetTypeContext,
    Outcome,
    Counters,
)
from .reference_cache import ReferenceCache, ResolvedReference
from .reference_resolver import ReferenceResolver
from .field_mapper import FieldMapper, build_urn
from .reconciler import AssetReconciler
from .coordinator import ConcurrencyCoordinator, validate_concurrency
from .exceptions import AssetImportError, ConfigurationError, SourceQueryError

__all__ = [
    'SourceRow',
    'AssetIdentifierSpec',
    'FieldMapping',
    'FieldMappingSpec',
    'ReferenceRole',
    'AssetTypeContext',
    'Outcome',
    'Counters',
    'ReferenceCache',
    'ResolvedReference',
    'ReferenceResolver',
    'FieldMapper',
    'build_urn',
    'AssetReconciler',
    'ConcurrencyCoordinator',
    'validate_concurrency',
    'AssetImportError',
    'ConfigurationError',
    'SourceQueryError',
]
