import functools
import logging
import time
from typing import Callable, Optional

from xmlmc.api.xmlmc_api import XmlmcError
from xmlmc.facade.xmlmc_facade import XmlmcFacade

from .config import AssetTypeConfig, ImportConfig
from .coordinator import ConcurrencyCoordinator
from .exceptions import SourceQueryError
from .field_mapper import FieldMapper
from .models import SUMMARY_LABELS, AssetTypeContext, Counters, Outcome, ReferenceRole
from .reconciler import AssetReconciler
from .reference_cache import (
    CUSTOMER,
    GROUP_TYPE_COMPANY,
    GROUP_TYPE_DEPARTMENT,
    SITE,
    ReferenceCache,
    group_kind,
)
from .reference_resolver import ReferenceResolver

logger = logging.getLogger(__name__)


class AssetImporter:
    """
    Runs one import: warms the reference cache, then reconciles the rows of
    each configured asset type and reports the totals.
    """

    def __init__(self, config: ImportConfig, source, facade_factory: Callable[[], XmlmcFacade],
                 max_concurrent: int = 1, dry_run: bool = False,
                 cache: Optional[ReferenceCache] = None):
        """
        Args:
            config: The validated import configuration.
            source: Source query executor exposing ``run_query(sql)``.
            facade_factory: Builds a new remote client; called once per row
                and once for the run's own lookups.
            max_concurrent: Rows processed at once (1-10).
            dry_run: Resolve and map everything but write nothing.
            cache: Reference cache; a new one is created when omitted.
        """
        self.config = config
        self.source = source
        self.facade_factory = facade_factory
        self.dry_run = dry_run
        self.cache = cache if cache is not None else ReferenceCache()
        self.counters = Counters()

        reconciler = AssetReconciler(
            config.mappings,
            ReferenceResolver(self.cache),
            FieldMapper(),
            dry_run=dry_run,
        )
        self.coordinator = ConcurrencyCoordinator(reconciler, facade_factory, max_concurrent)

    def warm_cache(self, facade: XmlmcFacade) -> None:
        """Bulk-loads the reference kinds the field mapping actually uses."""
        mappings = self.config.mappings
        loaders = []
        if mappings.maps_any(ReferenceRole.OWNED_BY, ReferenceRole.USED_BY, ReferenceRole.LAST_LOGGED_ON):
            loaders.append((CUSTOMER, facade.list_customers))
        if mappings.maps_any(ReferenceRole.SITE):
            loaders.append((SITE, facade.list_sites))
        for role, group_type in ((ReferenceRole.COMPANY, GROUP_TYPE_COMPANY),
                                 (ReferenceRole.DEPARTMENT, GROUP_TYPE_DEPARTMENT)):
            if mappings.maps_any(role):
                loaders.append((group_kind(group_type), functools.partial(facade.list_groups, group_type)))

        for kind, loader in loaders:
            logger.info(f"Caching {kind} records...")
            try:
                self.cache.warm(kind, loader())
            except XmlmcError as e:
                logger.warning(f"Unable to cache {kind} records, falling back to per-row lookups: {e}")

    def resolve_asset_type(self, asset_type: AssetTypeConfig,
                           facade: XmlmcFacade) -> Optional[AssetTypeContext]:
        """Looks up the class and type id of an asset type; None if it cannot be used."""
        try:
            resolved = facade.get_asset_class(asset_type.name)
        except XmlmcError as e:
            logger.error(f"Could not get Asset Class and Type for {asset_type.name}: {e}")
            return None
        if resolved is None:
            logger.error(f"Asset type {asset_type.name} not found. Please check AssetType "
                         f"within your configuration file")
            return None

        asset_class, type_id = resolved
        context = AssetTypeContext(
            name=asset_type.name,
            asset_class=asset_class,
            type_id=type_id,
            query=asset_type.query,
            identifier=asset_type.identifier,
        )
        logger.debug(f"Asset Type and Class: {context.name} {context.type_id} {context.asset_class}")
        return context

    def build_query(self, context: AssetTypeContext) -> str:
        base = self.config.sql.query.strip()
        return f"{base} {context.query}".strip() if context.query else base

    def import_asset_type(self, asset_type: AssetTypeConfig, facade: XmlmcFacade) -> None:
        context = self.resolve_asset_type(asset_type, facade)
        if context is None:
            return

        query = self.build_query(context)
        logger.debug(f"Query for {context.name}: {query}")
        try:
            rows = self.source.run_query(query)
        except SourceQueryError as e:
            logger.error(f"Query for asset type {context.name} failed: {e}")
            return

        logger.info(f"Found {len(rows)} {context.name} assets")
        if rows:
            self.coordinator.run(rows, context, self.counters)

    def run(self) -> Counters:
        """
        Imports every configured asset type.

        Returns:
            Counters: The totals for the run.
        """
        started = time.monotonic()
        if self.dry_run:
            logger.info("DRY RUN MODE - No assets will be created or updated")

        facade = self.facade_factory()
        self.warm_cache(facade)
        for asset_type in self.config.asset_types:
            self.import_asset_type(asset_type, facade)

        self.log_summary(self.counters, time.monotonic() - started)
        return self.counters

    @staticmethod
    def log_summary(counters: Counters, elapsed: float) -> None:
        for outcome in Outcome:
            logger.info(f"{SUMMARY_LABELS[outcome]}: {counters.get(outcome)}")
        logger.info(f"Time Taken: {round(elapsed)}s")
