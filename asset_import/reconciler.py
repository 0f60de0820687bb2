"""
Per-row create-or-update of remote asset records.

Each row moves through search -> create or update -> submit and ends in
exactly one ``Outcome``. Remote failures are logged with the request that
caused them and turned into an outcome; they never propagate.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from xmlmc.api.xmlmc_api import XmlmcError
from xmlmc.facade.xmlmc_facade import ASSET_ENTITY, ASSET_KEY_COLUMN, XmlmcFacade

from .field_mapper import FieldMapper
from .models import AssetTypeContext, FieldMappingSpec, Outcome, SourceRow
from .reference_resolver import ReferenceResolver

logger = logging.getLogger(__name__)

RELATED_ENTITY = "AssetClass"
ADDED_BY = "Import - Add"
UPDATED_BY = "Import - Update"


def api_time_now() -> str:
    """Current UTC time in the format the remote service stores."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def asset_urn(application: str, asset_id: str) -> str:
    return f"urn:sys:entity:{application}:Asset:{asset_id}"


def _payload(fields: Dict[str, Any], related: Optional[Dict[str, Any]] = None) -> str:
    body = {"primaryEntityData": {"record": fields}}
    if related:
        body["relatedEntityData"] = related
    return json.dumps(body, default=str)


class AssetReconciler:
    """
    Creates or updates the remote asset record for one source row.

    The reconciler is shared by all workers; it keeps no per-row state.
    Each call receives the worker's own facade.
    """

    def __init__(self, mappings: FieldMappingSpec, resolver: ReferenceResolver,
                 mapper: Optional[FieldMapper] = None, dry_run: bool = False,
                 clock: Callable[[], str] = api_time_now):
        self.mappings = mappings
        self.resolver = resolver
        self.mapper = mapper or FieldMapper()
        self.dry_run = dry_run
        self.clock = clock

    def reconcile(self, row: SourceRow, context: AssetTypeContext, facade: XmlmcFacade) -> Outcome:
        """
        Reconciles one row against the remote service.

        Args:
            row: The source row.
            context: The asset type the row belongs to.
            facade: The calling worker's remote client.

        Returns:
            Outcome: The single terminal outcome for the row.
        """
        identifier = context.identifier
        asset_key = row.get_text(identifier.db_column)
        if asset_key is None:
            logger.error(f"Row has no value in asset identifier column [{identifier.db_column}]; skipping")
            return Outcome.FAILED

        search = facade.search_entity(identifier.entity, identifier.entity_column, asset_key)
        if not search.call_succeeded:
            logger.error(f"Asset search API call failed for asset with Unique ID: {asset_key}")
            return Outcome.FAILED

        if search.matched:
            logger.info(f"Update Asset: {asset_key}")
            return self._update(row, context, facade, asset_key, search.resolved_id)
        logger.info(f"Create Asset: {asset_key}")
        return self._create(row, context, facade, asset_key)

    def _field_sets(self, row, facade):
        references = self.resolver.resolve(row, self.mappings, facade)
        generic = self.mapper.materialize(self.mappings.generic, row, references)
        type_specific = self.mapper.materialize(self.mappings.type_specific, row, references)
        return generic, type_specific

    def _create(self, row, context, facade, asset_key) -> Outcome:
        generic, type_specific = self._field_sets(row, facade)

        record = dict(generic)
        record.update({
            "h_class": context.asset_class,
            "h_type": str(context.type_id),
            "h_last_updated": self.clock(),
            "h_last_updated_by": ADDED_BY,
        })
        related_record = dict(type_specific)
        related_record["h_type"] = str(context.type_id)
        related = {"relationshipName": RELATED_ENTITY, "entityAction": "insert", "record": related_record}
        payload = _payload(record, related)

        if self.dry_run:
            logger.info(f"[DRY RUN] Asset Create {asset_key}: {payload}")
            return Outcome.CREATE_SKIPPED

        logger.debug(f"Asset Create {asset_key}: {payload}")
        try:
            result = facade.create_record(ASSET_ENTITY, record, related)
        except XmlmcError as e:
            logger.error(f"Error creating asset {asset_key}: {e}")
            logger.error(f"API Call payload: {payload}")
            return Outcome.CREATE_FAILED

        if not result.success:
            logger.warning(f"Unable to add asset {asset_key}: {result.error}")
            logger.warning(f"API Call payload: {payload}")
            return Outcome.CREATE_SKIPPED

        self._set_asset_urn(facade, asset_key, result.primary_key)
        return Outcome.CREATED

    def _set_asset_urn(self, facade, asset_key, asset_id) -> None:
        if not asset_id:
            logger.warning(f"Asset {asset_key} created but no primary key was returned; URN not set")
            return
        fields = {"h_asset_urn": asset_urn(facade.application, asset_id)}
        try:
            result = facade.update_record(ASSET_ENTITY, ASSET_KEY_COLUMN, asset_id, fields)
        except XmlmcError as e:
            logger.error(f"API Call failed when Updating Asset URN for {asset_key}: {e}")
            return
        if not result.success:
            logger.warning(f"Unable to update Asset URN for {asset_key}: {result.error}")

    def _update(self, row, context, facade, asset_key, asset_id) -> Outcome:
        generic, type_specific = self._field_sets(row, facade)

        fields = dict(generic)
        fields["h_asset_urn"] = asset_urn(facade.application, asset_id)
        related_record = {ASSET_KEY_COLUMN: asset_id}
        related_record.update(type_specific)
        related = {"relationshipName": RELATED_ENTITY, "entityAction": "update", "record": related_record}
        payload = _payload(dict(fields, **{ASSET_KEY_COLUMN: asset_id}))
        related_payload = _payload({ASSET_KEY_COLUMN: asset_id}, related)

        if self.dry_run:
            logger.info(f"[DRY RUN] Asset Update {asset_key}: {payload}")
            logger.info(f"[DRY RUN] Asset Extended Update {asset_key}: {related_payload}")
            return Outcome.UPDATE_SKIPPED

        logger.debug(f"Asset Update {asset_key}: {payload}")
        try:
            primary = facade.update_record(ASSET_ENTITY, ASSET_KEY_COLUMN, asset_id, fields)
        except XmlmcError as e:
            logger.error(f"API Call failed when Updating Asset {asset_key}: {e}")
            logger.error(f"API Call payload: {payload}")
            return Outcome.UPDATE_FAILED
        if not primary.success:
            logger.warning(f"Unable to Update Asset {asset_key}: {primary.error}")
            logger.warning(f"API Call payload: {payload}")
            return Outcome.UPDATE_SKIPPED

        logger.debug(f"Asset Extended Update {asset_key}: {related_payload}")
        try:
            extended = facade.update_record(ASSET_ENTITY, ASSET_KEY_COLUMN, asset_id, {}, related)
        except XmlmcError as e:
            logger.error(f"API Call failed when Updating Asset Extended Details {asset_key}: {e}")
            logger.error(f"API Call payload: {related_payload}")
            return Outcome.RELATED_UPDATE_FAILED
        if not extended.success:
            logger.warning(f"Unable to Update Asset Extended Details {asset_key}: {extended.error}")
            logger.warning(f"API Call payload: {related_payload}")
            return Outcome.RELATED_UPDATE_SKIPPED

        if not primary.changed_columns and not extended.changed_columns:
            logger.debug(f"Asset {asset_key} already up to date")
            return Outcome.UPDATE_SKIPPED

        self._stamp_updated(facade, asset_key, asset_id)
        return Outcome.UPDATED

    def _stamp_updated(self, facade, asset_key, asset_id) -> None:
        fields = {"h_last_updated": self.clock(), "h_last_updated_by": UPDATED_BY}
        try:
            result = facade.update_record(ASSET_ENTITY, ASSET_KEY_COLUMN, asset_id, fields)
        except XmlmcError as e:
            logger.error(f"API Call failed when setting Last Updated values for {asset_key}: {e}")
            return
        if not result.success:
            logger.warning(f"Unable to set Last Updated details for asset {asset_key}: {result.error}")
