"""
Unit tests for AssetImporter.

The source database and remote client are replaced with doubles; the
reconciler, resolver, cache and coordinator are real.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import text

from asset_import.config import AssetTypeConfig, ImportConfig, SqlConfig
from asset_import.exceptions import SourceQueryError
from asset_import.importer import AssetImporter
from asset_import.models import AssetIdentifierSpec, Counters, FieldMappingSpec, SourceRow
from asset_import.reference_cache import CUSTOMER, SITE, ReferenceCache, group_kind
from database.adapters.sql_adapter import SqlAdapter
from xmlmc.api.xmlmc_api import XmlmcResponseError, XmlmcTransportError
from xmlmc.facade.xmlmc_facade import SearchResult

IDENTIFIER = AssetIdentifierSpec("asset_tag", "Asset", "h_name")


def make_config(generic=None, asset_types=None):
    return ImportConfig(
        api_key="abc123",
        instance_id="acme",
        sql=SqlConfig("mssql", "db.example.com", "assets", query="SELECT * FROM assets"),
        asset_types=asset_types or (AssetTypeConfig("Desktop", "WHERE type = 'desktop'", IDENTIFIER),),
        mappings=FieldMappingSpec.from_config(
            generic if generic is not None else {"h_name": "asset_tag", "h_site": "site", "h_owned_by": "owner_id"},
            {"h_cpu_info": "cpu"},
        ),
    )


@pytest.fixture
def source():
    mock = MagicMock()
    mock.run_query.return_value = [
        SourceRow({"asset_tag": "PC-001", "site": "London", "owner_id": 42, "cpu": "i7"}),
        SourceRow({"asset_tag": "PC-002", "site": "London", "owner_id": 42, "cpu": "i5"}),
    ]
    return mock


@pytest.fixture
def remote(facade):
    facade.get_asset_class.return_value = ("computer", 3)
    facade.list_sites.return_value = {"London": ("7", "London")}
    facade.list_customers.return_value = {"42": ("jdoe", "Jane Doe")}
    facade.list_groups.return_value = {}
    return facade


class TestWarmCache:
    """Tests for bulk cache loading."""

    def test_loads_only_mapped_kinds(self, source, remote):
        importer = AssetImporter(make_config(), source, lambda: remote)

        importer.warm_cache(remote)

        remote.list_sites.assert_called_once()
        remote.list_customers.assert_called_once()
        remote.list_groups.assert_not_called()
        assert importer.cache.lookup(SITE, "London")[0]
        assert importer.cache.lookup(CUSTOMER, "42")[0]

    def test_loads_company_groups(self, source, remote):
        importer = AssetImporter(make_config({"h_company_name": "company"}), source, lambda: remote)

        importer.warm_cache(remote)

        remote.list_groups.assert_called_once_with("5")
        assert importer.cache.size(group_kind("5")) == 0

    def test_loads_department_groups(self, source, remote):
        remote.list_groups.side_effect = lambda group_type: {
            "5": {"Acme Ltd": ("acme", "Acme Ltd")},
            "2": {"Finance": ("fin", "Finance"), "IT": ("it", "IT")},
        }[group_type]
        config = make_config({"h_company_name": "company", "h_department_name": "dept"})
        importer = AssetImporter(config, source, lambda: remote)

        importer.warm_cache(remote)

        assert sorted(c[0][0] for c in remote.list_groups.call_args_list) == ["2", "5"]
        assert importer.cache.size(group_kind("5")) == 1
        assert importer.cache.size(group_kind("2")) == 2
        assert importer.cache.lookup(group_kind("2"), "Finance")[1].identifier == "fin"

    def test_listing_failure_is_not_fatal(self, source, remote):
        remote.list_sites.side_effect = XmlmcTransportError("down")
        importer = AssetImporter(make_config(), source, lambda: remote)

        importer.warm_cache(remote)

        assert importer.cache.size(SITE) == 0
        assert importer.cache.size(CUSTOMER) == 1


class TestAssetImporter:
    """Tests for running an import."""

    def test_run(self, source, remote):
        importer = AssetImporter(make_config(), source, lambda: remote, max_concurrent=2)

        counters = importer.run()

        assert counters.created == 2
        assert counters.total == 2
        source.run_query.assert_called_once_with("SELECT * FROM assets WHERE type = 'desktop'")
        # every reference came from the warmed cache
        remote.search_site.assert_not_called()
        remote.search_customer.assert_not_called()
        record = remote.create_record.call_args[0][1]
        assert record["h_site_id"] == "7"
        assert record["h_owned_by"] == "urn:sys:0:Jane Doe:42"

    def test_uses_supplied_cache(self, source, remote):
        cache = ReferenceCache()
        importer = AssetImporter(make_config(), source, lambda: remote, cache=cache)

        importer.run()

        assert importer.cache is cache
        assert cache.size(SITE) == 1

    def test_dry_run_never_writes(self, source, remote):
        remote.search_entity.side_effect = [
            SearchResult(False, True),
            SearchResult(True, True, "9"),
        ]
        importer = AssetImporter(make_config(), source, lambda: remote, dry_run=True)

        counters = importer.run()

        remote.create_record.assert_not_called()
        remote.update_record.assert_not_called()
        assert counters.create_skipped == 1
        assert counters.update_skipped == 1

    def test_unknown_asset_type_is_skipped(self, source, remote):
        remote.get_asset_class.return_value = None
        importer = AssetImporter(make_config(), source, lambda: remote)

        counters = importer.run()

        source.run_query.assert_not_called()
        assert counters == Counters()

    def test_asset_class_lookup_failure_is_skipped(self, source, remote):
        remote.get_asset_class.side_effect = [XmlmcTransportError("down"), ("server", 4)]
        config = make_config(asset_types=(
            AssetTypeConfig("Desktop", "", IDENTIFIER),
            AssetTypeConfig("Server", "", IDENTIFIER),
        ))
        importer = AssetImporter(config, source, lambda: remote)

        counters = importer.run()

        source.run_query.assert_called_once_with("SELECT * FROM assets")
        assert counters.created == 2

    def test_unusable_asset_type_record_is_skipped(self, source, remote):
        remote.get_asset_class.side_effect = [XmlmcResponseError("no type id"), ("server", 4)]
        config = make_config(asset_types=(
            AssetTypeConfig("Desktop", "", IDENTIFIER),
            AssetTypeConfig("Server", "", IDENTIFIER),
        ))
        importer = AssetImporter(config, source, lambda: remote)

        counters = importer.run()

        assert remote.get_asset_class.call_count == 2
        assert counters.created == 2

    def test_query_failure_is_skipped(self, source, remote):
        source.run_query.side_effect = SourceQueryError("gone away")
        importer = AssetImporter(make_config(), source, lambda: remote)

        counters = importer.run()

        assert counters.total == 0
        remote.search_entity.assert_not_called()

    def test_log_summary(self, caplog):
        counters = Counters()
        counters.failed = 3

        with caplog.at_level("INFO", logger="asset_import.importer"):
            AssetImporter.log_summary(counters, 12.4)

        assert "Search Failed: 3" in caplog.text
        assert "Time Taken: 12s" in caplog.text


class TestSourceQueryFailures:
    """Tests for query failures against a real source database."""

    @pytest.fixture
    def sqlite_source(self, tmp_path):
        adapter = SqlAdapter(f"sqlite:///{tmp_path / 'assets.db'}")
        with adapter.engine.begin() as conn:
            conn.execute(text("CREATE TABLE laptops (asset_tag TEXT, site TEXT, owner_id INTEGER)"))
            conn.execute(text("INSERT INTO laptops VALUES ('LT-001', 'London', 42), ('LT-002', NULL, NULL)"))
        yield adapter
        adapter.close()

    def test_failed_query_does_not_stop_later_types(self, sqlite_source, remote):
        config = ImportConfig(
            api_key="abc123",
            instance_id="acme",
            sql=SqlConfig("mssql", "db.example.com", "assets"),
            asset_types=(
                AssetTypeConfig("Desktop", "SELECT * FROM desktops", IDENTIFIER),
                AssetTypeConfig("Laptop", "SELECT * FROM laptops", IDENTIFIER),
            ),
            mappings=FieldMappingSpec.from_config(
                {"h_name": "asset_tag", "h_site": "site", "h_owned_by": "owner_id"}, None),
        )
        importer = AssetImporter(config, sqlite_source, lambda: remote)

        counters = importer.run()

        assert [c[0][0] for c in remote.get_asset_class.call_args_list] == ["Desktop", "Laptop"]
        assert counters.created == 2
        assert counters.total == 2
        names = sorted(c[0][1]["h_name"] for c in remote.create_record.call_args_list)
        assert names == ["LT-001", "LT-002"]
