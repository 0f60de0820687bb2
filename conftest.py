"""Shared fixtures for the asset import tests."""

from unittest.mock import MagicMock

import pytest

from asset_import.models import AssetIdentifierSpec, AssetTypeContext, FieldMappingSpec, SourceRow
from xmlmc.facade.xmlmc_facade import SearchResult, WriteResult


@pytest.fixture
def context():
    return AssetTypeContext(
        name="Desktop",
        asset_class="computer",
        type_id=3,
        query="WHERE type = 'desktop'",
        identifier=AssetIdentifierSpec("asset_tag", "Asset", "h_name"),
    )


@pytest.fixture
def mappings():
    return FieldMappingSpec.from_config(
        {
            "h_name": "asset_tag",
            "h_description": "[asset_tag] ([model])",
            "h_site": "site",
            "h_owned_by": "owner_id",
        },
        {
            "h_cpu_info": "cpu",
            "h_memory_info": "memory",
        },
    )


@pytest.fixture
def row():
    return SourceRow({
        "asset_tag": "PC-001",
        "model": "OptiPlex 7090",
        "site": "London",
        "owner_id": 42,
        "cpu": "i7",
        "memory": "16GB",
    })


@pytest.fixture
def facade():
    """
    A remote client double: nothing matches, writes succeed and change
    one column, references resolve to fixed values.
    """
    mock = MagicMock()
    mock.application = "com.hornbill.servicemanager"
    mock.search_entity.return_value = SearchResult(matched=False, call_succeeded=True)
    mock.search_site.return_value = SearchResult(True, True, "7", "London")
    mock.search_group.return_value = SearchResult(True, True, "acme", "Acme Ltd")
    mock.search_customer.return_value = SearchResult(True, True, "jdoe", "Jane Doe")
    mock.create_record.return_value = WriteResult(True, ["h_name"], "101")
    mock.update_record.return_value = WriteResult(True, ["h_name"], "101")
    return mock
