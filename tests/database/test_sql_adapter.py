"""
Unit tests for the SQL source adapter.

Connection URLs are checked without connecting; queries run against a
temporary SQLite database.
"""

import pytest
from sqlalchemy import text

from asset_import.config import SqlConfig
from asset_import.exceptions import ConfigurationError, SourceQueryError
from database.adapters.sql_adapter import SqlAdapter, build_connection_string


class TestBuildConnectionString:
    """Tests for build_connection_string."""

    def test_mssql(self):
        url = build_connection_string(SqlConfig("mssql", "db.example.com", "assets", "reader", "p@ss", 1433))

        assert url.drivername == "mssql+pymssql"
        assert url.host == "db.example.com"
        assert url.port == 1433
        assert url.database == "assets"
        assert url.password == "p@ss"

    def test_mysql(self):
        url = build_connection_string(SqlConfig("mysql", "db.example.com", "assets"))

        assert url.drivername == "mysql+pymysql"
        assert url.username is None

    def test_postgres(self):
        url = build_connection_string(SqlConfig("postgres", "db.example.com", "assets", "reader"))
        assert url.drivername == "postgresql+psycopg2"

    def test_odbc_uses_dsn(self):
        url = build_connection_string(SqlConfig("odbc", database="AssetDSN", username="u", password="p"))

        assert url.drivername == "mssql+pyodbc"
        assert url.query["odbc_connect"] == "DSN=AssetDSN;UID=u;PWD=p"

    def test_unsupported_driver(self):
        with pytest.raises(ConfigurationError, match="Unsupported"):
            build_connection_string(SqlConfig("oracle", "db.example.com", "assets"))

    def test_missing_server(self):
        with pytest.raises(ConfigurationError):
            build_connection_string(SqlConfig("mssql", "", "assets"))


class TestSqlAdapter:
    """Tests for SqlAdapter queries."""

    @pytest.fixture
    def adapter(self, tmp_path):
        adapter = SqlAdapter(f"sqlite:///{tmp_path / 'assets.db'}")
        with adapter.engine.begin() as conn:
            conn.execute(text("CREATE TABLE assets (asset_tag TEXT, site TEXT, owner_id INTEGER)"))
            conn.execute(text(
                "INSERT INTO assets VALUES ('PC-001', 'London', 42), ('PC-002', NULL, NULL)"
            ))
        yield adapter
        adapter.close()

    def test_run_query_returns_rows(self, adapter):
        rows = adapter.run_query("SELECT * FROM assets ORDER BY asset_tag")

        assert len(rows) == 2
        assert rows[0].get_text("asset_tag") == "PC-001"
        assert rows[0].get_text("owner_id") == "42"

    def test_nulls_become_none(self, adapter):
        rows = adapter.run_query("SELECT * FROM assets WHERE asset_tag = :tag", {"tag": "PC-002"})

        assert rows[0]["site"] is None
        assert rows[0]["owner_id"] is None

    def test_empty_result(self, adapter):
        assert adapter.run_query("SELECT * FROM assets WHERE 1 = 0") == []

    def test_query_to_dataframe(self, adapter):
        df = adapter.query_to_dataframe("SELECT asset_tag FROM assets")
        assert list(df.columns) == ["asset_tag"]

    def test_bad_query_raises_source_query_error(self, adapter):
        with pytest.raises(SourceQueryError) as excinfo:
            adapter.run_query("SELECT * FROM missing_table")

        assert "missing_table" in str(excinfo.value)
        assert excinfo.value.__cause__ is not None

    def test_bad_dataframe_query_raises_source_query_error(self, adapter):
        with pytest.raises(SourceQueryError):
            adapter.query_to_dataframe("SELEC asset_tag FROM assets")
