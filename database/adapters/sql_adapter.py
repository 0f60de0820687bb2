"""
SQL source adapter for the asset import.

Builds the connection URL for the configured driver and runs the asset
queries, returning each record as a read-only SourceRow.
"""

import logging
import pandas as pd
from typing import Dict, List, Optional
from sqlalchemy import create_engine, text, Engine
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool

from asset_import.config import SqlConfig
from asset_import.exceptions import ConfigurationError, SourceQueryError
from asset_import.models import SourceRow

logger = logging.getLogger(__name__)

# driver name in configuration -> SQLAlchemy dialect+driver
DIALECTS = {
    'mssql': 'mssql+pymssql',
    'mysql': 'mysql+pymysql',
    'postgres': 'postgresql+psycopg2',
}


def build_connection_string(sql: SqlConfig) -> URL:
    """
    Build the SQLAlchemy URL for the configured source database.

    Args:
        sql (SqlConfig): The SQLConf section of the configuration.

    Returns:
        URL: A connection URL for create_engine.

    Raises:
        ConfigurationError: If the driver is unsupported or required values are missing.
    """
    if sql.driver == 'odbc':
        # ODBC sources are addressed by DSN, held in the Database setting
        if not sql.database:
            raise ConfigurationError("SQLConf.Database must name the ODBC DSN")
        odbc_connect = f"DSN={sql.database};UID={sql.username};PWD={sql.password}"
        return URL.create('mssql+pyodbc', query={'odbc_connect': odbc_connect})

    dialect = DIALECTS.get(sql.driver)
    if dialect is None:
        raise ConfigurationError(f"Unsupported SQLConf.Driver: {sql.driver}")
    if not sql.server or not sql.database:
        raise ConfigurationError("SQLConf.Server and SQLConf.Database are required")

    return URL.create(
        dialect,
        username=sql.username or None,
        password=sql.password or None,
        host=sql.server,
        port=sql.port,
        database=sql.database,
    )


class SqlAdapter:
    """
    Read-only adapter over the source asset database.
    """

    def __init__(self, database_url, pool_size: int = 5, max_overflow: int = 10):
        """
        Initialize the connection pool.

        Args:
            database_url (Union[str, URL]): SQLAlchemy connection string or URL
            pool_size (int): Number of connections to maintain in the pool
            max_overflow (int): Maximum overflow connections beyond pool_size
        """
        self.engine = self._create_engine(database_url, pool_size, max_overflow)
        logger.info(f"SQL adapter initialized for {self.engine.url.get_backend_name()}")

    def _create_engine(self, database_url, pool_size: int, max_overflow: int) -> Engine:
        return create_engine(
            database_url,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,  # Validates connections before use
        )

    def query_to_dataframe(self, query: str, params: Optional[Dict] = None) -> pd.DataFrame:
        """
        Execute a SQL query and return results as a pandas DataFrame.

        Args:
            query (str): SQL query to execute
            params (Dict, optional): Query parameters for safe parameter binding

        Returns:
            pd.DataFrame: Query results

        Raises:
            SourceQueryError: If the query fails, whether SQLAlchemy or pandas reports it.
        """
        try:
            df = pd.read_sql_query(
                sql=text(query),
                con=self.engine,
                params=params or {}
            )
            logger.debug(f"Query returned {len(df)} rows")
            return df

        except (SQLAlchemyError, pd.errors.DatabaseError) as e:
            logger.error(f"Query failed: {e}")
            raise SourceQueryError(str(e)) from e

    def run_query(self, query: str, params: Optional[Dict] = None) -> List[SourceRow]:
        """
        Execute a SQL query and return one SourceRow per record.

        NULLs (NaN in the frame) come back as None.

        Raises:
            SourceQueryError: If the query fails.
        """
        df = self.query_to_dataframe(query, params)
        if df.empty:
            return []
        records = df.astype(object).where(pd.notna(df), None).to_dict('records')
        return [SourceRow(record) for record in records]

    def close(self) -> None:
        """Close the database connection pool."""
        if self.engine:
            self.engine.dispose()
            logger.info("SQL adapter closed")
