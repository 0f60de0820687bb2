"""
Import configuration.

Settings come from a JSON configuration file. Secrets and instance details
may instead be supplied through the environment (or a ``.env`` file):

    XMLMC_API_KEY       overrides APIKey
    XMLMC_INSTANCE_ID   overrides InstanceID
    XMLMC_INSTANCE_URL  overrides InstanceURL
    SQL_PASSWORD        overrides SQLConf.Password
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from dotenv import load_dotenv

from .exceptions import ConfigurationError, ConfigurationFileNotFoundError
from .models import AssetIdentifierSpec, FieldMappingSpec

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "conf.json"
DEFAULT_USER_ID_COLUMN = "h_user_id"

DRIVER_ALIASES = {"swsql": "mysql", "mysql320": "mysql", "postgresql": "postgres"}


@dataclass(frozen=True)
class SqlConfig:
    driver: str
    server: str = ""
    database: str = ""
    username: str = ""
    password: str = ""
    port: Optional[int] = None
    query: str = ""


@dataclass(frozen=True)
class AssetTypeConfig:
    name: str
    query: str
    identifier: AssetIdentifierSpec


@dataclass(frozen=True)
class ImportConfig:
    api_key: str
    instance_id: str
    sql: SqlConfig
    asset_types: Tuple[AssetTypeConfig, ...]
    mappings: FieldMappingSpec = field(default_factory=FieldMappingSpec)
    instance_url: str = ""
    user_id_column: str = DEFAULT_USER_ID_COLUMN
    log_size_bytes: int = 0


def _identifier(data: Optional[Dict[str, Any]], where: str) -> Optional[AssetIdentifierSpec]:
    if not data:
        return None
    try:
        spec = AssetIdentifierSpec(
            db_column=str(data["DBColumn"]),
            entity=str(data["Entity"]),
            entity_column=str(data["EntityColumn"]),
        )
    except KeyError as e:
        raise ConfigurationError(f"{where} AssetIdentifier is missing {e.args[0]}")
    if not (spec.db_column and spec.entity and spec.entity_column):
        raise ConfigurationError(f"{where} AssetIdentifier has empty values")
    return spec


def _sql_config(data: Dict[str, Any]) -> SqlConfig:
    driver = str(data.get("Driver", "")).strip().lower()
    if not driver:
        raise ConfigurationError("SQLConf.Driver is required")
    port = data.get("Port")
    try:
        port = int(port) if port not in (None, "", 0) else None
    except (TypeError, ValueError):
        raise ConfigurationError(f"SQLConf.Port [{port}] is not a number")
    return SqlConfig(
        driver=DRIVER_ALIASES.get(driver, driver),
        server=str(data.get("Server", "")),
        database=str(data.get("Database", "")),
        username=str(data.get("UserName", "")),
        password=os.getenv("SQL_PASSWORD") or str(data.get("Password", "")),
        port=port,
        query=str(data.get("Query", "")),
    )


def parse_config(data: Dict[str, Any]) -> ImportConfig:
    """
    Builds an ImportConfig from decoded configuration data.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a JSON object")

    api_key = os.getenv("XMLMC_API_KEY") or data.get("APIKey", "")
    instance_id = os.getenv("XMLMC_INSTANCE_ID") or data.get("InstanceID", "")
    instance_url = os.getenv("XMLMC_INSTANCE_URL") or data.get("InstanceURL", "")
    if not api_key:
        raise ConfigurationError("APIKey is required")
    if not (instance_id or instance_url):
        raise ConfigurationError("InstanceID or InstanceURL is required")

    default_identifier = _identifier(data.get("AssetIdentifier"), "Default")

    asset_types = []
    for entry in data.get("AssetTypes") or []:
        name = str(entry.get("AssetType", "")).strip()
        if not name:
            raise ConfigurationError("Every AssetTypes entry needs an AssetType name")
        identifier = _identifier(entry.get("AssetIdentifier"), name) or default_identifier
        if identifier is None:
            raise ConfigurationError(f"Asset type {name} has no AssetIdentifier")
        asset_types.append(AssetTypeConfig(name, str(entry.get("Query", "")), identifier))
    if not asset_types:
        raise ConfigurationError("At least one AssetTypes entry is required")

    try:
        log_size_bytes = int(data.get("LogSizeBytes") or 0)
    except (TypeError, ValueError):
        raise ConfigurationError("LogSizeBytes must be a number")

    return ImportConfig(
        api_key=api_key,
        instance_id=instance_id,
        instance_url=instance_url,
        sql=_sql_config(data.get("SQLConf") or {}),
        asset_types=tuple(asset_types),
        mappings=FieldMappingSpec.from_config(
            data.get("AssetGenericFieldMapping"),
            data.get("AssetTypeFieldMapping"),
        ),
        user_id_column=(data.get("HornbillUserIDColumn") or DEFAULT_USER_ID_COLUMN).lower(),
        log_size_bytes=log_size_bytes,
    )


def load_config(path: Union[str, Path] = DEFAULT_CONFIG_FILE) -> ImportConfig:
    """
    Loads and validates the configuration file.

    Raises:
        ConfigurationFileNotFoundError: If the file does not exist.
        ConfigurationError: If the file cannot be read or is invalid.
    """
    load_dotenv()
    config_path = Path(path)
    if not config_path.is_absolute():
        config_path = Path.cwd() / config_path
    logger.info(f"Loading Config File: {config_path}")

    if not config_path.exists():
        raise ConfigurationFileNotFoundError(f"No Configuration File: {config_path}")
    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except OSError as e:
        raise ConfigurationError(f"Error Opening Configuration File: {e}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Error Decoding Configuration File: {e}")

    return parse_config(data)
