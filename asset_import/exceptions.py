class AssetImportError(Exception):
    """Base exception for asset import errors."""
    pass

class ConfigurationError(AssetImportError):
    """Raised when the import configuration is missing or invalid."""
    pass

class ConfigurationFileNotFoundError(ConfigurationError):
    """Raised when the configuration file does not exist."""
    pass

class SourceQueryError(AssetImportError):
    """Raised when a query against the source database fails."""
    pass
