from .xmlmc_api import (
    XmlmcAPI,
    XmlmcResponse,
    XmlmcError,
    XmlmcTransportError,
    XmlmcResponseError,
    create_headers,
    resolve_instance_endpoint,
    APP_SERVICE_MANAGER,
)
from .entity_api import EntityAPI, response_rows, modified_columns

__all__ = [
    'XmlmcAPI',
    'XmlmcResponse',
    'XmlmcError',
    'XmlmcTransportError',
    'XmlmcResponseError',
    'create_headers',
    'resolve_instance_endpoint',
    'APP_SERVICE_MANAGER',
    'EntityAPI',
    'response_rows',
    'modified_columns',
]
