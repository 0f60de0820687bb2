import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests
from requests.exceptions import ConnectionError, JSONDecodeError, Timeout

# Set up logging
logger = logging.getLogger(__name__)

APP_SERVICE_MANAGER = "com.hornbill.servicemanager"
ZONEINFO_URL = "https://files.hornbill.com/instances/{instance_id}/zoneinfo"
DEFAULT_TIMEOUT = 60


class XmlmcError(Exception):
    """Base exception for XMLMC API errors."""
    pass


class XmlmcTransportError(XmlmcError):
    """Raised when a request cannot be delivered or the server rejects it at HTTP level."""
    pass


class XmlmcResponseError(XmlmcError):
    """Raised when a response body cannot be read as an XMLMC response."""
    pass


def create_headers(api_key: str) -> Dict[str, str]:
    """
    Create HTTP headers for XMLMC API requests.

    Args:
        api_key (str): The API key for authentication.

    Returns:
        Dict[str, str]: A dictionary containing the required HTTP headers.
    """
    return {
        "Authorization": f"ESP-APIKEY {api_key}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


def resolve_instance_endpoint(instance_id: str, timeout: int = DEFAULT_TIMEOUT) -> str:
    """
    Look up the API endpoint for an instance from its public zone info.

    Args:
        instance_id (str): The instance identifier.
        timeout (int): Request timeout in seconds.

    Returns:
        str: The API endpoint URL, always ending with a slash.

    Raises:
        XmlmcTransportError: If the zone info cannot be fetched or has no endpoint.
    """
    url = ZONEINFO_URL.format(instance_id=instance_id)
    try:
        response = requests.get(url, timeout=timeout)
    except (ConnectionError, Timeout) as e:
        raise XmlmcTransportError(f"Unable to fetch zone info for {instance_id}: {e}") from e

    if response.status_code != 200:
        raise XmlmcTransportError(
            f"Zone info request for {instance_id} failed: {response.status_code}"
        )
    try:
        endpoint = response.json()["zoneinfo"]["apiEndpoint"]
    except (JSONDecodeError, KeyError, TypeError) as e:
        raise XmlmcTransportError(f"Zone info for {instance_id} has no API endpoint") from e

    if not endpoint.endswith("/"):
        endpoint += "/"
    return endpoint


@dataclass
class XmlmcResponse:
    """A decoded XMLMC method response."""
    status: bool
    params: Dict[str, Any] = field(default_factory=dict)
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status

    @classmethod
    def from_json(cls, body: Any) -> "XmlmcResponse":
        if not isinstance(body, dict) or "@status" not in body:
            raise XmlmcResponseError(f"Unexpected response body: {str(body)[:200]}")
        status = body["@status"]
        if isinstance(status, str):
            status = status.lower() == "true"
        state = body.get("state") or {}
        return cls(
            status=bool(status),
            params=body.get("params") or {},
            error=state.get("error", "") if isinstance(state, dict) else str(state),
        )


class XmlmcAPI:
    """
    Base class for interacting with the XMLMC API.

    Every call is a single POST of a method name and a parameter tree to a
    service endpoint. Instances hold no mutable state beyond their
    configuration, so each worker can own one without coordination.

    Attributes:
        endpoint (str): The instance API endpoint, ending with a slash.
        headers (Dict[str, str]): HTTP headers to use for API requests.
        timeout (int): Request timeout in seconds.
    """

    def __init__(self, endpoint: str, headers: Dict[str, str], timeout: int = DEFAULT_TIMEOUT):
        """
        Initialize the XMLMC API client.

        Args:
            endpoint (str): The instance API endpoint.
            headers (Dict[str, str]): HTTP headers to use for API requests.
            timeout (int): Request timeout in seconds.
        """
        self.endpoint = endpoint if endpoint.endswith("/") else endpoint + "/"
        self.headers = headers
        self.timeout = timeout

    def invoke(
        self, service: str, method: str, params: Optional[Dict[str, Any]] = None
    ) -> XmlmcResponse:
        """
        Invoke an XMLMC method.

        Args:
            service (str): The service name, e.g. 'data'.
            method (str): The method name, e.g. 'entityBrowseRecords2'.
            params (Optional[Dict[str, Any]]): The method parameter tree.

        Returns:
            XmlmcResponse: The decoded response. A protocol-level error is
            reported through ``status``/``error``, not raised.

        Raises:
            XmlmcTransportError: On connection failure, timeout or non-200 status.
            XmlmcResponseError: If the body is not a readable XMLMC response.
        """
        url = f"{self.endpoint}xmlmc/{service}/?method={method}"
        payload = {"@service": service, "@method": method, "params": params or {}}

        try:
            response = requests.post(url, json=payload, headers=self.headers, timeout=self.timeout)
        except (ConnectionError, Timeout) as e:
            logger.error(f"Connection error calling {service}::{method}: {str(e)}")
            raise XmlmcTransportError(f"{service}::{method} failed: {e}") from e

        return self._handle_response(response, f"{service}::{method}")

    def _handle_response(self, response: requests.Response, operation: str) -> XmlmcResponse:
        """
        Handle the HTTP response from the XMLMC API.

        Args:
            response (requests.Response): The HTTP response object.
            operation (str): The invoked operation, for log messages.

        Returns:
            XmlmcResponse: The decoded response.
        """
        if response.status_code != 200:
            logger.error(f"Request failed: {response.status_code}")
            logger.error(f"Response text: {response.text}")
            raise XmlmcTransportError(f"{operation} returned HTTP {response.status_code}")

        logger.debug(f"{response.status_code} | {operation}")
        try:
            body = response.json()
        except (JSONDecodeError, ValueError) as e:
            raise XmlmcResponseError(f"Unable to read response from {operation}: {e}") from e

        result = XmlmcResponse.from_json(body)
        if not result.ok:
            logger.debug(f"{operation} returned error: {result.error}")
        return result
