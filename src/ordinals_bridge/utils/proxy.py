"""
Request forwarding to the bridge backend services.

Forwarding is a single attempt: transport failures are classified and
turned into ``ProxyError`` carrying the JSON body returned to the caller.
"""

import logging
from typing import Any

import httpx

from ..errors import ProxyError

logger = logging.getLogger(__name__)


def upstream_body(error: httpx.HTTPStatusError) -> Any:
    """Upstream error response as returned: decoded JSON, else its text."""
    try:
        return error.response.json()
    except ValueError:
        return error.response.text or str(error)


def upstream_details(error: httpx.HTTPStatusError) -> Any:
    """Best description an upstream error response offers."""
    data = upstream_body(error)
    if isinstance(data, dict):
        return data.get('details') or data.get('error') or data.get('message') or str(error)
    return data


def classify_forward_error(error: Exception, service_url: str, failure_message: str) -> ProxyError:
    """
    Translate a forwarding failure into the response for the caller.

    Args:
        error: Exception raised while forwarding
        service_url: Base URL of the backend service, echoed in details
        failure_message: Handler specific ``error`` text for the generic cases

    Returns:
        ProxyError with status code and ``{error, details}`` body
    """
    match error:
        case httpx.ConnectError():
            return ProxyError(500, {
                'error': 'Could not connect to the bridge service. '
                         'Make sure the service is running on port 3003.',
                'details': f'Connection refused to {service_url}. Please verify your .env '
                           'configuration and ensure the service is running.',
            })
        case httpx.InvalidURL() | httpx.UnsupportedProtocol():
            return ProxyError(500, {
                'error': 'Invalid backend service URL',
                'details': f'The configured URL "{service_url}" is invalid. '
                           'Please check BRIDGE_SERVICE_URL in your .env file.',
            })
        case httpx.HTTPStatusError():
            return ProxyError(error.response.status_code, {
                'error': failure_message,
                'details': upstream_details(error),
            })
        case _:
            return ProxyError(500, {'error': failure_message, 'details': str(error)})


class ServiceForwarder:
    """
    Forwards JSON requests to a backend service.

    A missing base URL is a server configuration error reported per request.
    """

    def __init__(
        self,
        base_url: str | None,
        env_name: str = "BRIDGE_SERVICE_URL",
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip('/') if base_url else None
        self.env_name = env_name
        self.transport = transport
        self.timeout = timeout

    async def request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
        """
        Send one request and return the decoded JSON response.

        Raises:
            httpx.HTTPError / httpx.InvalidURL: Transport or status failures, unclassified
        """
        if not self.base_url:
            raise ProxyError(500, {
                'error': f'Server configuration error: {self.env_name} is not set'
            })

        url = f"{self.base_url}{path}"
        logger.info(f"Forwarding request to {url}")
        async with httpx.AsyncClient(transport=self.transport) as client:
            response = await client.request(method, url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json()

    async def forward(
        self,
        method: str,
        path: str,
        failure_message: str,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """
        Like ``request`` but with transport errors classified.

        Raises:
            ProxyError: For any failure
        """
        try:
            return await self.request(method, path, payload)
        except ProxyError:
            raise
        except Exception as e:
            logger.error(f"Error from backend service: {e}")
            raise classify_forward_error(e, self.base_url or "", failure_message) from e
