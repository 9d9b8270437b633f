import logging
from typing import Any

import httpx

from ..errors import InscriptionNotFoundError
from ..models import InscriptionDetails

logger = logging.getLogger(__name__)


class EsploraClient:
    """
    Minimal client for an Esplora-style block explorer API
    (e.g. https://blockstream.info/api).
    """

    def __init__(
        self,
        url: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ):
        self.url = url.rstrip('/')
        self.transport = transport
        self.timeout = timeout

    async def _get(self, path: str) -> httpx.Response:
        async with httpx.AsyncClient(transport=self.transport) as client:
            logger.debug(f"GET {self.url + path}")
            response = await client.get(self.url + path, timeout=self.timeout)
            response.raise_for_status()
            return response

    async def get_tx_status(self, tx_id: str) -> dict[str, Any]:
        """
        Fetch the confirmation status of a transaction.

        Returns:
            Dictionary with ``confirmed`` and, once confirmed, ``block_height``
        """
        response = await self._get(f"/tx/{tx_id}/status")
        return response.json()

    async def get_tip_height(self) -> int:
        """Fetch the current best block height."""
        response = await self._get("/blocks/tip/height")
        return int(response.text.strip())


class HiroClient:
    """Client for the Hiro ordinals API."""

    def __init__(
        self,
        url: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ):
        self.url = url.rstrip('/')
        self.transport = transport
        self.timeout = timeout

    def content_url(self, inscription_id: str) -> str:
        return f"{self.url}/inscriptions/{inscription_id}/content"

    def preview_url(self, inscription_id: str) -> str:
        return f"{self.url}/inscriptions/{inscription_id}/preview"

    async def get_inscription(self, inscription_id: str) -> InscriptionDetails:
        """
        Fetch inscription details.

        Raises:
            InscriptionNotFoundError: If the API answers 404
            httpx.HTTPStatusError: For any other error status
        """
        async with httpx.AsyncClient(transport=self.transport) as client:
            response = await client.get(
                f"{self.url}/inscriptions/{inscription_id}", timeout=self.timeout
            )
            if response.status_code == 404:
                raise InscriptionNotFoundError(inscription_id)
            response.raise_for_status()
            return InscriptionDetails.from_api(response.json())
