"""Exception types shared across the bridge services."""

from typing import Any


class BridgeError(Exception):
    """Base class for bridge failures."""


class InscriptionNotFoundError(BridgeError):
    def __init__(self, inscription_id: str):
        super().__init__(f"Inscription {inscription_id} not found")
        self.inscription_id = inscription_id


class InscriptionAlreadyBridgedError(BridgeError):
    def __init__(self, inscription_id: str):
        super().__init__("Inscription has already been bridged")
        self.inscription_id = inscription_id


class BridgeRequestNotFoundError(BridgeError):
    def __init__(self, inscription_id: str):
        super().__init__("Bridge request not found")
        self.inscription_id = inscription_id


class ContractCallError(BridgeError):
    """A contract transaction was mined with a failed status."""


class GraphQueryError(BridgeError):
    """The indexer GraphQL endpoint answered with an error."""


class ProxyError(BridgeError):
    """A forwarded request failed; carries the HTTP response to return.

    Attributes:
        status_code: HTTP status for the caller
        body: JSON body of the form ``{"error": ..., "details": ...}``
    """

    def __init__(self, status_code: int, body: dict[str, Any]):
        super().__init__(body.get("error", "Proxy error"))
        self.status_code = status_code
        self.body = body
