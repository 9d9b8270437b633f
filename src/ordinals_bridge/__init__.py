"""
Ordinals bridge package.

Off-chain services bridging Bitcoin ordinal inscriptions to an EVM chain:
the frontend API, the bridge listener and the event indexer.
"""

from .bridge_contract import BridgeContract
from .bridge_listener import BridgeListener, token_id_from_inscription
from .config import ApiConfig, IndexerConfig, ListenerConfig
from .confirmation_poller import ConfirmationPoller
from .marketplace import MarketplaceContract, MarketplaceQueries
from .models import BridgeRequest, BridgeState, BridgeStatus, RequestStatus

__all__ = [
    "ApiConfig",
    "BridgeContract",
    "BridgeListener",
    "BridgeRequest",
    "BridgeState",
    "BridgeStatus",
    "ConfirmationPoller",
    "IndexerConfig",
    "ListenerConfig",
    "MarketplaceContract",
    "MarketplaceQueries",
    "RequestStatus",
    "token_id_from_inscription",
]
__version__ = "0.1.0"
