"""
Mapping of contract events to their mirror tables.

Each entry pairs the record model with a function turning decoded event
arguments into column values.
"""

from dataclasses import dataclass
from typing import Any, Callable

from web3 import Web3

from .store import (
    AddNftSupportRecord,
    AddTokenSupportRecord,
    ApprovalForAllRecord,
    ApprovalRecord,
    BidAcceptedRecord,
    BidPlacedRecord,
    BidRejectedRecord,
    BidWithdrawRecord,
    EventRecord,
    FeeClaimedRecord,
    OrderCancelledRecord,
    OrderCreatedRecord,
    OrderPurchasedRecord,
    OrdinalBridgedRecord,
    OwnershipTransferredRecord,
    TransferRecord,
)

BRIDGE = "Bridge"
MARKETPLACE = "Marketplace"


def uint(value: Any) -> str:
    return str(int(value))


def topic_hex(value: Any) -> str:
    """Indexed dynamic values arrive as their 32-byte keccak topic."""
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value)
    return str(value)


@dataclass(frozen=True, slots=True)
class EventSpec:
    model: type[EventRecord]
    to_columns: Callable[[dict[str, Any]], dict[str, Any]]


def ownership_columns(args: dict[str, Any]) -> dict[str, Any]:
    return {'previous_owner': args['previousOwner'], 'new_owner': args['newOwner']}


EVENT_SPECS: dict[tuple[str, str], EventSpec] = {
    (BRIDGE, "OrdinalBridged"): EventSpec(OrdinalBridgedRecord, lambda a: {
        'inscription_id': topic_hex(a['inscriptionId']),
        'token_id': uint(a['tokenId']),
        'receiver': a['receiver'],
        'content_type': a['contentType'],
        'sat_ordinal': uint(a['satOrdinal']),
    }),
    (BRIDGE, "Transfer"): EventSpec(TransferRecord, lambda a: {
        'from_address': a['from'],
        'to_address': a['to'],
        'token_id': uint(a['tokenId']),
    }),
    (BRIDGE, "Approval"): EventSpec(ApprovalRecord, lambda a: {
        'owner': a['owner'],
        'approved': a['approved'],
        'token_id': uint(a['tokenId']),
    }),
    (BRIDGE, "ApprovalForAll"): EventSpec(ApprovalForAllRecord, lambda a: {
        'owner': a['owner'],
        'operator': a['operator'],
        'approved': bool(a['approved']),
    }),
    (BRIDGE, "OwnershipTransferred"): EventSpec(OwnershipTransferredRecord, ownership_columns),
    (MARKETPLACE, "OrderCreated"): EventSpec(OrderCreatedRecord, lambda a: {
        'order_id': uint(a['orderId']),
        'token_id': uint(a['tokenId']),
        'price_per_nft': uint(a['pricePerNFT']),
        'seller': a['seller'],
        'copies': uint(a['copies']),
        'start_time': uint(a['startTime']),
        'end_time': uint(a['endTime']),
        'payment_token': a['paymentToken'],
        'nft_contract': a['nftContract'],
    }),
    (MARKETPLACE, "OrderCancelled"): EventSpec(OrderCancelledRecord, lambda a: {
        'order_id': uint(a['orderId']),
    }),
    (MARKETPLACE, "OrderPurchased"): EventSpec(OrderPurchasedRecord, lambda a: {
        'order_id': uint(a['orderId']),
        'buyer': a['buyer'],
        'copies': uint(a['copies']),
    }),
    (MARKETPLACE, "BidPlaced"): EventSpec(BidPlacedRecord, lambda a: {
        'order_id': uint(a['orderId']),
        'bid_index': uint(a['bidIndex']),
        'bidder': a['bidder'],
        'copies': uint(a['copies']),
        'price_per_nft': uint(a['pricePerNFT']),
        'start_time': uint(a['startTime']),
        'end_time': uint(a['endTime']),
    }),
    (MARKETPLACE, "BidAccepted"): EventSpec(BidAcceptedRecord, lambda a: {
        'order_id': uint(a['orderId']),
        'bid_id': uint(a['bidId']),
        'copies': uint(a['copies']),
    }),
    (MARKETPLACE, "BidRejected"): EventSpec(BidRejectedRecord, lambda a: {
        'order_id': uint(a['orderId']),
        'bid_id': uint(a['bidId']),
    }),
    (MARKETPLACE, "BidWithdraw"): EventSpec(BidWithdrawRecord, lambda a: {
        'order_id': uint(a['orderId']),
        'bid_id': uint(a['bidId']),
    }),
    (MARKETPLACE, "AddNFTSupport"): EventSpec(AddNftSupportRecord, lambda a: {
        'nft_address': a['nftAddress'],
    }),
    (MARKETPLACE, "AddTokenSupport"): EventSpec(AddTokenSupportRecord, lambda a: {
        'token_address': a['tokenAddress'],
    }),
    (MARKETPLACE, "FeeClaimed"): EventSpec(FeeClaimedRecord, lambda a: {
        'token_address': a['tokenAddress'],
        'to_address': a['to'],
        'amount': uint(a['amount']),
    }),
    (MARKETPLACE, "OwnershipTransferred"): EventSpec(OwnershipTransferredRecord, ownership_columns),
}


def record_id(transaction_hash: Any, log_index: int) -> str:
    return f"{topic_hex(transaction_hash)}-{log_index}"
