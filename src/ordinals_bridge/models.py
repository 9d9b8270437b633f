#!/usr/bin/env python3
"""Data models for the Ordinals bridge.

This module provides the data classes used throughout the bridge services:
client-side bridge progress, listener-side bridge requests, inscription
details from the ordinals API, and Bitcoin transaction proofs.

Dictionaries produced by ``to_dict`` use the camelCase keys the frontend
and the listener API exchange on the wire.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class BridgeStatus(str, Enum):
    """Progress of a bridge operation as seen by the client."""

    PENDING_CONFIRMATION = "pending_confirmation"
    GENERATING_PROOF = "generating_proof"
    SUBMITTING_TO_LIGHT_CLIENT = "submitting_to_light_client"
    COMPLETED = "completed"
    FAILED = "failed"


class RequestStatus(str, Enum):
    """Lifecycle of a bridge request held by the listener."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class BridgeStateMetadata:
    inscription_number: str
    content_type: str
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "inscriptionNumber": self.inscription_number,
            "contentType": self.content_type,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BridgeStateMetadata":
        return cls(
            inscription_number=str(data.get("inscriptionNumber", "")),
            content_type=data.get("contentType", ""),
            timestamp=int(data.get("timestamp", 0)),
        )


@dataclass(frozen=True, slots=True)
class BridgeState:
    """Client-local record of the bridge operation in progress.

    Attributes:
        tx_id: Bitcoin transaction moving the inscription to the bridge
        inscription_id: Inscription being bridged
        from_address: Bitcoin address the inscription leaves
        to_address: Bitcoin bridge address
        receiver_address: EVM address receiving the bridged NFT
        status: Current progress step
        timestamp: Last save time in milliseconds
        error: Failure reason when status is ``failed``
        metadata: Inscription number and content type
    """

    tx_id: str
    inscription_id: str
    from_address: str
    to_address: str
    receiver_address: str
    status: BridgeStatus
    timestamp: int = 0
    error: str | None = None
    metadata: BridgeStateMetadata | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "txId": self.tx_id,
            "inscriptionId": self.inscription_id,
            "fromAddress": self.from_address,
            "toAddress": self.to_address,
            "receiverAddress": self.receiver_address,
            "status": self.status.value,
            "timestamp": self.timestamp,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BridgeState":
        metadata = data.get("metadata")
        return cls(
            tx_id=data["txId"],
            inscription_id=data["inscriptionId"],
            from_address=data.get("fromAddress", ""),
            to_address=data.get("toAddress", ""),
            receiver_address=data.get("receiverAddress", ""),
            status=BridgeStatus(data["status"]),
            timestamp=int(data.get("timestamp", 0)),
            error=data.get("error"),
            metadata=BridgeStateMetadata.from_dict(metadata) if metadata else None,
        )


@dataclass(slots=True)
class RequestMetadata:
    content_type: str
    content_url: str
    preview_url: str
    name: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "contentType": self.content_type,
            "contentUrl": self.content_url,
            "previewUrl": self.preview_url,
            "name": self.name,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RequestMetadata":
        return cls(
            content_type=data.get("contentType", ""),
            content_url=data.get("contentUrl", ""),
            preview_url=data.get("previewUrl", ""),
            name=data.get("name", ""),
            description=data.get("description", ""),
        )


@dataclass(slots=True)
class BridgeRequest:
    """A user's request to bridge one inscription, tracked by the listener.

    Mutable: the listener updates status, retry count and check times in place
    and persists the whole request list after each change.
    """

    inscription_id: str
    user_evm_address: str
    status: RequestStatus = RequestStatus.PENDING
    timestamp: int = field(default_factory=now_ms)
    token_id: str | None = None
    last_checked: int = 0
    retry_count: int = 0
    metadata: RequestMetadata | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "inscriptionId": self.inscription_id,
            "userEvmAddress": self.user_evm_address,
            "status": self.status.value,
            "timestamp": self.timestamp,
            "lastChecked": self.last_checked,
            "retryCount": self.retry_count,
        }
        if self.token_id is not None:
            data["tokenId"] = self.token_id
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BridgeRequest":
        metadata = data.get("metadata")
        return cls(
            inscription_id=data["inscriptionId"],
            user_evm_address=data["userEvmAddress"],
            status=RequestStatus(data.get("status", "pending")),
            timestamp=int(data.get("timestamp", 0)),
            token_id=data.get("tokenId"),
            last_checked=int(data.get("lastChecked") or 0),
            retry_count=int(data.get("retryCount") or 0),
            metadata=RequestMetadata.from_dict(metadata) if metadata else None,
        )


@dataclass(frozen=True, slots=True)
class InscriptionDetails:
    """Subset of the ordinals API inscription payload the bridge relies on.

    Attributes:
        id: Inscription id
        number: Inscription number
        address: Current owner's Bitcoin address
        content_type: MIME type of the inscribed content
        content_length: Size of the inscribed content in bytes
        sat_ordinal: Ordinal number of the inscribed satoshi
        sat_rarity: Rarity class of the satoshi
        genesis_timestamp: Inscription time
    """

    id: str
    number: int
    address: str
    content_type: str
    content_length: int
    sat_ordinal: int
    sat_rarity: str
    genesis_timestamp: int

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "InscriptionDetails":
        return cls(
            id=data["id"],
            number=int(data["number"]),
            address=data.get("address") or "",
            content_type=data.get("content_type") or data.get("mime_type") or "",
            content_length=int(data.get("content_length") or 0),
            sat_ordinal=int(data.get("sat_ordinal") or 0),
            sat_rarity=data.get("sat_rarity") or "common",
            genesis_timestamp=int(data.get("genesis_timestamp") or 0),
        )


@dataclass(frozen=True, slots=True)
class BitcoinBlockHeader:
    version: int = 0
    previous_block_hash: str = ""
    merkle_root: str = ""
    timestamp: int = 0
    bits: int = 0
    nonce: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "previousBlockHash": self.previous_block_hash,
            "merkleRoot": self.merkle_root,
            "timestamp": self.timestamp,
            "bits": self.bits,
            "nonce": self.nonce,
        }


@dataclass(frozen=True, slots=True)
class TransactionProof:
    """Inclusion proof for a Bitcoin transaction, as consumed by a light client."""

    block_header: BitcoinBlockHeader = field(default_factory=BitcoinBlockHeader)
    merkle_proof: tuple[str, ...] = ()
    tx_index: int = 0
    raw_transaction: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "blockHeader": self.block_header.to_dict(),
            "merkleProof": list(self.merkle_proof),
            "txIndex": self.tx_index,
            "rawTransaction": self.raw_transaction,
        }


@dataclass(frozen=True, slots=True)
class OrdinalMetadata:
    """On-chain metadata the Bridge contract stores for a minted token."""

    inscription_id: str
    inscription_number: int
    content_type: str
    content_length: int
    sat_ordinal: int
    sat_rarity: str
    genesis_timestamp: int
    bridge_timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "inscriptionId": self.inscription_id,
            "inscriptionNumber": self.inscription_number,
            "contentType": self.content_type,
            "contentLength": self.content_length,
            "satOrdinal": self.sat_ordinal,
            "satRarity": self.sat_rarity,
            "genesisTimestamp": self.genesis_timestamp,
            "bridgeTimestamp": self.bridge_timestamp,
        }
