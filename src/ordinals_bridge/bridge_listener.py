"""
Off-chain bridge listener.

This module contains the service that tracks users' bridge requests, watches
for the requested inscriptions to arrive at the bridge's Bitcoin address and
mints the matching token on the EVM chain.
"""

import asyncio
import logging
from typing import Optional

from .bridge_contract import BridgeContract
from .config import ListenerConfig
from .errors import (
    BridgeError,
    BridgeRequestNotFoundError,
    InscriptionAlreadyBridgedError,
    InscriptionNotFoundError,
)
from .models import BridgeRequest, RequestMetadata, RequestStatus, now_ms
from .utils.bitcoin_api import HiroClient
from .utils.contract_utility import ContractUtility
from .utils.request_store import RequestStore, chain_name_for

logger = logging.getLogger(__name__)

TOKEN_ID_MODULUS = 10**16


def token_id_from_inscription(inscription_id: str) -> str:
    """
    Derive the EVM token id for an inscription.

    The trailing ``i0`` output index is dropped, the transaction hash is read
    as hex and reduced modulo 10**16.

    Args:
        inscription_id: Inscription id, e.g. ``<txid>i0``

    Returns:
        Token id as a decimal string
    """
    clean_id = inscription_id[:-2] if inscription_id.endswith('i0') else inscription_id
    return str(int(clean_id, 16) % TOKEN_ID_MODULUS)


class BridgeListener:
    """
    Tracks bridge requests and mints bridged ordinals once the inscription
    has been transferred to the bridge address.
    """

    def __init__(
        self,
        config: ListenerConfig,
        bridge: BridgeContract,
        hiro: HiroClient,
        store: RequestStore,
    ):
        """
        Initialize the listener.

        Use :meth:`create` to build a connected, verified instance.

        Args:
            config: Listener configuration
            bridge: Bridge contract client signing as the bridge service
            hiro: Ordinals API client
            store: Loaded request store for the connected chain
        """
        self.config = config
        self.bridge = bridge
        self.hiro = hiro
        self.store = store
        self.bridge_btc_address = config.bitcoin.bridge_btc_address

        self.is_processing = False
        self.running = False
        self.shutdown_event = asyncio.Event()

    @classmethod
    def create(cls, config: ListenerConfig) -> "BridgeListener":
        """
        Connect to the chain, verify the signer and load stored requests.

        Raises:
            BridgeError: If the signer is not the Bridge's bridge service
        """
        contract_util = ContractUtility(config.evm.rpc_url, config.evm.private_key or "")
        bridge = BridgeContract(contract_util, config.evm.bridge_address)

        cls.verify_contract_setup(bridge, contract_util.address or "")

        chain_name = chain_name_for(contract_util.w3.eth.chain_id)
        logger.info(f"Connected to chain: {chain_name}")

        store = RequestStore.for_chain(config.data_dir, chain_name)
        store.load()

        listener = cls(
            config=config,
            bridge=bridge,
            hiro=HiroClient(config.bitcoin.hiro_api_base),
            store=store,
        )
        logger.info("BridgeListener initialized successfully")
        logger.info(f"Contract Address: {bridge.address}")
        logger.info(f"Storage Path: {store.path}")
        return listener

    @staticmethod
    def verify_contract_setup(bridge: BridgeContract, signer: str) -> None:
        bridge_service = bridge.bridge_service()
        logger.info(f"Bridge service address: {bridge_service}")
        logger.info(f"Signer address: {signer}")

        if bridge_service.lower() != signer.lower():
            raise BridgeError(
                "Wallet is not set as bridge service. "
                "Please update bridge service address in the contract."
            )

    async def create_bridge_request(
        self, inscription_id: str, user_evm_address: str
    ) -> BridgeRequest:
        """
        Record a user's request to bridge an inscription.

        Raises:
            InscriptionAlreadyBridgedError: If the Bridge already minted it
            InscriptionNotFoundError: If the ordinals API does not know it
        """
        if await asyncio.to_thread(self.bridge.is_processed, inscription_id):
            raise InscriptionAlreadyBridgedError(inscription_id)

        inscription = await self.hiro.get_inscription(inscription_id)

        request = BridgeRequest(
            inscription_id=inscription_id,
            user_evm_address=user_evm_address,
            token_id=token_id_from_inscription(inscription_id),
            metadata=RequestMetadata(
                content_type=inscription.content_type,
                content_url=self.hiro.content_url(inscription_id),
                preview_url=self.hiro.preview_url(inscription_id),
                name=f"Ordinistan #{inscription.number}",
                description=f"Bridged Bitcoin Ordinal Inscription #{inscription.number}",
            ),
        )
        self.store.add(request)

        logger.info(f"New bridge request created for inscription {inscription_id}")
        logger.info(f"Please transfer the ordinal to {self.bridge_btc_address}")
        return request

    async def check_pending_requests(self) -> None:
        """Process every pending request once, counting failures toward the retry limit."""
        if self.is_processing:
            return

        self.is_processing = True
        logger.info("Checking pending bridge requests...")

        try:
            for request in self.store:
                if request.status == RequestStatus.PENDING:
                    try:
                        await self.process_request(request)
                        self.store.save()
                    except Exception as e:
                        logger.error(f"Error processing request {request.inscription_id}: {e}")
                        request.retry_count += 1
                        if request.retry_count >= self.config.max_retries:
                            request.status = RequestStatus.FAILED
                            logger.warning(
                                f"Bridge request {request.inscription_id} failed "
                                f"after {request.retry_count} attempts"
                            )
                        self.store.save()
                request.last_checked = now_ms()
        finally:
            self.is_processing = False

    async def process_request(self, request: BridgeRequest) -> None:
        """
        Mint the request's token if its inscription reached the bridge address.

        An unknown inscription marks the request failed; errors are re-raised
        so the caller counts the attempt.
        """
        try:
            inscription = await self.hiro.get_inscription(request.inscription_id)
        except InscriptionNotFoundError:
            request.status = RequestStatus.FAILED
            logger.info("Bridge request marked as failed - inscription not found")
            raise

        if inscription.address != self.bridge_btc_address:
            logger.info(
                f"Waiting for ordinal {request.inscription_id} to be transferred. "
                f"Current owner: {inscription.address}"
            )
            return

        logger.info(
            f"Ordinal {request.inscription_id} received at bridge address, minting NFT..."
        )
        token_id = token_id_from_inscription(request.inscription_id)

        try:
            receipt = await asyncio.to_thread(
                self.bridge.mint_bridged_ordinal,
                request.user_evm_address,
                token_id,
                inscription,
                self.config.mint_gas_limit,
            )
        except Exception as e:
            logger.error(f"Error minting NFT for inscription {request.inscription_id}: {e}")
            request.status = RequestStatus.FAILED
            request.last_checked = now_ms()
            self.store.save()
            raise

        request.token_id = token_id
        request.status = RequestStatus.COMPLETED
        request.last_checked = now_ms()
        logger.info(
            f"Successfully minted NFT for inscription {request.inscription_id} "
            f"in block {receipt['blockNumber']}"
        )

    def get_bridge_requests(self, status: RequestStatus | None = None) -> list[BridgeRequest]:
        return self.store.filter(status)

    def get_bridge_request(self, inscription_id: str) -> Optional[BridgeRequest]:
        return self.store.find(inscription_id)

    async def retry_failed_request(self, inscription_id: str) -> BridgeRequest:
        """
        Return a failed request to pending and check it immediately.

        Raises:
            BridgeRequestNotFoundError: If no request exists for the inscription
            BridgeError: If the request is not in the failed state
        """
        request = self.store.find(inscription_id)
        if request is None:
            raise BridgeRequestNotFoundError(inscription_id)
        if request.status != RequestStatus.FAILED:
            raise BridgeError("Only failed requests can be retried")

        request.status = RequestStatus.PENDING
        request.retry_count = 0
        request.last_checked = 0
        self.store.save()

        logger.info(f"Retrying bridge request for inscription {inscription_id}")
        await self.check_pending_requests()
        return request

    async def run(self) -> None:
        """Check pending requests every ``monitor_interval`` seconds until stopped."""
        self.running = True
        self.shutdown_event.clear()
        logger.info(
            f"Bridge Listener started. Monitoring transfers to {self.bridge_btc_address}"
        )

        try:
            while self.running:
                try:
                    await self.check_pending_requests()
                except Exception as e:
                    logger.error(f"Error in monitoring loop: {e}", exc_info=True)

                try:
                    await asyncio.wait_for(
                        self.shutdown_event.wait(), timeout=self.config.monitor_interval
                    )
                    break
                except asyncio.TimeoutError:
                    pass
        finally:
            self.running = False
            logger.info("Bridge Listener stopped")

    def stop(self) -> None:
        """Stop the monitoring loop."""
        self.running = False
        self.shutdown_event.set()
