#!/usr/bin/env python3
"""Bridge contract access.

Wraps the Bridge contract calls the listener and the clients need:
minting a bridged ordinal, checking whether an inscription was already
bridged and reading the stored ordinal metadata.
"""

import logging
from typing import TYPE_CHECKING, Any

from web3 import Web3
from web3.contract import Contract
from web3.types import HexBytes, TxReceipt

from .errors import ContractCallError
from .models import InscriptionDetails, OrdinalMetadata

if TYPE_CHECKING:
    from .utils.contract_utility import ContractUtility

logger = logging.getLogger(__name__)


def wait_for_success(w3: Web3, tx_hash: HexBytes, timeout: int = 120) -> TxReceipt:
    """
    Wait for a transaction receipt and check its status.

    Raises:
        ContractCallError: If the transaction reverted
    """
    receipt: TxReceipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
    if (status := receipt.get('status', 0)) != 1:
        raise ContractCallError(f"Transaction {Web3.to_hex(tx_hash)} failed with status={status}")
    logger.info(f"Transaction confirmed in block {receipt['blockNumber']}")
    return receipt


class BridgeContract:
    """Typed access to the Bridge contract."""

    def __init__(self, contract_util: "ContractUtility", address: str) -> None:
        """
        Initialize the BridgeContract.

        Args:
            contract_util: Utility holding the Web3 connection (signing when minting)
            address: Address of the Bridge contract
        """
        self.contract_util = contract_util
        self.address: str = Web3.to_checksum_address(address)
        self.contract: Contract = contract_util.get_contract("Bridge", self.address)

    def bridge_service(self) -> str:
        """Account allowed to mint bridged ordinals."""
        return self.contract.functions.bridgeService().call()

    def is_processed(self, inscription_id: str) -> bool:
        return bool(self.contract.functions.processedInscriptions(inscription_id).call())

    def ordinal_metadata(self, token_id: int | str) -> OrdinalMetadata:
        values: list[Any] = self.contract.functions.ordinalMetadata(int(token_id)).call()
        return OrdinalMetadata(*values)

    def mint_bridged_ordinal(
        self,
        receiver: str,
        token_id: int | str,
        inscription: InscriptionDetails,
        gas_limit: int = 500_000,
    ) -> TxReceipt:
        """
        Mint the EVM token representing an inscription.

        Args:
            receiver: EVM address receiving the token
            token_id: Token id derived from the inscription id
            inscription: Inscription details recorded on chain
            gas_limit: Gas limit covering the metadata storage

        Returns:
            Receipt of the successful mint

        Raises:
            ContractCallError: If the mint reverted
        """
        logger.info(f"Sending mint transaction for inscription {inscription.id}")
        tx_hash: HexBytes = self.contract.functions.mintBridgedOrdinal(
            Web3.to_checksum_address(receiver),
            int(token_id),
            inscription.id,
            inscription.number,
            inscription.content_type,
            inscription.content_length,
            inscription.sat_ordinal,
            inscription.sat_rarity,
            inscription.genesis_timestamp,
        ).transact({'gas': gas_limit})
        logger.info(f"Transaction sent: {Web3.to_hex(tx_hash)}")

        return wait_for_success(self.contract_util.w3, tx_hash)
