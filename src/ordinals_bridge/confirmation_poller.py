"""
Bitcoin confirmation polling.

Waits for a Bitcoin transaction to reach the required number of
confirmations and then produces the inclusion proof handed to the light
client. Proof generation and light client submission are placeholders.
"""

import asyncio
import logging

from .models import TransactionProof
from .utils.bitcoin_api import EsploraClient

logger = logging.getLogger(__name__)


class ConfirmationPoller:
    """
    Polls a block explorer until a transaction is deep enough.

    The loop has no backoff and no attempt limit: errors are logged and the
    next attempt happens after the regular interval. Cancel the awaiting
    task to give up.
    """

    def __init__(
        self,
        esplora: EsploraClient,
        required_confirmations: int = 6,
        polling_interval: float = 60,
    ):
        self.esplora = esplora
        self.required_confirmations = required_confirmations
        self.polling_interval = polling_interval

    async def get_confirmations(self, tx_id: str) -> int:
        """
        Number of confirmations for a transaction, 0 while unconfirmed.
        """
        status = await self.esplora.get_tx_status(tx_id)
        if not status.get('confirmed'):
            return 0

        current_height = await self.esplora.get_tip_height()
        return current_height - status['block_height'] + 1

    async def wait_for_confirmations(self, tx_id: str) -> int:
        """
        Block until ``tx_id`` has at least ``required_confirmations``.

        Returns:
            Confirmation count observed on the successful check
        """
        logger.info(
            f"Waiting for {self.required_confirmations} confirmations for tx: {tx_id}"
        )
        while True:
            try:
                confirmations = await self.get_confirmations(tx_id)
                if confirmations >= self.required_confirmations:
                    logger.info(f"Transaction {tx_id[:10]}... has {confirmations} confirmations")
                    return confirmations
                logger.debug(
                    f"Transaction {tx_id[:10]}... at {confirmations}/"
                    f"{self.required_confirmations} confirmations"
                )
            except Exception as e:
                logger.error(f"Error checking transaction status: {e}")

            await asyncio.sleep(self.polling_interval)

    async def get_transaction_proof(self, tx_id: str) -> TransactionProof:
        # TODO: build the merkle branch from /tx/{txid}/merkle-proof once the light client ABI is fixed
        logger.debug(f"Generating placeholder proof for {tx_id[:10]}...")
        return TransactionProof()

    async def wait_for_confirmation_and_get_proof(self, tx_id: str) -> TransactionProof:
        """
        Wait for transaction confirmation and get proof.

        Args:
            tx_id: Bitcoin transaction hash

        Returns:
            Transaction proof data for the light client
        """
        await self.wait_for_confirmations(tx_id)
        return await self.get_transaction_proof(tx_id)


async def submit_to_light_client(proof: TransactionProof) -> TransactionProof:
    """Hand a proof to the light client. No verifier exists yet; returns the proof."""
    return proof
