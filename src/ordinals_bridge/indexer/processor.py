"""
Polling indexer for Bridge and Marketplace events.

Fetches finalized logs in block batches, decodes them with the contract ABIs
and writes one mirror row per event.
"""

import asyncio
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session, sessionmaker
from web3 import Web3
from web3.types import EventData

from ..utils.contract_utility import get_contract_abi
from .events import BRIDGE, EVENT_SPECS, MARKETPLACE, record_id, topic_hex
from .store import IndexerCursor


class EventIndexer:
    """
    Mirrors contract events into the database.

    Progress is kept in an ``IndexerCursor`` row, so a restart resumes after
    the last committed block.
    """

    CURSOR_NAME = "ordinals"

    def __init__(
        self,
        w3: Web3,
        session_factory: sessionmaker,
        bridge_address: str,
        marketplace_address: str,
        start_block: int = 0,
        finality_confirmations: int = 10,
        batch_size: int = 1000,
    ):
        """
        Initialize the indexer.

        Args:
            w3: Web3 connection to the EVM chain
            session_factory: Session factory bound to the mirror database
            bridge_address: Bridge contract address
            marketplace_address: Marketplace contract address
            start_block: First block to index when no cursor exists
            finality_confirmations: Blocks behind head treated as final
            batch_size: Maximum blocks per log query
        """
        self.w3 = w3
        self.session_factory = session_factory
        self.start_block = start_block
        self.finality_confirmations = finality_confirmations
        self.batch_size = batch_size

        self.contracts = {
            BRIDGE: w3.eth.contract(
                address=Web3.to_checksum_address(bridge_address),
                abi=get_contract_abi(BRIDGE),
            ),
            MARKETPLACE: w3.eth.contract(
                address=Web3.to_checksum_address(marketplace_address),
                abi=get_contract_abi(MARKETPLACE),
            ),
        }

        self.is_running = False
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def _fetch_events(self, from_block: int, to_block: int) -> list[tuple[str, str, EventData]]:
        found = []
        for contract_kind, event_name in EVENT_SPECS:
            event_obj = getattr(self.contracts[contract_kind].events, event_name)
            for event in event_obj.get_logs(from_block=from_block, to_block=to_block):
                found.append((contract_kind, event_name, event))
        found.sort(key=lambda item: (item[2]['blockNumber'], item[2]['logIndex']))
        return found

    def _block_timestamp(self, cache: dict[int, int], block_number: int) -> int:
        if block_number not in cache:
            cache[block_number] = int(self.w3.eth.get_block(block_number)['timestamp'])
        return cache[block_number]

    def get_cursor(self, session: Optional[Session] = None) -> Optional[int]:
        """Last fully processed block, or None before the first batch."""
        if session is None:
            with self.session_factory() as own_session:
                return self.get_cursor(own_session)
        cursor = session.get(IndexerCursor, self.CURSOR_NAME)
        return cursor.last_block if cursor else None

    def process_range(self, from_block: int, to_block: int) -> int:
        """
        Index all subscribed events in ``[from_block, to_block]``.

        Rows and the cursor are committed together. Rows whose id already
        exists are skipped.

        Returns:
            Number of inserted rows
        """
        events = self._fetch_events(from_block, to_block)
        timestamps: dict[int, int] = {}
        inserted = 0

        with self.session_factory.begin() as session:
            seen: set[str] = set()
            for contract_kind, event_name, event in events:
                spec = EVENT_SPECS[(contract_kind, event_name)]
                row_id = record_id(event['transactionHash'], event['logIndex'])
                if row_id in seen or session.get(spec.model, row_id) is not None:
                    continue
                seen.add(row_id)

                block_number = int(event['blockNumber'])
                session.add(spec.model(
                    id=row_id,
                    block_number=block_number,
                    block_timestamp=self._block_timestamp(timestamps, block_number),
                    transaction_hash=topic_hex(event['transactionHash']),
                    contract=event['address'],
                    event_name=event_name,
                    **spec.to_columns(dict(event['args'])),
                ))
                inserted += 1

            cursor = session.get(IndexerCursor, self.CURSOR_NAME)
            if cursor is None:
                session.add(IndexerCursor(name=self.CURSOR_NAME, last_block=to_block))
            elif to_block > cursor.last_block:
                cursor.last_block = to_block

        if inserted:
            self.logger.info(f"Indexed {inserted} events in blocks {from_block}-{to_block}")
        return inserted

    def poll_once(self) -> int:
        """
        Index everything between the cursor and the finalized head.

        Returns:
            Number of inserted rows
        """
        head = self.w3.eth.block_number
        safe_block = head - self.finality_confirmations

        last_block = self.get_cursor()
        from_block = self.start_block if last_block is None else last_block + 1
        if from_block > safe_block:
            return 0

        total = 0
        for batch_start in range(from_block, safe_block + 1, self.batch_size):
            batch_end = min(batch_start + self.batch_size - 1, safe_block)
            total += self.process_range(batch_start, batch_end)
        return total

    async def start_polling(self, interval: int = 12) -> None:
        """
        Poll for finalized events at the specified interval until stopped.

        Args:
            interval: Polling interval in seconds
        """
        if self.is_running:
            self.logger.warning("Polling already running")
            return

        self.is_running = True
        self.logger.info(f"Starting event indexing every {interval} seconds")

        while self.is_running:
            try:
                self.poll_once()
            except asyncio.CancelledError:
                self.logger.info("Polling cancelled")
                break
            except Exception as e:
                self.logger.error(f"Error polling for events: {e}", exc_info=True)
            await asyncio.sleep(interval)

    async def stop(self) -> None:
        """Stop the polling loop."""
        self.logger.info("Stopping event indexing")
        self.is_running = False

    def get_status(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "last_processed_block": self.get_cursor(),
            "bridge_address": self.contracts[BRIDGE].address,
            "marketplace_address": self.contracts[MARKETPLACE].address,
        }
