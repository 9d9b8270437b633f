#!/usr/bin/env python3
"""Tests for the Bridge and Marketplace event indexer."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import func, select

from ordinals_bridge.indexer import EVENT_SPECS, EventIndexer, create_session_factory
from ordinals_bridge.indexer.store import (
    ApprovalForAllRecord,
    BidPlacedRecord,
    FeeClaimedRecord,
    IndexerCursor,
    OrderCreatedRecord,
    OrdinalBridgedRecord,
    OwnershipTransferredRecord,
)

BRIDGE_ADDRESS = "0x85BfE05492aFC3D04Ff3B2ca6771ACF6f853d90d"
MARKETPLACE_ADDRESS = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
SELLER = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"
INSCRIPTION_TOPIC = bytes.fromhex("cd" * 32)


def make_event(address, block_number, log_index, args):
    return {
        "address": address,
        "blockNumber": block_number,
        "logIndex": log_index,
        "transactionHash": block_number.to_bytes(32, "big"),
        "args": args,
    }


def order_created(block_number, log_index, order_id=1):
    return make_event(MARKETPLACE_ADDRESS, block_number, log_index, {
        "orderId": order_id,
        "tokenId": 1,
        "pricePerNFT": 10**30,
        "seller": SELLER,
        "copies": 0,
        "startTime": 1_700_000_000,
        "endTime": 1_800_000_000,
        "paymentToken": "0x0000000000000000000000000000000000000000",
        "nftContract": BRIDGE_ADDRESS,
    })


def ordinal_bridged(block_number, log_index):
    return make_event(BRIDGE_ADDRESS, block_number, log_index, {
        "inscriptionId": INSCRIPTION_TOPIC,
        "tokenId": 1,
        "receiver": SELLER,
        "contentType": "image/png",
        "satOrdinal": 1_234_567_890_123,
    })


class FakeChain:
    """Mocked Web3 whose contracts return configured events per name."""

    def __init__(self, head: int = 120):
        self.events: dict[tuple[str, str], list[dict]] = {}
        self.contracts = {BRIDGE_ADDRESS: MagicMock(), MARKETPLACE_ADDRESS: MagicMock()}

        self.w3 = MagicMock()
        self.w3.eth.block_number = head
        self.w3.eth.get_block.side_effect = lambda number: {"timestamp": 1_700_000_000 + number}
        self.w3.eth.contract.side_effect = lambda address, abi: self.contracts[address]

        for address, kind in ((BRIDGE_ADDRESS, "Bridge"), (MARKETPLACE_ADDRESS, "Marketplace")):
            for spec_kind, event_name in EVENT_SPECS:
                if spec_kind == kind:
                    event_obj = getattr(self.contracts[address].events, event_name)
                    event_obj.get_logs.side_effect = self._get_logs(kind, event_name)

    def _get_logs(self, kind, event_name):
        def get_logs(from_block, to_block):
            return [
                event for event in self.events.get((kind, event_name), [])
                if from_block <= event["blockNumber"] <= to_block
            ]
        return get_logs

    def add(self, kind, event_name, event):
        self.events.setdefault((kind, event_name), []).append(event)


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def session_factory():
    return create_session_factory("sqlite://")


@pytest.fixture
def indexer(chain, session_factory):
    return EventIndexer(
        w3=chain.w3,
        session_factory=session_factory,
        bridge_address=BRIDGE_ADDRESS,
        marketplace_address=MARKETPLACE_ADDRESS,
        start_block=100,
        finality_confirmations=10,
        batch_size=5,
    )


def count(session_factory, model) -> int:
    with session_factory() as session:
        return session.scalar(select(func.count()).select_from(model))


def test_event_specs_cover_both_contracts():
    assert set(EVENT_SPECS) == {
        ("Bridge", "OrdinalBridged"),
        ("Bridge", "Transfer"),
        ("Bridge", "Approval"),
        ("Bridge", "ApprovalForAll"),
        ("Bridge", "OwnershipTransferred"),
        ("Marketplace", "OrderCreated"),
        ("Marketplace", "OrderCancelled"),
        ("Marketplace", "OrderPurchased"),
        ("Marketplace", "BidPlaced"),
        ("Marketplace", "BidAccepted"),
        ("Marketplace", "BidRejected"),
        ("Marketplace", "BidWithdraw"),
        ("Marketplace", "AddNFTSupport"),
        ("Marketplace", "AddTokenSupport"),
        ("Marketplace", "FeeClaimed"),
        ("Marketplace", "OwnershipTransferred"),
    }


def test_process_range_mirrors_events(chain, indexer, session_factory):
    chain.add("Marketplace", "OrderCreated", order_created(101, 3))
    chain.add("Bridge", "OrdinalBridged", ordinal_bridged(101, 1))

    assert indexer.process_range(100, 104) == 2

    with session_factory() as session:
        order = session.scalars(select(OrderCreatedRecord)).one()
        bridged = session.scalars(select(OrdinalBridgedRecord)).one()

    tx_hash = "0x" + (101).to_bytes(32, "big").hex()
    assert order.id == f"{tx_hash}-3"
    assert order.price_per_nft == str(10**30)
    assert order.seller == SELLER
    assert order.event_name == "OrderCreated"
    assert order.contract == MARKETPLACE_ADDRESS
    assert order.block_timestamp == 1_700_000_101

    assert bridged.inscription_id == "0x" + "cd" * 32
    assert bridged.token_id == "1"
    assert bridged.sat_ordinal == "1234567890123"
    assert bridged.transaction_hash == tx_hash


def test_process_range_is_idempotent(chain, indexer, session_factory):
    chain.add("Marketplace", "OrderCreated", order_created(101, 0))

    assert indexer.process_range(100, 104) == 1
    assert indexer.process_range(100, 104) == 0
    assert count(session_factory, OrderCreatedRecord) == 1


def test_duplicate_log_in_batch_inserted_once(chain, indexer, session_factory):
    chain.add("Marketplace", "OrderCreated", order_created(101, 0))
    chain.add("Marketplace", "OrderCreated", order_created(101, 0))

    assert indexer.process_range(100, 104) == 1
    assert count(session_factory, OrderCreatedRecord) == 1


def test_block_timestamp_fetched_once_per_block(chain, indexer):
    chain.add("Marketplace", "OrderCreated", order_created(102, 0, order_id=1))
    chain.add("Marketplace", "OrderCreated", order_created(102, 1, order_id=2))
    chain.add("Marketplace", "BidPlaced", make_event(MARKETPLACE_ADDRESS, 102, 2, {
        "orderId": 1,
        "bidIndex": 0,
        "bidder": SELLER,
        "copies": 1,
        "pricePerNFT": 5,
        "startTime": 1,
        "endTime": 2,
    }))

    assert indexer.process_range(100, 104) == 3
    chain.w3.eth.get_block.assert_called_once_with(102)


def test_poll_once_stops_at_finality_depth(chain, indexer, session_factory):
    chain.add("Marketplace", "OrderCreated", order_created(103, 0, order_id=1))
    chain.add("Marketplace", "OrderCreated", order_created(110, 0, order_id=2))
    chain.add("Marketplace", "OrderCreated", order_created(111, 0, order_id=3))

    assert indexer.poll_once() == 2
    assert indexer.get_cursor() == 110
    assert count(session_factory, OrderCreatedRecord) == 2


def test_poll_once_resumes_from_cursor(chain, indexer, session_factory):
    indexer.poll_once()
    order_created_logs = chain.contracts[MARKETPLACE_ADDRESS].events.OrderCreated.get_logs
    order_created_logs.reset_mock()

    assert indexer.poll_once() == 0
    order_created_logs.assert_not_called()

    chain.w3.eth.block_number = 125
    chain.add("Marketplace", "OrderCreated", order_created(112, 0))

    assert indexer.poll_once() == 1
    order_created_logs.assert_called_once_with(from_block=111, to_block=115)
    with session_factory() as session:
        assert session.get(IndexerCursor, EventIndexer.CURSOR_NAME).last_block == 115


def test_bid_placed_values_stored_as_strings(chain, indexer, session_factory):
    chain.add("Marketplace", "BidPlaced", make_event(MARKETPLACE_ADDRESS, 100, 0, {
        "orderId": 7,
        "bidIndex": 2,
        "bidder": SELLER,
        "copies": 1,
        "pricePerNFT": 2**255,
        "startTime": 1,
        "endTime": 2,
    }))

    indexer.process_range(100, 100)

    with session_factory() as session:
        bid = session.scalars(select(BidPlacedRecord)).one()
    assert bid.order_id == "7"
    assert bid.price_per_nft == str(2**255)


def test_ownership_transfers_share_one_table(chain, indexer, session_factory):
    owners = {"previousOwner": SELLER, "newOwner": BRIDGE_ADDRESS}
    chain.add("Bridge", "OwnershipTransferred", make_event(BRIDGE_ADDRESS, 101, 0, owners))
    chain.add("Marketplace", "OwnershipTransferred", make_event(MARKETPLACE_ADDRESS, 101, 1, owners))

    assert indexer.process_range(100, 104) == 2

    with session_factory() as session:
        rows = session.scalars(
            select(OwnershipTransferredRecord).order_by(OwnershipTransferredRecord.id)
        ).all()
    assert [row.contract for row in rows] == [BRIDGE_ADDRESS, MARKETPLACE_ADDRESS]
    assert all(row.new_owner == BRIDGE_ADDRESS for row in rows)


def test_approval_and_fee_events_mirrored(chain, indexer, session_factory):
    chain.add("Bridge", "ApprovalForAll", make_event(BRIDGE_ADDRESS, 100, 0, {
        "owner": SELLER,
        "operator": MARKETPLACE_ADDRESS,
        "approved": True,
    }))
    chain.add("Marketplace", "FeeClaimed", make_event(MARKETPLACE_ADDRESS, 102, 0, {
        "tokenAddress": "0x0000000000000000000000000000000000000000",
        "to": SELLER,
        "amount": 25 * 10**18,
    }))

    assert indexer.process_range(100, 104) == 2

    with session_factory() as session:
        approval = session.scalars(select(ApprovalForAllRecord)).one()
        fee = session.scalars(select(FeeClaimedRecord)).one()
    assert approval.approved is True
    assert approval.operator == MARKETPLACE_ADDRESS
    assert fee.amount == str(25 * 10**18)
    assert fee.to_address == SELLER


@pytest.mark.asyncio
async def test_polling_continues_after_errors(indexer):
    calls = []

    def poll_once():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("rpc unavailable")
        indexer.is_running = False
        return 0

    indexer.poll_once = poll_once

    with patch("ordinals_bridge.indexer.processor.asyncio.sleep", new_callable=AsyncMock):
        await indexer.start_polling(interval=12)

    assert len(calls) == 2


@pytest.mark.asyncio
async def test_stop(indexer):
    indexer.is_running = True
    await indexer.stop()
    assert indexer.is_running is False
