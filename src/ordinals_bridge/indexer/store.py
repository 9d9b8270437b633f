"""
Database tables mirroring Bridge and Marketplace events.

One append-only table per event type. Rows are keyed by
``<transaction hash>-<log index>`` and uint256 values are kept as decimal
strings.
"""

from pathlib import Path

from sqlalchemy import BigInteger, Boolean, String, Text, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

UINT256 = String(78)
ADDRESS = String(42)
HASH = String(66)


class Base(DeclarativeBase):
    pass


class EventRecord:
    """Columns shared by every mirrored event."""

    id: Mapped[str] = mapped_column(String(80), primary_key=True)
    block_number: Mapped[int] = mapped_column(BigInteger, index=True)
    block_timestamp: Mapped[int] = mapped_column(BigInteger)
    transaction_hash: Mapped[str] = mapped_column(HASH, index=True)
    contract: Mapped[str] = mapped_column(ADDRESS)
    event_name: Mapped[str] = mapped_column(String(64))


class OrdinalBridgedRecord(EventRecord, Base):
    __tablename__ = "bridge_ordinal_bridged"

    # keccak topic of the indexed inscription id string
    inscription_id: Mapped[str] = mapped_column(HASH, index=True)
    token_id: Mapped[str] = mapped_column(UINT256, index=True)
    receiver: Mapped[str] = mapped_column(ADDRESS, index=True)
    content_type: Mapped[str] = mapped_column(Text)
    sat_ordinal: Mapped[str] = mapped_column(UINT256)


class TransferRecord(EventRecord, Base):
    __tablename__ = "bridge_transfer"

    from_address: Mapped[str] = mapped_column(ADDRESS, index=True)
    to_address: Mapped[str] = mapped_column(ADDRESS, index=True)
    token_id: Mapped[str] = mapped_column(UINT256, index=True)


class ApprovalRecord(EventRecord, Base):
    __tablename__ = "bridge_approval"

    owner: Mapped[str] = mapped_column(ADDRESS, index=True)
    approved: Mapped[str] = mapped_column(ADDRESS)
    token_id: Mapped[str] = mapped_column(UINT256, index=True)


class ApprovalForAllRecord(EventRecord, Base):
    __tablename__ = "bridge_approval_for_all"

    owner: Mapped[str] = mapped_column(ADDRESS, index=True)
    operator: Mapped[str] = mapped_column(ADDRESS, index=True)
    approved: Mapped[bool] = mapped_column(Boolean)


class OwnershipTransferredRecord(EventRecord, Base):
    """Shared by both contracts; ``contract`` tells them apart."""

    __tablename__ = "ownership_transferred"

    previous_owner: Mapped[str] = mapped_column(ADDRESS)
    new_owner: Mapped[str] = mapped_column(ADDRESS, index=True)


class OrderCreatedRecord(EventRecord, Base):
    __tablename__ = "marketplace_order_created"

    order_id: Mapped[str] = mapped_column(UINT256, index=True)
    token_id: Mapped[str] = mapped_column(UINT256, index=True)
    price_per_nft: Mapped[str] = mapped_column(UINT256)
    seller: Mapped[str] = mapped_column(ADDRESS, index=True)
    copies: Mapped[str] = mapped_column(UINT256)
    start_time: Mapped[str] = mapped_column(UINT256)
    end_time: Mapped[str] = mapped_column(UINT256)
    payment_token: Mapped[str] = mapped_column(ADDRESS)
    nft_contract: Mapped[str] = mapped_column(ADDRESS)


class OrderCancelledRecord(EventRecord, Base):
    __tablename__ = "marketplace_order_cancelled"

    order_id: Mapped[str] = mapped_column(UINT256, index=True)


class OrderPurchasedRecord(EventRecord, Base):
    __tablename__ = "marketplace_order_purchased"

    order_id: Mapped[str] = mapped_column(UINT256, index=True)
    buyer: Mapped[str] = mapped_column(ADDRESS, index=True)
    copies: Mapped[str] = mapped_column(UINT256)


class BidPlacedRecord(EventRecord, Base):
    __tablename__ = "marketplace_bid_placed"

    order_id: Mapped[str] = mapped_column(UINT256, index=True)
    bid_index: Mapped[str] = mapped_column(UINT256)
    bidder: Mapped[str] = mapped_column(ADDRESS, index=True)
    copies: Mapped[str] = mapped_column(UINT256)
    price_per_nft: Mapped[str] = mapped_column(UINT256)
    start_time: Mapped[str] = mapped_column(UINT256)
    end_time: Mapped[str] = mapped_column(UINT256)


class BidAcceptedRecord(EventRecord, Base):
    __tablename__ = "marketplace_bid_accepted"

    order_id: Mapped[str] = mapped_column(UINT256, index=True)
    bid_id: Mapped[str] = mapped_column(UINT256)
    copies: Mapped[str] = mapped_column(UINT256)


class BidRejectedRecord(EventRecord, Base):
    __tablename__ = "marketplace_bid_rejected"

    order_id: Mapped[str] = mapped_column(UINT256, index=True)
    bid_id: Mapped[str] = mapped_column(UINT256)


class BidWithdrawRecord(EventRecord, Base):
    __tablename__ = "marketplace_bid_withdraw"

    order_id: Mapped[str] = mapped_column(UINT256, index=True)
    bid_id: Mapped[str] = mapped_column(UINT256)


class AddNftSupportRecord(EventRecord, Base):
    __tablename__ = "marketplace_add_nft_support"

    nft_address: Mapped[str] = mapped_column(ADDRESS, index=True)


class AddTokenSupportRecord(EventRecord, Base):
    __tablename__ = "marketplace_add_token_support"

    token_address: Mapped[str] = mapped_column(ADDRESS, index=True)


class FeeClaimedRecord(EventRecord, Base):
    __tablename__ = "marketplace_fee_claimed"

    token_address: Mapped[str] = mapped_column(ADDRESS, index=True)
    to_address: Mapped[str] = mapped_column(ADDRESS)
    amount: Mapped[str] = mapped_column(UINT256)


class IndexerCursor(Base):
    """Last fully processed block per indexer."""

    __tablename__ = "indexer_cursor"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    last_block: Mapped[int] = mapped_column(BigInteger)


def create_session_factory(database_url: str) -> sessionmaker:
    """
    Create the engine and tables, returning a session factory.

    Parent directories of a file-backed SQLite database are created.
    """
    url = make_url(database_url)
    if url.drivername.startswith("sqlite") and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url)
    Base.metadata.create_all(engine)
    return sessionmaker(engine, expire_on_commit=False)
