#!/usr/bin/env python3
"""Tests for the Bridge and Marketplace contract clients and indexer queries."""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from ordinals_bridge.bridge_contract import BridgeContract
from ordinals_bridge.errors import ContractCallError, GraphQueryError
from ordinals_bridge.marketplace import (
    ZERO_ADDRESS,
    MarketplaceContract,
    MarketplaceQueries,
)
from ordinals_bridge.models import InscriptionDetails, OrdinalMetadata

BRIDGE_ADDRESS = "0x85BfE05492aFC3D04Ff3B2ca6771ACF6f853d90d"
MARKETPLACE_ADDRESS = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
RECEIVER = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"
GRAPH_ENDPOINT = "http://indexer.test/graphql"
TX_HASH = bytes.fromhex("12" * 32)


@pytest.fixture
def contract_util():
    util = MagicMock()
    util.w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 5}
    return util


def sent_transaction(contract, function_name):
    """Configure ``function_name(...).transact`` to return a hash and return the function mock."""
    function = getattr(contract.functions, function_name)
    function.return_value.transact.return_value = TX_HASH
    return function


class TestMarketplaceContract:
    """Tests for Marketplace transactions."""

    def test_place_order_for_sell(self, contract_util):
        marketplace = MarketplaceContract(contract_util, MARKETPLACE_ADDRESS)
        function = sent_transaction(marketplace.contract, "placeOrderForSell")

        receipt = marketplace.place_order_for_sell(
            token_id=1, nft_contract=BRIDGE_ADDRESS, price_wei=10**18, end_time=1_800_000_000
        )

        assert receipt["status"] == 1
        function.assert_called_once_with(
            1, BRIDGE_ADDRESS, 0, 10**18, ZERO_ADDRESS, 1_800_000_000
        )
        function.return_value.transact.assert_called_once_with({"value": 0})
        contract_util.get_contract.assert_called_once_with("Marketplace", MARKETPLACE_ADDRESS)

    def test_buy_now_pays_price(self, contract_util):
        marketplace = MarketplaceContract(contract_util, MARKETPLACE_ADDRESS)
        function = sent_transaction(marketplace.contract, "buyNow")

        marketplace.buy_now(order_id=3, price_wei=5 * 10**17)

        function.assert_called_once_with(3, 1)
        function.return_value.transact.assert_called_once_with({"value": 5 * 10**17})

    def test_place_offer_escrows_amount(self, contract_util):
        marketplace = MarketplaceContract(contract_util, MARKETPLACE_ADDRESS)
        function = sent_transaction(marketplace.contract, "placeOfferForOrder")

        with patch("ordinals_bridge.marketplace.time.time", return_value=1_000):
            marketplace.place_offer_for_order(order_id=3, price_wei=100)

        function.assert_called_once_with(3, 1, 100, 1_000 + 7 * 24 * 60 * 60)
        function.return_value.transact.assert_called_once_with({"value": 100})

    def test_reverted_transaction(self, contract_util):
        contract_util.w3.eth.wait_for_transaction_receipt.return_value = {
            "status": 0, "blockNumber": 5
        }
        marketplace = MarketplaceContract(contract_util, MARKETPLACE_ADDRESS)
        sent_transaction(marketplace.contract, "cancelOrder")

        with pytest.raises(ContractCallError, match="failed with status=0"):
            marketplace.cancel_order(3)


class TestBridgeContract:
    """Tests for Bridge calls."""

    def test_mint_bridged_ordinal(self, contract_util):
        bridge = BridgeContract(contract_util, BRIDGE_ADDRESS)
        function = sent_transaction(bridge.contract, "mintBridgedOrdinal")
        inscription = InscriptionDetails(
            id="abci0",
            number=42,
            address="bc1pbridge",
            content_type="text/plain",
            content_length=12,
            sat_ordinal=99,
            sat_rarity="rare",
            genesis_timestamp=1_700_000_000,
        )

        bridge.mint_bridged_ordinal(RECEIVER, "1", inscription)

        function.assert_called_once_with(
            RECEIVER, 1, "abci0", 42, "text/plain", 12, 99, "rare", 1_700_000_000
        )
        function.return_value.transact.assert_called_once_with({"gas": 500_000})

    def test_ordinal_metadata(self, contract_util):
        bridge = BridgeContract(contract_util, BRIDGE_ADDRESS)
        bridge.contract.functions.ordinalMetadata.return_value.call.return_value = [
            "abci0", 42, "image/png", 10, 99, "common", 1_700_000_000, 1_700_000_100
        ]

        metadata = bridge.ordinal_metadata("1")

        assert metadata == OrdinalMetadata(
            "abci0", 42, "image/png", 10, 99, "common", 1_700_000_000, 1_700_000_100
        )
        assert metadata.to_dict()["bridgeTimestamp"] == 1_700_000_100

    def test_is_processed(self, contract_util):
        bridge = BridgeContract(contract_util, BRIDGE_ADDRESS)
        bridge.contract.functions.processedInscriptions.return_value.call.return_value = True

        assert bridge.is_processed("abci0") is True
        bridge.contract.functions.processedInscriptions.assert_called_once_with("abci0")


def graph(handler) -> MarketplaceQueries:
    return MarketplaceQueries(GRAPH_ENDPOINT, transport=httpx.MockTransport(handler))


class TestMarketplaceQueries:
    """Tests for GraphQL queries against the indexer."""

    def test_requires_endpoint(self):
        with pytest.raises(ValueError, match="Graph endpoint not configured"):
            MarketplaceQueries("")

    @pytest.mark.asyncio
    async def test_orders_for_seller_lowercases(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"data": {"orderCreateds": [{"orderId": "1"}]}})

        orders = await graph(handler).orders_for_seller(RECEIVER)

        assert orders == [{"orderId": "1"}]
        assert seen[0]["variables"] == {"seller": RECEIVER.lower()}
        assert "GetSellerOrders" in seen[0]["query"]

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self):
        def handler(request):
            return httpx.Response(200, json={"errors": [{"message": "Unknown field tokenId"}]})

        with pytest.raises(GraphQueryError, match="Unknown field tokenId"):
            await graph(handler).orders_for_token(1)

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        with pytest.raises(GraphQueryError, match="Graph API error"):
            await graph(lambda request: httpx.Response(502)).bridged_ordinals()

    @pytest.mark.asyncio
    async def test_active_orders_excludes_settled(self):
        def handler(request):
            query = json.loads(request.content)["query"]
            if "GetInactiveOrders" in query:
                return httpx.Response(200, json={"data": {
                    "orderCancelleds": [{"orderId": "1"}],
                    "orderPurchaseds": [{"orderId": "2"}],
                    "bidAccepteds": [],
                }})
            return httpx.Response(200, json={"data": {"orderCreateds": [
                {"orderId": "1"}, {"orderId": "2"}, {"orderId": "3"},
            ]}})

        orders = await graph(handler).active_orders()

        assert orders == [{"orderId": "3"}]
