"""
Marketplace access.

Contract calls for listing, buying, cancelling and offering on bridged
ordinals, and GraphQL queries against the indexer for order projections.
"""

import logging
import time
from typing import TYPE_CHECKING, Any

import httpx
from web3 import Web3
from web3.contract import Contract
from web3.types import HexBytes, TxReceipt, Wei

from .bridge_contract import wait_for_success
from .errors import GraphQueryError

if TYPE_CHECKING:
    from .utils.contract_utility import ContractUtility

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

ORDER_FIELDS = """
      id
      orderId
      tokenId
      pricePerNFT
      seller
      copies
      startTime
      endTime
      paymentToken
      nftContract
      blockTimestamp
      transactionHash
"""

MARKETPLACE_ORDERS_QUERY = f"""
  query GetMarketplaceOrders($tokenId: String!) {{
    orderCreateds(where: {{tokenId: $tokenId}}) {{{ORDER_FIELDS}    }}
  }}
"""

MARKETPLACE_SELLER_ORDERS_QUERY = f"""
  query GetSellerOrders($seller: String!) {{
    orderCreateds(where: {{seller: $seller}}) {{{ORDER_FIELDS}    }}
  }}
"""

ALL_MARKETPLACE_ORDERS_QUERY = f"""
  query GetAllMarketplaceOrders($first: Int!) {{
    orderCreateds(first: $first) {{{ORDER_FIELDS}    }}
  }}
"""

ALL_BRIDGED_ORDINALS_QUERY = """
  query GetAllBridgedOrdinals($first: Int!) {
    ordinalBridgeds(first: $first) {
      id
      tokenId
      inscriptionId
      receiver
      blockTimestamp
      transactionHash
    }
  }
"""

INACTIVE_ORDERS_QUERY = """
  query GetInactiveOrders {
    orderCancelleds { id orderId blockTimestamp }
    orderPurchaseds { id orderId blockTimestamp }
    bidAccepteds { id orderId blockTimestamp }
  }
"""


class MarketplaceContract:
    """Transactions against the Marketplace contract, signed by the configured account."""

    def __init__(self, contract_util: "ContractUtility", address: str) -> None:
        self.contract_util = contract_util
        self.address: str = Web3.to_checksum_address(address)
        self.contract: Contract = contract_util.get_contract("Marketplace", self.address)

    def _send(self, call, value: int = 0) -> TxReceipt:
        tx_hash: HexBytes = call.transact({'value': Wei(value)})
        logger.info(f"Marketplace transaction sent: {Web3.to_hex(tx_hash)}")
        return wait_for_success(self.contract_util.w3, tx_hash)

    def place_order_for_sell(
        self,
        token_id: int,
        nft_contract: str,
        price_wei: int,
        end_time: int,
        copies: int = 0,
        payment_token: str = ZERO_ADDRESS,
    ) -> TxReceipt:
        """
        List a token for sale.

        Args:
            token_id: Token to list
            nft_contract: Contract of the token (the Bridge for bridged ordinals)
            price_wei: Price per NFT in wei
            end_time: Unix time the listing ends
            copies: 0 for ERC-721 tokens
            payment_token: Zero address for the native currency
        """
        return self._send(self.contract.functions.placeOrderForSell(
            int(token_id),
            Web3.to_checksum_address(nft_contract),
            copies,
            int(price_wei),
            Web3.to_checksum_address(payment_token),
            int(end_time),
        ))

    def buy_now(self, order_id: int, price_wei: int, copies: int = 1) -> TxReceipt:
        return self._send(
            self.contract.functions.buyNow(int(order_id), copies), value=int(price_wei)
        )

    def cancel_order(self, order_id: int) -> TxReceipt:
        return self._send(self.contract.functions.cancelOrder(int(order_id)))

    def place_offer_for_order(
        self,
        order_id: int,
        price_wei: int,
        copies: int = 1,
        end_time_days: int = 7,
    ) -> TxReceipt:
        """
        Offer on an order, escrowing the offered amount.

        The offer expires ``end_time_days`` days from now.
        """
        end_time = int(time.time()) + end_time_days * 24 * 60 * 60
        return self._send(
            self.contract.functions.placeOfferForOrder(
                int(order_id), copies, int(price_wei), end_time
            ),
            value=int(price_wei),
        )


class MarketplaceQueries:
    """GraphQL queries against the indexer endpoint."""

    def __init__(
        self,
        graph_endpoint: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ):
        if not graph_endpoint:
            raise ValueError("Graph endpoint not configured")
        self.graph_endpoint = graph_endpoint
        self.transport = transport
        self.timeout = timeout

    async def _query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        async with httpx.AsyncClient(transport=self.transport) as client:
            response = await client.post(
                self.graph_endpoint,
                json={'query': query, 'variables': variables or {}},
                timeout=self.timeout,
            )
        if not response.is_success:
            raise GraphQueryError(f"Graph API error: {response.reason_phrase}")

        result = response.json()
        if errors := result.get('errors'):
            logger.error(f"GraphQL errors: {errors}")
            raise GraphQueryError(errors[0].get('message', 'Unknown GraphQL error'))
        return result.get('data') or {}

    async def orders_for_token(self, token_id: int | str) -> list[dict[str, Any]]:
        data = await self._query(MARKETPLACE_ORDERS_QUERY, {'tokenId': str(token_id)})
        return data.get('orderCreateds') or []

    async def orders_for_seller(self, seller: str) -> list[dict[str, Any]]:
        data = await self._query(MARKETPLACE_SELLER_ORDERS_QUERY, {'seller': seller.lower()})
        return data.get('orderCreateds') or []

    async def bridged_ordinals(self, first: int = 100) -> list[dict[str, Any]]:
        data = await self._query(ALL_BRIDGED_ORDINALS_QUERY, {'first': first})
        return data.get('ordinalBridgeds') or []

    async def inactive_order_ids(self) -> set[str]:
        """Order ids that were cancelled, purchased or settled through an accepted bid."""
        data = await self._query(INACTIVE_ORDERS_QUERY)
        return {
            str(row['orderId'])
            for key in ('orderCancelleds', 'orderPurchaseds', 'bidAccepteds')
            for row in data.get(key) or []
        }

    async def without_inactive(self, orders: list[dict[str, Any]]) -> list[dict[str, Any]]:
        inactive = await self.inactive_order_ids()
        return [order for order in orders if str(order['orderId']) not in inactive]

    async def active_orders(self, first: int = 100) -> list[dict[str, Any]]:
        """Created orders that are still open."""
        data = await self._query(ALL_MARKETPLACE_ORDERS_QUERY, {'first': first})
        return await self.without_inactive(data.get('orderCreateds') or [])
