"""
Frontend-facing HTTP API.

Validates bridge and HTLC requests and forwards them to the bridge listener
and bridge service, drives the Bitcoin confirmation flow for
``/api/bridge/initiate`` and serves marketplace listings from the indexer.
"""

import logging
from typing import Any

import httpx
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from web3 import Web3

from .config import ApiConfig
from .confirmation_poller import ConfirmationPoller, submit_to_light_client
from .errors import BridgeError, GraphQueryError, ProxyError
from .marketplace import MarketplaceQueries
from .models import BridgeState, BridgeStateMetadata, BridgeStatus, now_ms
from .utils.bitcoin_api import EsploraClient
from .utils.proxy import ServiceForwarder, upstream_body
from .utils.state_manager import BridgeStateManager, LocalStorage

logger = logging.getLogger(__name__)

MISSING_PARAMETERS = {'error': 'Missing required parameters'}
GRAPH_NOT_CONFIGURED = {'error': 'Server configuration error: GRAPH_ENDPOINT is not set'}


async def read_json_body(request: Request) -> dict[str, Any]:
    """Request body as a dict; anything unparsable counts as empty."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def missing(body: dict[str, Any], *names: str) -> bool:
    """Absent, null, empty string, zero or false; empty objects and lists count as given."""
    return any(body.get(name) in (None, "", 0, False) for name in names)


def create_app(
    config: ApiConfig,
    poller: ConfirmationPoller | None = None,
    state_manager: BridgeStateManager | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        config: API configuration
        poller: Confirmation poller, built from config when omitted
        state_manager: Bridge state store, built from config when omitted
        transport: httpx transport for all outgoing calls (tests use MockTransport)
    """
    app = FastAPI(title="Ordinals Bridge API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.frontend_url],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    listener = ServiceForwarder(
        config.bridge_listener_url, env_name="BRIDGE_LISTENER_URL", transport=transport
    )
    bridge_service = ServiceForwarder(config.bridge_service_url, transport=transport)
    if poller is None:
        poller = ConfirmationPoller(
            EsploraClient(config.bitcoin.esplora_api_url, transport=transport),
            required_confirmations=config.bitcoin.required_confirmations,
            polling_interval=config.bitcoin.polling_interval,
        )
    if state_manager is None:
        state_manager = BridgeStateManager(LocalStorage(config.state_file))
    marketplace = (
        MarketplaceQueries(config.graph_endpoint, transport=transport)
        if config.graph_endpoint else None
    )

    app.state.config = config
    app.state.poller = poller
    app.state.state_manager = state_manager

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            return JSONResponse(status_code=405, content={'error': 'Method not allowed'})
        return JSONResponse(status_code=exc.status_code, content={'error': str(exc.detail)})

    @app.exception_handler(ProxyError)
    async def proxy_error_handler(request: Request, exc: ProxyError):
        return JSONResponse(status_code=exc.status_code, content=exc.body)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={
            'error': 'Internal server error',
            'details': str(exc),
        })

    @app.post("/api/bridge/create-request")
    async def create_bridge_request(request: Request):
        body = await read_json_body(request)
        if missing(body, 'inscriptionId', 'userEvmAddress'):
            return JSONResponse(status_code=400, content=MISSING_PARAMETERS)

        try:
            data = await listener.request("POST", "/api/bridge-request", {
                'inscriptionId': body['inscriptionId'],
                'userEvmAddress': body['userEvmAddress'],
            })
        except ProxyError:
            raise
        except httpx.HTTPStatusError as e:
            logger.error(f"Error creating bridge request: {e}")
            return JSONResponse(status_code=500, content={
                'error': 'Failed to create bridge request',
                'details': upstream_body(e),
            })
        except Exception as e:
            logger.error(f"Error creating bridge request: {e}")
            return JSONResponse(status_code=500, content={
                'error': 'Failed to create bridge request',
                'details': str(e),
            })
        return data

    @app.post("/api/bridge/initiate")
    async def initiate_bridge(request: Request):
        body = await read_json_body(request)
        if missing(body, 'txId', 'inscriptionId', 'fromAddress', 'receiverAddress', 'metadata'):
            return JSONResponse(status_code=400, content=MISSING_PARAMETERS)

        receiver_address = body['receiverAddress']
        if not isinstance(receiver_address, str) or not Web3.is_address(receiver_address):
            return JSONResponse(status_code=400, content={'error': 'Invalid receiver address'})

        tx_id: str = body['txId']
        metadata: dict[str, Any] = body['metadata'] if isinstance(body['metadata'], dict) else {}

        try:
            state_manager.save_bridge_state(BridgeState(
                tx_id=tx_id,
                inscription_id=body['inscriptionId'],
                from_address=body['fromAddress'],
                to_address=config.bitcoin.bridge_btc_address,
                receiver_address=receiver_address,
                status=BridgeStatus.PENDING_CONFIRMATION,
                metadata=BridgeStateMetadata(
                    inscription_number=str(metadata.get('inscriptionNumber', '')),
                    content_type=metadata.get('contentType', ''),
                    timestamp=now_ms(),
                ),
            ))

            await poller.wait_for_confirmations(tx_id)

            state_manager.update_bridge_status(BridgeStatus.GENERATING_PROOF)
            proof = await poller.get_transaction_proof(tx_id)

            logger.info("Verifying transaction with Light Client...")
            state_manager.update_bridge_status(BridgeStatus.SUBMITTING_TO_LIGHT_CLIENT)
            try:
                proof = await submit_to_light_client(proof)
            except Exception as e:
                logger.error(f"Light Client verification error: {e}")
                raise BridgeError('Light Client verification failed') from e

            # Minting is performed by the bridge listener once the ordinal reaches the bridge address
            logger.info(f"Bridge of {body['inscriptionId']} verified for {receiver_address}")
            state_manager.update_bridge_status(BridgeStatus.COMPLETED)
        except Exception as e:
            logger.error(f"Bridge error: {e}", exc_info=True)
            try:
                state_manager.update_bridge_status(BridgeStatus.FAILED, str(e))
            except Exception as state_error:
                logger.error(f"Failed to record bridge failure: {state_error}")
            return JSONResponse(status_code=500, content={
                'status': 'failed',
                'error': str(e) or 'Unknown error occurred',
            })

        return {
            'status': 'completed',
            'message': 'Bridge process completed successfully',
            'data': {
                'txId': tx_id,
                'proof': proof.to_dict(),
                'receiverAddress': receiver_address,
                'metadata': body['metadata'],
            },
        }

    @app.get("/api/bridge/state")
    async def get_bridge_state():
        try:
            state = state_manager.get_bridge_state()
        except Exception as e:
            logger.error(f"Error reading bridge state: {e}")
            return JSONResponse(status_code=500, content={
                'error': 'Failed to read bridge state',
                'details': str(e),
            })
        if state is None:
            return JSONResponse(status_code=404, content={'error': 'No bridge in progress'})
        return state.to_dict()

    @app.post("/api/htlc/create-ordinal-htlc")
    async def create_ordinal_htlc(request: Request):
        body = await read_json_body(request)
        if missing(body, 'recipientAddress', 'refundAddress'):
            return JSONResponse(status_code=400, content={
                'error': 'Missing required parameters: recipientAddress and refundAddress are required'
            })

        payload = {
            name: body[name]
            for name in ('recipientAddress', 'refundAddress', 'btcAddress', 'userEvmAddress')
            if body.get(name)
        }
        return await bridge_service.forward(
            "POST", "/api/htlc/create-ordinal-htlc", 'Failed to create HTLC', payload
        )

    @app.post("/api/htlc/execute-refund")
    async def execute_refund(request: Request):
        body = await read_json_body(request)
        if missing(body, 'requestId', 'destinationAddress'):
            return JSONResponse(status_code=400, content={
                'error': 'Missing required parameters: requestId and destinationAddress are required'
            })

        return await bridge_service.forward(
            "POST",
            "/api/htlc/execute-refund",
            'Failed to execute refund',
            {'requestId': body['requestId'], 'destinationAddress': body['destinationAddress']},
        )

    @app.get("/api/marketplace/orders")
    async def get_marketplace_orders(
        token_id: str | None = Query(None, alias="tokenId"),
        seller: str | None = None,
        first: int = 100,
    ):
        if marketplace is None:
            return JSONResponse(status_code=500, content=GRAPH_NOT_CONFIGURED)

        try:
            if token_id:
                orders = await marketplace.without_inactive(
                    await marketplace.orders_for_token(token_id)
                )
            elif seller:
                orders = await marketplace.without_inactive(
                    await marketplace.orders_for_seller(seller)
                )
            else:
                orders = await marketplace.active_orders(first)
        except (GraphQueryError, httpx.HTTPError) as e:
            logger.error(f"Error fetching marketplace orders: {e}")
            return JSONResponse(status_code=500, content={
                'error': 'Failed to fetch marketplace orders',
                'details': str(e),
            })
        return {'orders': orders}

    @app.get("/api/marketplace/bridged-ordinals")
    async def get_bridged_ordinals(first: int = 100):
        if marketplace is None:
            return JSONResponse(status_code=500, content=GRAPH_NOT_CONFIGURED)

        try:
            ordinals = await marketplace.bridged_ordinals(first)
        except (GraphQueryError, httpx.HTTPError) as e:
            logger.error(f"Error fetching bridged ordinals: {e}")
            return JSONResponse(status_code=500, content={
                'error': 'Failed to fetch bridged ordinals',
                'details': str(e),
            })
        return {'ordinals': ordinals}

    @app.get("/api/htlc/status/{request_id}")
    async def get_htlc_status(request_id: str):
        return await bridge_service.forward(
            "GET", f"/api/htlc/status/{request_id}", 'Failed to get HTLC status'
        )

    return app
