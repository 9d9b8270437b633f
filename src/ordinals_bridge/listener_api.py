"""
HTTP API of the bridge listener service.

Lets the frontend API register bridge requests and inspect or retry them.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import MISSING_PARAMETERS, missing, read_json_body
from .bridge_listener import BridgeListener
from .config import ListenerConfig
from .errors import BridgeError, BridgeRequestNotFoundError

logger = logging.getLogger(__name__)

NOT_INITIALIZED = {'error': 'Bridge listener not initialized'}


def create_listener_app(
    config: ListenerConfig,
    listener: Optional[BridgeListener] = None,
) -> FastAPI:
    """
    Build the listener application.

    When no listener is given one is created on startup and its monitoring
    loop runs alongside the server until shutdown.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.listener is None:
            # Startup failures propagate and stop the server
            app.state.listener = BridgeListener.create(config)
        monitor_task = asyncio.create_task(app.state.listener.run())
        try:
            yield
        finally:
            app.state.listener.stop()
            await monitor_task

    app = FastAPI(title="Ordinals Bridge Listener", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.frontend_url],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.listener = listener

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            return JSONResponse(status_code=405, content={'error': 'Method not allowed'})
        return JSONResponse(status_code=exc.status_code, content={'error': str(exc.detail)})

    @app.post("/api/bridge-request")
    async def create_bridge_request(request: Request):
        bridge_listener: Optional[BridgeListener] = app.state.listener
        if bridge_listener is None:
            return JSONResponse(status_code=503, content=NOT_INITIALIZED)

        body = await read_json_body(request)
        if missing(body, 'inscriptionId', 'userEvmAddress'):
            return JSONResponse(status_code=400, content=MISSING_PARAMETERS)

        try:
            await bridge_listener.create_bridge_request(
                body['inscriptionId'], body['userEvmAddress']
            )
        except Exception as e:
            logger.error(f"Error creating bridge request: {e}")
            return JSONResponse(status_code=500, content={
                'error': 'Failed to create bridge request',
                'details': str(e),
            })

        return {
            'message': 'Bridge request created successfully',
            'bridgeAddress': bridge_listener.bridge_btc_address,
        }

    @app.get("/api/bridge-request/{inscription_id}")
    async def get_bridge_request(inscription_id: str):
        bridge_listener: Optional[BridgeListener] = app.state.listener
        if bridge_listener is None:
            return JSONResponse(status_code=503, content=NOT_INITIALIZED)

        bridge_request = bridge_listener.get_bridge_request(inscription_id)
        if bridge_request is None:
            return JSONResponse(status_code=404, content={'error': 'Bridge request not found'})
        return bridge_request.to_dict()

    @app.post("/api/bridge-request/{inscription_id}/retry")
    async def retry_bridge_request(inscription_id: str):
        bridge_listener: Optional[BridgeListener] = app.state.listener
        if bridge_listener is None:
            return JSONResponse(status_code=503, content=NOT_INITIALIZED)

        try:
            bridge_request = await bridge_listener.retry_failed_request(inscription_id)
        except BridgeRequestNotFoundError as e:
            return JSONResponse(status_code=404, content={'error': str(e)})
        except BridgeError as e:
            return JSONResponse(status_code=400, content={'error': str(e)})
        except Exception as e:
            logger.error(f"Error retrying bridge request: {e}")
            return JSONResponse(status_code=500, content={
                'error': 'Failed to retry bridge request',
                'details': str(e),
            })
        return bridge_request.to_dict()

    return app
