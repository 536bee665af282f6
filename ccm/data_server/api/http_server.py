"""
HTTP gateway for the CCM data server.

This module exposes the dispatcher over plain HTTP so that browser clients
(ccm datastores) can reach it cross-origin:
- GET (any path): request encoded in the query string (jQuery.param style)
- POST (any path): request as JSON body
- OPTIONS: CORS preflight

Invariants:
    - Every response carries the CORS allow-origin header
    - Forbidden operations answer 403 with an empty body
    - Bodies larger than max_data_size answer 413 before any parsing
    - Successful results answer 200 with application/json; charset=utf-8
    - String results (the key returned by set) are sent as is, unquoted;
      deployed clients read them that way

How to change safely:
    - The request shape is shared with deployed browser clients
    - Don't expose error details in responses, log them instead
"""

from __future__ import annotations

import functools
import json
import logging
from collections.abc import Callable
from typing import Any

from aiohttp import web
from bson import json_util

from ..config import HttpConfig
from ..dispatcher import FORBIDDEN, OperationDispatcher
from ..errors import PayloadTooLargeError
from .params import deparam

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


def create_http_app(
    dispatcher: OperationDispatcher,
    config: HttpConfig | None = None,
) -> web.Application:
    """Create the HTTP application.

    Args:
        dispatcher: OperationDispatcher executing the requests
        config: HTTP gateway configuration

    Returns:
        aiohttp Application instance
    """
    config = config or HttpConfig()
    app = web.Application()

    request_handler = functools.partial(handle_request, dispatcher=dispatcher, config=config)
    app.router.add_get("/{tail:.*}", request_handler)
    app.router.add_post("/{tail:.*}", request_handler)
    app.router.add_route("OPTIONS", "/{tail:.*}", request_handler)

    # Add CORS middleware
    @web.middleware
    async def cors_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        if request.method == "OPTIONS":
            response = web.Response()
        else:
            try:
                response = await handler(request)
            except web.HTTPException as e:
                response = e

        response.headers["Access-Control-Allow-Origin"] = config.cors_origin
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"

        return response

    # Add error handler
    @web.middleware
    async def error_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except Exception as e:
            logger.error(f"HTTP handler error: {e}", exc_info=True)
            return forbidden()

    app.middlewares.append(cors_middleware)
    app.middlewares.append(error_middleware)

    return app


def forbidden() -> web.Response:
    """Empty 403 response."""
    return web.Response(status=403)


async def read_body(request: web.Request, limit: int) -> bytes:
    """Read the request body, enforcing a size limit.

    Raises:
        PayloadTooLargeError: As soon as more than ``limit`` bytes arrived
    """
    body = bytearray()
    async for chunk in request.content.iter_chunked(READ_CHUNK_SIZE):
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadTooLargeError(limit)
    return bytes(body)


async def parse_request(request: web.Request, config: HttpConfig) -> Any:
    """Decode the operation request from query string or JSON body.

    Raises:
        PayloadTooLargeError: If the POST body is too large
        ValueError: If the body is not valid JSON or the query string is malformed
    """
    if request.method == "POST":
        body = await read_body(request, config.max_data_size)
        return json.loads(body)
    return deparam(request.rel_url.raw_query_string)


async def handle_request(
    request: web.Request,
    dispatcher: OperationDispatcher,
    config: HttpConfig,
) -> web.Response:
    """Handle a data operation request."""
    try:
        data = await parse_request(request, config)
    except PayloadTooLargeError as e:
        logger.warning(f"Rejected request body: {e}", extra={"limit": e.limit})
        response = web.Response(status=413)
        response.force_close()
        return response
    except ValueError as e:
        logger.debug(f"Rejected malformed request: {e}")
        return forbidden()

    result = await dispatcher.process(data)
    if result is FORBIDDEN:
        return forbidden()

    if isinstance(result, str):
        return web.Response(text=result, content_type="application/json")
    return web.json_response(result, dumps=json_util.dumps)


async def start_http_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    """Start serving an application.

    Args:
        app: Application from create_http_app()
        host: Host to bind to
        port: Port to listen on

    Returns:
        Runner to pass to ``runner.cleanup()`` on shutdown
    """
    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"HTTP server running on http://{host}:{port}")
    return runner
