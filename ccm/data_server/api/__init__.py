"""
HTTP API layer for the CCM data server.

This module provides:
- create_http_app(): aiohttp application with CORS and size limits
- start_http_server(): bind and serve an application
- deparam(): jQuery.param query string decoding
"""

from .http_server import create_http_app, start_http_server
from .params import QueryStringError, deparam

__all__ = [
    "create_http_app",
    "start_http_server",
    "deparam",
    "QueryStringError",
]
