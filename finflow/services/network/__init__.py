"""Network services package."""

from finflow.services.network.client import APIClient
from finflow.services.network.interface import (
    HTTPClientInterface,
    RefreshHandler,
    RequestBody,
    UnauthorizedHook,
)

__all__ = [
    "APIClient",
    "HTTPClientInterface",
    "RefreshHandler",
    "RequestBody",
    "UnauthorizedHook",
]
