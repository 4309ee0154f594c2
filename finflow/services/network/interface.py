"""
HTTP Client Interface

The repository depends on this interface rather than on APIClient, so
tests and alternative transports can stand in for the real client.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel


T = TypeVar("T")

# Returns the new access token, raises on failure
RefreshHandler = Callable[[], Awaitable[str]]

# Called when credentials are rejected for good
UnauthorizedHook = Callable[[], Awaitable[None]]

RequestBody = Optional[Union[BaseModel, Mapping[str, Any]]]


class HTTPClientInterface(ABC):
    """Typed, authenticated access to the backend API."""

    @abstractmethod
    async def request(
        self,
        endpoint: str,
        response_model: Type[T],
        *,
        method: str = "GET",
        body: RequestBody = None,
        headers: Optional[Mapping[str, str]] = None,
        api_version: Optional[str] = None,
        allow_refresh_retry: bool = True,
    ) -> T:
        """
        Perform a request and decode the 2xx body into response_model.

        Args:
            endpoint: Path appended to the configured base URL
            response_model: Type the success body is decoded into
            method: HTTP method
            body: JSON body (models are sent by alias, without nulls)
            headers: Extra headers merged over the defaults
            api_version: Overrides the configured API-Version header
            allow_refresh_retry: Refresh and retry once on 401. Disabled
                for login and refresh calls so they never loop.

        Raises:
            NetworkError: No response was received
            UnauthorizedError: Credentials rejected and not recoverable
            ServerError: Any other non-2xx response
            DecodingError: 2xx body did not match response_model
        """
        pass

    @abstractmethod
    def configure_auth_hooks(
        self,
        refresh_handler: RefreshHandler,
        on_unauthorized: Optional[UnauthorizedHook] = None,
    ) -> None:
        """Install the refresh handler and unauthorized hook after construction."""
        pass
