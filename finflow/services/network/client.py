"""
API Client

DESIGN DECISION: Token expiry is handled here, below the repository, so
no caller ever sees a 401 that a refresh could have fixed.

This client handles:
1. Building requests (JSON content type, API version, bearer token)
2. Single-flight token refresh: however many requests hit a 401 at the
   same time, exactly one refresh call goes to the server and all of
   them wait for its result
3. One retry per logical request after a refresh
4. Decoding backend errors: RFC 7807 problem detail first, then the
   legacy {code, message, result} envelope, then the raw body

The refresh handler is injected after construction through
configure_auth_hooks(); the repository that performs refreshes needs
this client first. Until then a 401 fails immediately.
"""

import asyncio
import json
from typing import Any, Mapping, Optional, Type
from uuid import UUID

import httpx
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finflow.audit import AuditLogger, create_correlation_id, get_logger
from finflow.config import NetworkSettings, get_settings
from finflow.errors import (
    DecodingError,
    NetworkError,
    ServerError,
    UnauthorizedError,
)
from finflow.models.api import ApiResponse, ProblemDetail
from finflow.models.auth import EmptyResponse
from finflow.services.network.interface import (
    HTTPClientInterface,
    RefreshHandler,
    RequestBody,
    T,
    UnauthorizedHook,
)
from finflow.services.storage.interface import CredentialStoreInterface


DEFAULT_SERVER_MESSAGE = "Server error"

# Failures where the request provably never reached the server
RETRYABLE_TRANSPORT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


class APIClient(HTTPClientInterface):
    """
    Authenticated HTTP client for the FinFlow backend.

    One instance per process. The refresh slot is guarded by a lock, so
    the client is safe to call from any number of concurrent tasks.
    """

    def __init__(
        self,
        settings: Optional[NetworkSettings] = None,
        token_store: Optional[CredentialStoreInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        refresh_handler: Optional[RefreshHandler] = None,
        on_unauthorized: Optional[UnauthorizedHook] = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Network settings. Defaults to the environment.
            token_store: Source of the bearer token. Without one, requests
                are sent unauthenticated.
            audit_logger: Receives request/response events
            transport: httpx transport override (tests use MockTransport)
            refresh_handler: Usually left unset and configured later
            on_unauthorized: Usually left unset and configured later
        """
        self._settings = settings or get_settings().network
        self._token_store = token_store
        self._audit = audit_logger or AuditLogger(body_limit=self._settings.log_body_limit)
        self._logger = get_logger("Network")

        self._http = httpx.AsyncClient(
            transport=transport,
            timeout=httpx.Timeout(self._settings.request_timeout),
        )

        self._refresh_handler = refresh_handler
        self._on_unauthorized = on_unauthorized
        self._refresh_task: Optional[asyncio.Future] = None
        self._refresh_lock = asyncio.Lock()

    async def __aenter__(self) -> "APIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def api_version(self) -> str:
        return self._settings.api_version

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    def configure_auth_hooks(
        self,
        refresh_handler: RefreshHandler,
        on_unauthorized: Optional[UnauthorizedHook] = None,
    ) -> None:
        """Install auth hooks after construction (breaks the DI cycle)."""
        self._refresh_handler = refresh_handler
        self._on_unauthorized = on_unauthorized
        self._logger.info("auth_hooks_configured")

    # =========================================================================
    # REQUEST PIPELINE
    # =========================================================================

    async def request(
        self,
        endpoint: str,
        response_model: Type[T] = EmptyResponse,
        *,
        method: str = "GET",
        body: RequestBody = None,
        headers: Optional[Mapping[str, str]] = None,
        api_version: Optional[str] = None,
        allow_refresh_retry: bool = True,
    ) -> T:
        """Perform a typed request, refreshing the token once on 401."""
        correlation_id = create_correlation_id()
        url = self._build_url(endpoint)
        content = self._encode_body(body)

        token_override: Optional[str] = None
        retry_attempted = False

        while True:
            response = await self._send(
                method=method,
                url=url,
                content=content,
                extra_headers=headers,
                api_version=api_version,
                token_override=token_override,
                correlation_id=correlation_id,
            )

            if response.is_success:
                return await self._decode(response, response_model, correlation_id)

            if response.status_code == 401 and allow_refresh_retry:
                if retry_attempted:
                    await self._handle_unauthorized(
                        "token rejected after refresh", correlation_id
                    )
                    raise UnauthorizedError("Session expired")

                try:
                    token_override = await self._refresh_access_token(correlation_id)
                except Exception as e:
                    # The failed refresh already ran the unauthorized hook
                    raise UnauthorizedError("Failed to refresh session") from e

                retry_attempted = True
                continue

            raise await self._server_error(response, correlation_id)

    def _build_url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        return f"{self._settings.base_url}{endpoint}"

    @staticmethod
    def _encode_body(body: RequestBody) -> Optional[bytes]:
        if body is None:
            return None
        if isinstance(body, BaseModel):
            return body.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
        return json.dumps(dict(body)).encode("utf-8")

    async def _build_headers(
        self,
        extra_headers: Optional[Mapping[str, str]],
        api_version: Optional[str],
        token_override: Optional[str],
    ) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "API-Version": api_version or self._settings.api_version,
        }

        if token_override is not None:
            bearer = token_override
        elif self._token_store is not None:
            bearer = await self._token_store.get_token()
        else:
            bearer = None
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"

        if extra_headers:
            headers.update(extra_headers)
        return headers

    async def _send(
        self,
        method: str,
        url: str,
        content: Optional[bytes],
        extra_headers: Optional[Mapping[str, str]],
        api_version: Optional[str],
        token_override: Optional[str],
        correlation_id: UUID,
    ) -> httpx.Response:
        headers = await self._build_headers(extra_headers, api_version, token_override)
        await self._audit.log_request(
            method=method,
            url=url,
            headers=headers,
            body=content.decode("utf-8", errors="replace") if content else None,
            correlation_id=correlation_id,
        )

        try:
            # resource_timeout bounds the whole exchange, retries included
            response = await asyncio.wait_for(
                self._send_with_retry(method, url, content, headers),
                timeout=self._settings.resource_timeout,
            )
        except asyncio.TimeoutError as e:
            message = f"Request timed out after {self._settings.resource_timeout:g}s"
            await self._audit.log_transport_failed(method, url, message, correlation_id)
            raise NetworkError(message) from e
        except (httpx.TransportError, httpx.InvalidURL) as e:
            message = str(e) or e.__class__.__name__
            await self._audit.log_transport_failed(method, url, message, correlation_id)
            raise NetworkError(message) from e

        await self._audit.log_response(
            status_code=response.status_code,
            url=url,
            body=response.text,
            correlation_id=correlation_id,
        )
        return response

    async def _send_with_retry(
        self,
        method: str,
        url: str,
        content: Optional[bytes],
        headers: dict[str, str],
    ) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._settings.connect_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            retry=retry_if_exception_type(RETRYABLE_TRANSPORT_ERRORS),
            reraise=True,
        ):
            with attempt:
                return await self._http.request(
                    method,
                    url,
                    content=content,
                    headers=headers,
                )

    async def _decode(
        self,
        response: httpx.Response,
        response_model: Type[T],
        correlation_id: UUID,
    ) -> T:
        raw = response.content
        if not raw.strip():
            # No-content endpoints decode as an empty object
            raw = b"{}"

        try:
            return TypeAdapter(response_model).validate_json(raw)
        except PydanticValidationError as e:
            await self._audit.log_decoding_failed(str(response.url), str(e), correlation_id)
            raise DecodingError() from e

    async def _server_error(
        self,
        response: httpx.Response,
        correlation_id: UUID,
    ) -> ServerError:
        """Turn a non-2xx response into a ServerError, message verbatim."""
        raw = response.content

        problem = _try_decode(ProblemDetail, raw)
        if problem is not None:
            message = problem.detail or problem.title or DEFAULT_SERVER_MESSAGE
            code = _first_not_none(problem.code, problem.status, response.status_code)
            await self._audit.log_server_error(code, message, "problem_detail", correlation_id)
            return ServerError(code, message)

        envelope = _try_decode(ApiResponse, raw)
        if envelope is not None:
            message = envelope.message or DEFAULT_SERVER_MESSAGE
            await self._audit.log_server_error(envelope.code, message, "api_response", correlation_id)
            return ServerError(envelope.code, message)

        message = response.text or DEFAULT_SERVER_MESSAGE
        await self._audit.log_server_error(response.status_code, message, "raw", correlation_id)
        return ServerError(response.status_code, message)

    # =========================================================================
    # TOKEN REFRESH (single-flight)
    # =========================================================================

    async def _refresh_access_token(self, correlation_id: UUID) -> str:
        """
        Return a fresh access token, joining the refresh in flight if any.

        The shared task is shielded: a caller that gets cancelled stops
        waiting, but the refresh keeps running for everyone else.
        """
        if self._refresh_handler is None:
            await self._handle_unauthorized("refresh not configured", correlation_id)
            raise UnauthorizedError("Authentication is not configured")

        async with self._refresh_lock:
            task = self._refresh_task
            if task is None:
                await self._audit.log_refresh_started(correlation_id)
                task = asyncio.ensure_future(self._run_refresh(self._refresh_handler, correlation_id))
                task.add_done_callback(self._release_refresh_task)
                self._refresh_task = task
            else:
                self._logger.debug("joining_refresh_in_flight", correlation_id=str(correlation_id))

        return await asyncio.shield(task)

    async def _run_refresh(self, handler: RefreshHandler, correlation_id: UUID) -> str:
        """Body of the shared refresh task; the hook runs once per failure."""
        try:
            return await handler()
        except Exception as e:
            await self._audit.log_refresh_failed(str(e), correlation_id)
            await self._handle_unauthorized("token refresh failed", correlation_id)
            raise

    def _release_refresh_task(self, task: asyncio.Future) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        if not task.cancelled():
            # Mark the exception retrieved; every waiter re-raises it
            task.exception()

    async def _handle_unauthorized(self, reason: str, correlation_id: UUID) -> None:
        await self._audit.log_unauthorized(reason, correlation_id)
        if self._on_unauthorized is None:
            return
        try:
            await self._on_unauthorized()
        except Exception as e:
            await self._audit.log_error(
                error_type="unauthorized_hook_failed",
                error_message=str(e),
                category="Network",
                correlation_id=correlation_id,
            )


def _try_decode(model: Type[BaseModel], raw: bytes) -> Optional[Any]:
    try:
        return model.model_validate_json(raw)
    except (PydanticValidationError, ValueError):
        return None


def _first_not_none(*values: Optional[int]) -> int:
    return next(v for v in values if v is not None)
