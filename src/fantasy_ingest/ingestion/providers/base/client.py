from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

import httpx

from .errors import NetworkError, UpstreamServerError, error_for_status
from .types import ProviderRequest


class Transport(Protocol):
    """The boundary to the network. Everything behind it is an external collaborator."""

    async def send(self, request: ProviderRequest, *, timeout_s: float) -> Any: ...

    async def aclose(self) -> None: ...


@dataclass
class BaseHttpClient:
    """
    Provider-agnostic async HTTP transport.

    - Uses a single underlying httpx.AsyncClient per provider for connection pooling.
    - Maps every failure onto the typed provider error taxonomy; raw response
      bodies never leave this class.
    """

    base_url: str
    timeout_s: float = 30.0
    connect_timeout_s: float = 10.0
    headers: Mapping[str, str] = field(default_factory=dict)

    transport: httpx.AsyncBaseTransport | None = None

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self.base_url.rstrip("/") + "/",
            timeout=httpx.Timeout(self.timeout_s, connect=self.connect_timeout_s),
            headers=dict(self.headers),
            transport=self.transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> BaseHttpClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def send(self, request: ProviderRequest, *, timeout_s: float) -> Any:
        """
        Perform the request and return the decoded JSON value (object or array).
        Raises NetworkError / UpstreamServerError / RateLimitedByUpstream /
        UpstreamClientError.
        """
        try:
            resp = await self._client.request(
                method=request.method,
                url=request.path.lstrip("/"),
                params=dict(request.params) or None,
                json=dict(request.json) if request.json is not None else None,
                headers=dict(request.headers) or None,
                timeout=timeout_s,
            )
        except httpx.TimeoutException as e:
            raise NetworkError(
                f"Timed out after {timeout_s:.1f}s: {request.method} {request.path}"
            ) from e
        except httpx.TransportError as e:
            raise NetworkError(f"{type(e).__name__} for {request.method} {request.path}") from e

        if resp.is_error:
            raise error_for_status(resp.status_code, f"{request.method} {resp.request.url.path}")

        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamServerError(
                "Response was not valid JSON.", status_code=resp.status_code
            ) from e
