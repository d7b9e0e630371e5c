"""Adapters that read and write the shared document over HTTP.

Two transports are supported:

- Direct: talks to the GitHub Gist API with a token on every request. Puts a
  write credential in the client process, so it is meant for development.
- Proxied: talks to a trusted proxy (see ``namereveal.proxy``) that holds the
  credential. This is the production path.

Both feed the store's rate-limit headers into the shared ``RateLimiter``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from ..config import StoreConfig
from ..state import SharedState
from .errors import CredentialMissing, RateLimited, RemoteUnavailable
from .rate_limit import RateLimiter

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
GIST_FILENAME = "guestState.json"
GIST_DESCRIPTION = "Updated by Name Reveal App"
DEFAULT_TIMEOUT = 10.0


class RemoteStateStore(ABC):
    """Maps fetch/put of the shared document onto HTTP calls."""

    def __init__(
        self,
        limiter: RateLimiter | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the adapter.

        Args:
            limiter: Rate limiter updated from every response.
            timeout: Request timeout in seconds; expiry is RemoteUnavailable.
            transport: Optional httpx transport (used by tests).
        """
        self.limiter = limiter if limiter is not None else RateLimiter()
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @abstractmethod
    async def fetch_document(self) -> SharedState:
        """Read the current shared state."""

    @abstractmethod
    async def put_document(self, state: SharedState) -> None:
        """Overwrite the shared state."""

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        json_data: Any = None,
    ) -> httpx.Response:
        """Send a request and translate failures into sync errors.

        Raises:
            RateLimited: 403 with an exhausted budget.
            RemoteUnavailable: Network failure, timeout, or non-2xx status.
        """
        client = await self._get_client()

        try:
            response = await client.request(method, url, headers=headers, json=json_data)
        except httpx.TimeoutException as e:
            raise RemoteUnavailable(f"Request timed out: {method} {url}") from e
        except httpx.HTTPError as e:
            raise RemoteUnavailable(f"Request failed: {method} {url}: {e}") from e

        self.limiter.record_headers(response.headers)

        if response.status_code == 403 and self.limiter.status.remaining == 0:
            raise RateLimited(
                f"Rate limit exhausted until {self.limiter.status.reset_at:.0f}",
                reset_at=self.limiter.status.reset_at,
            )

        if not response.is_success:
            raise RemoteUnavailable(
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        return response


class GistStateStore(RemoteStateStore):
    """Direct mode: the state is one file inside a GitHub Gist."""

    def __init__(
        self,
        gist_id: str,
        token: str | None = None,
        filename: str = GIST_FILENAME,
        api_base: str = GITHUB_API_BASE,
        limiter: RateLimiter | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(limiter=limiter, timeout=timeout, transport=transport)
        self.gist_id = gist_id
        self.token = token.strip() if token else None
        self.filename = filename
        self.api_base = api_base.rstrip("/")

    @property
    def url(self) -> str:
        return f"{self.api_base}/gists/{self.gist_id}"

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "namereveal",
        }
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return headers

    async def fetch_document(self) -> SharedState:
        response = await self._request("GET", self.url, headers=self._headers())

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteUnavailable(f"Malformed gist response: {e}") from e

        files = data.get("files") if isinstance(data, dict) else None
        entry = files.get(self.filename) if isinstance(files, dict) else None
        if not isinstance(entry, dict) or not isinstance(entry.get("content"), str):
            raise RemoteUnavailable(
                f'Gist file "{self.filename}" not found', status_code=404
            )

        try:
            return SharedState.from_json(entry["content"])
        except ValueError as e:
            raise RemoteUnavailable(f"Malformed state document: {e}") from e

    async def put_document(self, state: SharedState) -> None:
        """PATCH the gist file.

        Raises:
            CredentialMissing: No token is configured.
        """
        if not self.token:
            raise CredentialMissing("A GitHub token is required to update the gist")

        payload = {
            "description": GIST_DESCRIPTION,
            "files": {self.filename: {"content": state.to_json()}},
        }
        await self._request("PATCH", self.url, headers=self._headers(), json_data=payload)
        logger.debug(f"Wrote state to gist {self.gist_id} (lastUpdated={state.last_updated})")


class ProxyStateStore(RemoteStateStore):
    """Proxied mode: a trusted intermediary holds the credential."""

    def __init__(
        self,
        proxy_url: str,
        limiter: RateLimiter | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(limiter=limiter, timeout=timeout, transport=transport)
        self.proxy_url = proxy_url.rstrip("/")

    @property
    def url(self) -> str:
        return f"{self.proxy_url}/state"

    async def fetch_document(self) -> SharedState:
        response = await self._request("GET", self.url)

        try:
            return SharedState.from_dict(response.json())
        except ValueError as e:
            raise RemoteUnavailable(f"Malformed state from proxy: {e}") from e

    async def put_document(self, state: SharedState) -> None:
        await self._request("POST", self.url, json_data=state.to_dict())
        logger.debug(f"Wrote state via proxy (lastUpdated={state.last_updated})")


def create_store(config: StoreConfig, limiter: RateLimiter) -> RemoteStateStore:
    """Build the adapter selected by ``config.mode``.

    Raises:
        ValueError: If the mode is unknown or its required settings are missing.
    """
    if config.mode == "proxied":
        if not config.proxy_url:
            raise ValueError("store.proxy_url is required in proxied mode")
        return ProxyStateStore(
            config.proxy_url, limiter=limiter, timeout=config.timeout_seconds
        )

    if config.mode == "direct":
        if not config.gist_id:
            raise ValueError("store.gist_id is required in direct mode")
        logger.warning(
            "Direct mode keeps the GitHub token in this process; "
            "use a proxy for shared deployments"
        )
        return GistStateStore(
            config.gist_id,
            token=config.token,
            filename=config.filename,
            api_base=config.api_base,
            limiter=limiter,
            timeout=config.timeout_seconds,
        )

    raise ValueError(f"Unknown store mode: {config.mode}")
