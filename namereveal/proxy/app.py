"""FastAPI proxy that holds the GitHub credential on behalf of clients."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from ..config import Config
from ..state import SharedState
from ..sync.errors import RemoteUnavailable
from ..sync.rate_limit import REMAINING_HEADER, RESET_HEADER, RateLimiter
from ..sync.remote import GistStateStore

logger = logging.getLogger(__name__)


def create_app(config: Config, store: GistStateStore | None = None) -> FastAPI:
    """Create the proxy application.

    Args:
        config: Application configuration. ``store.token`` and
            ``store.gist_id`` must be set unless ``store`` is given.
        store: Optional pre-built gist adapter (used by tests).

    Returns:
        Configured FastAPI application. Without a usable store every
        ``/state`` request fails closed with a 500.
    """
    if store is None and config.store.token and config.store.gist_id:
        store = GistStateStore(
            config.store.gist_id,
            token=config.store.token,
            filename=config.store.filename,
            api_base=config.store.api_base,
            limiter=RateLimiter(),
            timeout=config.store.timeout_seconds,
        )

    if store is None:
        logger.error(
            "Proxy is missing its GitHub token and/or gist id; "
            "all state requests will be rejected"
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if store is not None:
            await store.close()

    app = FastAPI(
        title="namereveal proxy",
        description="Credential-holding proxy for the shared ceremony state",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.proxy.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
        expose_headers=[REMAINING_HEADER, RESET_HEADER],
        max_age=config.proxy.max_age_seconds,
    )

    def rate_headers() -> dict[str, str]:
        status = store.limiter.status
        return {
            REMAINING_HEADER: str(status.remaining),
            RESET_HEADER: str(int(status.reset_at)),
        }

    def misconfigured() -> Response:
        return PlainTextResponse(
            "Required settings GITHUB_TOKEN and/or GIST_ID are missing",
            status_code=500,
        )

    def upstream_error(error: RemoteUnavailable) -> Response:
        return PlainTextResponse(
            str(error),
            status_code=error.status_code or 502,
            headers=rate_headers(),
        )

    @app.get("/state")
    async def get_state() -> Response:
        """Return the current shared state."""
        if store is None:
            return misconfigured()

        try:
            state = await store.fetch_document()
        except RemoteUnavailable as e:
            logger.error(f"GitHub API error on read: {e}")
            return upstream_error(e)

        return JSONResponse(state.to_dict(), headers=rate_headers())

    @app.post("/state")
    async def post_state(request: Request) -> Response:
        """Overwrite the shared state with the request body."""
        if store is None:
            return misconfigured()

        try:
            state = SharedState.from_dict(await request.json())
        except ValueError as e:
            return PlainTextResponse(f"Invalid state: {e}", status_code=400)

        try:
            await store.put_document(state)
        except RemoteUnavailable as e:
            logger.error(f"GitHub API error on write: {e}")
            return upstream_error(e)

        logger.info(
            f"State updated: {len(state.authenticated_guests)} guests, "
            f"revealed={state.is_name_revealed}"
        )
        return Response(status_code=200, headers=rate_headers())

    return app
