"""
scrapewright HTTP server.

FastAPI application exposing the orchestrator as a standing network listener.
Run with: uvicorn --factory scrapewright.transport.server:create_app --port 8080
"""

import hmac
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from scrapewright import __version__
from scrapewright.config import EngineConfig
from scrapewright.core import ScrapeOrchestrator
from scrapewright.exceptions import ScrapeError
from scrapewright.transport.base import error_body, invoke, status_for

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset({'/healthz'})


def _authorized(header: str | None, token: str) -> bool:
    if not header:
        return False
    if header.lower().startswith('bearer '):
        header = header[7:]
    return hmac.compare_digest(header.strip(), token)


def create_app(config: EngineConfig | None = None, orchestrator: ScrapeOrchestrator | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Engine configuration. Defaults to EngineConfig.from_env().
        orchestrator: Orchestrator to serve. Defaults to a Playwright-backed one.

    Returns:
        Configured FastAPI app. The orchestrator is closed on shutdown.

    """
    config = config or EngineConfig.from_env()
    orchestrator = orchestrator or ScrapeOrchestrator.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        orchestrator.manager.start_reaper()
        logger.info(f'scrapewright listening (max_sessions={config.max_sessions})')
        try:
            yield
        finally:
            await orchestrator.close()

    app = FastAPI(
        title='scrapewright',
        description='Headless browser scraping with selector and pattern extraction',
        version=__version__,
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator
    app.state.config = config

    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=['*'],
        allow_methods=['*'],
        allow_headers=['*'],
    )

    if config.auth_token:
        token = config.auth_token

        @app.middleware('http')
        async def require_token(request: Request, call_next):
            if request.url.path in PUBLIC_PATHS or request.method == 'OPTIONS':
                return await call_next(request)
            if not _authorized(request.headers.get('authorization'), token):
                return JSONResponse(
                    status_code=401,
                    content={'error': {'code': 'unauthorized', 'message': 'Missing or invalid token'}},
                )
            return await call_next(request)

    @app.get('/healthz')
    async def health_check() -> dict[str, Any]:
        """Health check endpoint."""
        return {'status': 'healthy', 'version': __version__, 'pool': orchestrator.manager.stats()}

    @app.post('/api/scrape')
    async def scrape(payload: Any = Body(...)) -> JSONResponse:
        """Run one scrape request."""
        status, body = await invoke(orchestrator, payload)
        return JSONResponse(status_code=status, content=body)

    @app.get('/api/test-driver')
    async def test_driver(url: str = 'https://example.com') -> JSONResponse:
        """Load a page through the driver and report its title."""
        try:
            result = await orchestrator.probe(url)
        except ScrapeError as e:
            return JSONResponse(status_code=status_for(e), content=error_body(e))
        return JSONResponse(status_code=200, content=result)

    return app

