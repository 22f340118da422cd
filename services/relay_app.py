"""HTTP front for the upload relay (FastAPI)."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response

from engine.config import ConfigManager
from services.relay import GitHubClient, UploadRelay
from services.upload_sessions import SessionStore

log = logging.getLogger(__name__)

UPLOAD_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def build_relay(manager: ConfigManager) -> UploadRelay:
    """Wire a relay from the ``relay`` config section."""
    relay_config = manager.get_relay_config()
    ttl = relay_config.get('session_ttl_seconds') or 3600
    sessions = SessionStore(default_ttl=float(ttl))
    client = GitHubClient(manager.get_config())
    if not client.token:
        log.warning("No GitHub token in $%s; uploads will be rejected upstream",
                    relay_config.get('token_env', 'GITHUB_TOKEN'))
    return UploadRelay(client, sessions)


def create_app(manager: Optional[ConfigManager] = None,
               relay: Optional[UploadRelay] = None) -> FastAPI:
    """FastAPI app factory; ``relay`` overrides the config-built one."""
    if relay is None:
        if manager is None:
            manager = ConfigManager()
            manager.load_config()
        relay = build_relay(manager)

    app = FastAPI(title="Bodega Upload Relay", version="1.0", docs_url=None, redoc_url=None)
    app.state.relay = relay

    # every method goes through the relay so 405s carry the CORS headers too
    @app.api_route("/upload", methods=UPLOAD_METHODS)
    async def upload(request: Request) -> Response:
        body = await request.body()
        resp = await run_in_threadpool(request.app.state.relay.handle, request.method, body)
        if not resp.body:
            return Response(status_code=resp.status_code, headers=resp.headers)
        return JSONResponse(resp.body, status_code=resp.status_code, headers=resp.headers)

    return app
