"""HTTP API over a VBANMatrix, built on aiohttp.web.

Routes:
    GET  /api/matrix                       discovered topology
    GET  /api/connections                  last full snapshot
    GET  /api/connections/{src}/{dst}      one "SRC → DST" section of it
    GET  /api/live/{src}/{dst}?inName=&outName=
    POST /api/action                       {source, target, action, value}
    POST /api/refresh                      re-discover and re-fetch
"""

import asyncio
import logging

from aiohttp import web

from pyvbanmatrix.exceptions import (
    InvalidActionError,
    NotInitializedError,
    QueryTimeoutError,
    TransportError,
    UnknownEndpointError,
)
from pyvbanmatrix.mixer import VBANMatrix
from pyvbanmatrix.state import section_key, snapshot_to_dict

MATRIX_KEY = web.AppKey("matrix", VBANMatrix)
STARTUP_TASK_KEY = web.AppKey("startup_task", asyncio.Task)

_logger = logging.getLogger(__name__)


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


def _status_for(exc: Exception) -> int:
    if isinstance(exc, UnknownEndpointError):
        return 404
    if isinstance(exc, InvalidActionError):
        return 400
    if isinstance(exc, NotInitializedError):
        return 503
    if isinstance(exc, QueryTimeoutError):
        return 504
    if isinstance(exc, TransportError):
        return 502
    return 500


async def get_matrix(request: web.Request) -> web.Response:
    topology = request.app[MATRIX_KEY].topology
    if topology is None:
        return _error(503, "Matrix not initialized yet")
    return web.json_response(topology.to_dict())


async def get_connections(request: web.Request) -> web.Response:
    snapshot = request.app[MATRIX_KEY].snapshot
    if snapshot is None:
        return _error(503, "Connection state not loaded yet")
    return web.json_response(snapshot_to_dict(snapshot))


async def get_connection_section(request: web.Request) -> web.Response:
    snapshot = request.app[MATRIX_KEY].snapshot
    if snapshot is None:
        return _error(503, "Connection state not loaded yet")
    key = section_key(request.match_info["src"].upper(), request.match_info["dst"].upper())
    section = snapshot.get(key)
    if section is None:
        return _error(404, "No such connection section")
    return web.json_response({label: point.to_dict() for label, point in section.items()})


async def get_live(request: web.Request) -> web.Response:
    src = request.match_info["src"]
    dst = request.match_info["dst"]
    in_name = request.query.get("inName")
    out_name = request.query.get("outName")
    if not (src and dst and in_name and out_name):
        return _error(400, "Missing parameters")
    try:
        point_state = await request.app[MATRIX_KEY].fetch_live_point(src, dst, in_name, out_name)
    except Exception as e:
        _logger.error(f"Live fetch error: {e}")
        return _error(_status_for(e), str(e))
    return web.json_response(point_state.to_dict())


async def post_action(request: web.Request) -> web.Response:
    try:
        body = await request.json()
    except ValueError:
        return _error(400, "Request body must be JSON")
    if not isinstance(body, dict):
        return _error(400, "Request body must be a JSON object")
    source = body.get("source")
    target = body.get("target")
    action = body.get("action")
    if not (source and target and action):
        return _error(400, "Missing parameters: source, target, action")
    try:
        await request.app[MATRIX_KEY].apply(source, target, action, body.get("value"))
    except Exception as e:
        _logger.error(f"Error in /api/action: {e}")
        return _error(_status_for(e), str(e))
    return web.json_response({"ok": True, "message": f"Action '{action}' applied on {source} → {target}"})


async def post_refresh(request: web.Request) -> web.Response:
    _logger.info("Refreshing matrix and connections...")
    try:
        await request.app[MATRIX_KEY].refresh()
    except Exception as e:
        _logger.error(f"Error refreshing: {e}")
        return _error(_status_for(e), str(e))
    return web.json_response({"ok": True, "message": "Matrix and connections refreshed"})


async def _initial_refresh(matrix: VBANMatrix):
    try:
        await matrix.refresh()
    except Exception as e:
        _logger.error(f"Initial matrix refresh failed: {e}", exc_info=True)


async def _start_background_refresh(app: web.Application):
    app[STARTUP_TASK_KEY] = asyncio.create_task(_initial_refresh(app[MATRIX_KEY]))


async def _stop_background_refresh(app: web.Application):
    task = app.get(STARTUP_TASK_KEY)
    if task is not None and not task.done():
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


def create_app(matrix: VBANMatrix, refresh_on_startup: bool = True) -> web.Application:
    app = web.Application()
    app[MATRIX_KEY] = matrix
    app.router.add_get("/api/matrix", get_matrix)
    app.router.add_get("/api/connections", get_connections)
    app.router.add_get("/api/connections/{src}/{dst}", get_connection_section)
    app.router.add_get("/api/live/{src}/{dst}", get_live)
    app.router.add_post("/api/action", post_action)
    app.router.add_post("/api/refresh", post_refresh)
    if refresh_on_startup:
        app.on_startup.append(_start_background_refresh)
        app.on_cleanup.append(_stop_background_refresh)
    return app


def run_server(matrix: VBANMatrix, port: int, host: str = "0.0.0.0"):
    _logger.info(f"API server running at http://localhost:{port}")
    web.run_app(create_app(matrix), host=host, port=port, print=None)
