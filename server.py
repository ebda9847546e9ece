"""
server.py — REST API for the analysis service (aiohttp).

Endpoints:
  POST /api/analyze-product              multipart field "image" → array of new records
  GET  /api/analysis/{analysisId}        full record
  POST /api/analyze-{facet}              {"analysisId", "refresh"?} → facet payload
  POST /api/analyze-{facet}/{analysisId} same, id in the path
  POST /api/chat/{analysisId}            {"message"} → {message, response, timestamp}
  GET  /api/chat/{analysisId}            chat history, oldest first
  GET  /health                           liveness + configured providers

facet ∈ ingredients | composition | reddit | features.
Handlers only decode requests and pick status codes; errors are mapped to
JSON {"error": ...} bodies by error_middleware.
"""
from __future__ import annotations

import logging

from aiohttp import web

from chat import ChatHandler
from config import Settings
from errors import NotFoundError, ValidationError
from models import Facet
from orchestrator import Orchestrator

logger = logging.getLogger(__name__)

SETTINGS_KEY = web.AppKey("settings", Settings)
ORCHESTRATOR_KEY = web.AppKey("orchestrator", Orchestrator)
CHAT_KEY = web.AppKey("chat", ChatHandler)

# Room for the multipart envelope around the image itself
_MULTIPART_OVERHEAD = 64 * 1024


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except ValidationError as exc:
        return _error(400, str(exc))
    except NotFoundError:
        return _error(404, "Analysis not found")
    except web.HTTPException as exc:
        if exc.status < 400:
            raise
        if exc.status == 413:
            return _error(413, "Image is too large")
        return _error(exc.status, exc.reason)
    except Exception:
        logger.error("Unhandled error on %s %s", request.method, request.path, exc_info=True)
        return _error(500, "Internal server error")


# ── Request helpers ───────────────────────────────────────────────────────────

async def _json_body(request: web.Request) -> dict:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _facet_from_path(request: web.Request) -> Facet:
    try:
        return Facet(request.match_info["facet"])
    except ValueError:
        raise web.HTTPNotFound()


# ── Request handlers ──────────────────────────────────────────────────────────

async def handle_analyze_product(request: web.Request) -> web.Response:
    settings = request.app[SETTINGS_KEY]
    form = await request.post()
    field = form.get("image")
    if not isinstance(field, web.FileField):
        raise ValidationError("No image file provided")

    image_bytes = field.file.read()
    if not image_bytes:
        raise ValidationError("No image file provided")
    if len(image_bytes) > settings.max_upload_bytes:
        raise web.HTTPRequestEntityTooLarge(
            max_size=settings.max_upload_bytes, actual_size=len(image_bytes),
        )

    try:
        records = await request.app[ORCHESTRATOR_KEY].create_from_image(image_bytes, field.content_type)
    except (ValidationError, web.HTTPException):
        raise
    except Exception:
        logger.error("Record creation failed", exc_info=True)
        return _error(500, "Failed to analyze product")
    return web.json_response([r.to_dict() for r in records])


async def handle_get_analysis(request: web.Request) -> web.Response:
    record = await request.app[ORCHESTRATOR_KEY].get_record(request.match_info["analysisId"])
    return web.json_response(record.to_dict())


async def handle_analyze_facet(request: web.Request) -> web.Response:
    facet = _facet_from_path(request)
    body = await _json_body(request)
    analysis_id = request.match_info.get("analysisId") or body.get("analysisId")
    if not analysis_id or not isinstance(analysis_id, str):
        raise ValidationError("analysisId is required")

    orchestrator = request.app[ORCHESTRATOR_KEY]
    if body.get("refresh") is True:
        value = await orchestrator.recompute_facet(analysis_id, facet)
    else:
        value = await orchestrator.ensure_facet(analysis_id, facet)
    return web.json_response(value)


async def handle_post_chat(request: web.Request) -> web.Response:
    body = await _json_body(request)
    text = body.get("message")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Message is required")
    message = await request.app[CHAT_KEY].post_message(request.match_info["analysisId"], text)
    return web.json_response({
        "message": message.message,
        "response": message.response,
        "timestamp": message.created_at.isoformat(),
    })


async def handle_get_chat(request: web.Request) -> web.Response:
    messages = await request.app[CHAT_KEY].get_history(request.match_info["analysisId"])
    return web.json_response([m.to_dict() for m in messages])


async def handle_health(request: web.Request) -> web.Response:
    """Health check — returns 200 OK. Use with uptime monitors."""
    settings = request.app[SETTINGS_KEY]
    providers = request.app[ORCHESTRATOR_KEY].catalog.providers
    return web.json_response({
        "status": "ok",
        "providers": [p.full_name for p in providers if p.configured],
        "store": settings.store_backend,
    })


# ── App factory ───────────────────────────────────────────────────────────────

def build_web_app(settings: Settings, orchestrator: Orchestrator, chat: ChatHandler) -> web.Application:
    app = web.Application(
        client_max_size=settings.max_upload_bytes + _MULTIPART_OVERHEAD,
        middlewares=[error_middleware],
    )
    app[SETTINGS_KEY] = settings
    app[ORCHESTRATOR_KEY] = orchestrator
    app[CHAT_KEY] = chat

    app.router.add_get("/health",                              handle_health)
    app.router.add_post("/api/analyze-product",                handle_analyze_product)
    app.router.add_get("/api/analysis/{analysisId}",           handle_get_analysis)
    app.router.add_post("/api/analyze-{facet}",                handle_analyze_facet)
    app.router.add_post("/api/analyze-{facet}/{analysisId}",   handle_analyze_facet)
    app.router.add_post("/api/chat/{analysisId}",              handle_post_chat)
    app.router.add_get("/api/chat/{analysisId}",               handle_get_chat)
    return app


async def start_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    """Start the web server. Returns runner so caller can shut it down cleanly."""
    runner = web.AppRunner(app, access_log=logger)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("🔎 Analysis API listening on http://%s:%d", host, port)
    return runner
