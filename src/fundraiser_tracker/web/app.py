from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.staticfiles import StaticFiles

from ..config import load_extraction_settings, load_storage_path
from ..extraction import ExtractionError, OrderExtractionClient
from ..forms import RETRY_MESSAGE
from ..logging import get_logger
from ..models import Order, OrderInput
from ..paths import find_project_root
from ..stats import aggregate, delivery_breakdown, payment_breakdown
from ..storage import SqliteStorage
from ..store import OrderStore
from ..view import filter_orders


LOG = get_logger("web")

DEFAULT_STATIC_SUBDIR = os.path.join("frontend", "dist")


async def _json_object(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Request body must be JSON") from exc
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return body


def _order_or_404(order: Optional[Order]) -> JSONResponse:
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return JSONResponse(order.as_dict())


def _build_extractor(project_root: str) -> Optional[OrderExtractionClient]:
    settings = load_extraction_settings(project_root)
    if not settings.is_configured:
        LOG.warning("No extraction API key configured; quick-fill is disabled.")
        return None
    LOG.info("Quick-fill enabled (backend=%s, model=%s)", settings.backend, settings.model)
    return OrderExtractionClient.from_settings(settings)


def create_app(
    root_dir: Optional[str] = None,
    *,
    store: Optional[OrderStore] = None,
    extractor: Optional[OrderExtractionClient] = None,
    configure_extraction: bool = True,
    static_dir: Optional[str] = None,
    allow_origins: Optional[List[str]] = None,
    serve_static: bool = True,
) -> Starlette:
    """Create a Starlette app exposing the order API and optional frontend.

    Without an explicit ``store`` the collection is loaded from the SQLite
    file configured for ``root_dir``. Without an explicit ``extractor`` one is
    built from env/.env when ``configure_extraction`` is true.
    """

    project_root = find_project_root(root_dir)
    if store is None:
        store = OrderStore(SqliteStorage(load_storage_path(project_root)))
        store.load()
    if extractor is None and configure_extraction:
        extractor = _build_extractor(project_root)

    resolved_static_dir: Optional[str] = None
    if serve_static:
        candidate = os.path.abspath(os.path.join(project_root, static_dir or DEFAULT_STATIC_SUBDIR))
        if os.path.isdir(candidate):
            resolved_static_dir = candidate
            LOG.info("Serving static frontend from %s", resolved_static_dir)
        else:
            LOG.warning("Frontend build not found at %s; API will run without static assets.", candidate)
    else:
        LOG.info("Static frontend serving disabled (API only mode).")

    async def health(_: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "orders": len(store)})

    async def stats(_: Request) -> JSONResponse:
        summary = aggregate(store.orders)
        payload = summary.as_dict()
        payload["charts"] = {
            "payment": payment_breakdown(summary),
            "delivery": delivery_breakdown(summary),
        }
        return JSONResponse(payload)

    async def list_orders(request: Request) -> JSONResponse:
        search = request.query_params.get("search") or ""
        items = [o.as_dict() for o in filter_orders(store.orders, search)]
        return JSONResponse({"items": items, "total": len(items)})

    async def create_order(request: Request) -> JSONResponse:
        body = await _json_object(request)
        order = store.create(OrderInput.from_dict(body))
        return JSONResponse(order.as_dict(), status_code=201)

    async def order_detail(request: Request) -> JSONResponse:
        return _order_or_404(store.get(request.path_params["order_id"]))

    async def update_order(request: Request) -> JSONResponse:
        # Full replacement: fields missing from the body fall back to OrderInput defaults.
        body = await _json_object(request)
        return _order_or_404(store.update(request.path_params["order_id"], OrderInput.from_dict(body)))

    async def delete_order(request: Request) -> JSONResponse:
        return JSONResponse({"deleted": store.delete(request.path_params["order_id"])})

    async def toggle_payment(request: Request) -> JSONResponse:
        return _order_or_404(store.toggle_payment(request.path_params["order_id"]))

    async def toggle_delivery(request: Request) -> JSONResponse:
        return _order_or_404(store.toggle_delivery(request.path_params["order_id"]))

    async def quick_fill(request: Request) -> JSONResponse:
        if extractor is None:
            raise HTTPException(status_code=503, detail="Quick-fill is not configured")
        body = await _json_object(request)
        text = body.get("text")
        if not isinstance(text, str) or not text.strip():
            raise HTTPException(status_code=400, detail="text is required")
        try:
            parsed = await run_in_threadpool(extractor.extract, text)
        except ExtractionError as exc:
            LOG.error("Quick-fill failed: %s", exc)
            return JSONResponse({"detail": RETRY_MESSAGE, "retryable": True}, status_code=502)
        return JSONResponse({"result": parsed.as_dict() if parsed else None})

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/stats", stats, methods=["GET"]),
        Route("/api/orders", list_orders, methods=["GET"]),
        Route("/api/orders", create_order, methods=["POST"]),
        Route("/api/orders/{order_id:str}", order_detail, methods=["GET"]),
        Route("/api/orders/{order_id:str}", update_order, methods=["PUT"]),
        Route("/api/orders/{order_id:str}", delete_order, methods=["DELETE"]),
        Route("/api/orders/{order_id:str}/toggle-payment", toggle_payment, methods=["POST"]),
        Route("/api/orders/{order_id:str}/toggle-delivery", toggle_delivery, methods=["POST"]),
        Route("/api/quick-fill", quick_fill, methods=["POST"]),
    ]

    app = Starlette(debug=False, routes=routes)
    app.state.store = store
    app.state.extractor = extractor

    origins = allow_origins or ["http://localhost:5173", "http://127.0.0.1:5173"]
    if "*" in origins:
        cors_allow_origins = ["*"]
    else:
        cors_allow_origins = origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if resolved_static_dir:
        app.mount("/", StaticFiles(directory=resolved_static_dir, html=True), name="frontend")
    else:
        async def api_only(_: Request) -> JSONResponse:
            return JSONResponse({"detail": "Fundraiser order API is running. No static frontend is mounted."})

        app.add_route("/", api_only, methods=["GET"])

    return app


__all__ = ["create_app"]
