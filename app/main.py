from __future__ import annotations

import logging
from uuid import UUID

from fastapi import FastAPI, Request, Response

from app.config import Settings, get_settings
from app.metrics import RequestMetrics
from app.middleware import MetricsMiddleware, RequestTimeoutMiddleware
from app.models import CreateTodo, Todo
from app.store import TodoStore

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, store: TodoStore | None = None) -> FastAPI:
    """Build the todo API around a store, with metrics and a request timeout on every route."""
    settings = settings or get_settings()
    logging.getLogger("app").setLevel(settings.log_level.upper())

    app = FastAPI(title="Todo API")
    app.state.settings = settings
    app.state.store = store if store is not None else TodoStore()
    app.state.metrics = RequestMetrics()

    # last added runs first: metrics wraps the timeout/error layer
    app.add_middleware(RequestTimeoutMiddleware, timeout=settings.request_timeout_seconds)
    app.add_middleware(MetricsMiddleware, metrics=app.state.metrics, router=app.router)

    @app.get("/todos", response_model=list[Todo])
    def list_todos(request: Request):
        store: TodoStore = request.app.state.store
        return store.list()

    @app.get("/todos/{todo_id}", response_model=Todo | None)
    def get_todo(todo_id: UUID, request: Request):
        # absence is a 200 with a null body, not a 404
        store: TodoStore = request.app.state.store
        return store.get(todo_id)

    @app.post("/todos", response_model=Todo, status_code=201)
    def save_todo(payload: CreateTodo, request: Request):
        store: TodoStore = request.app.state.store
        return store.create(payload.text, payload.user)

    @app.get("/metrics")
    def metrics(request: Request):
        registry: RequestMetrics = request.app.state.metrics
        return Response(registry.render(), media_type=registry.content_type)

    logger.info("Todo API ready (timeout %.1fs)", settings.request_timeout_seconds)
    return app


app = create_app()
