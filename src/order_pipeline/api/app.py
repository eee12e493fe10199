"""HTTP API for order intake and queue inspection.

Endpoints:
  POST /orders/submit            validate and queue a new order
  GET  /orders                   list persisted orders
  GET  /orders/{order_id}        one persisted order
  GET  /queue/messages           peek at live queue messages
  GET  /queue/dead-letters       inspect dead-lettered messages
  GET  /health                   health check

Usage::

    from order_pipeline.api.app import create_app

    app = create_app(service=service, queue=queue, store=store)
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from order_pipeline.core.errors import EnqueueFailure, QueueError, ValidationError
from order_pipeline.core.interfaces import IMessageQueue, IOrderStore
from order_pipeline.intake.service import OrderSubmissionService
from order_pipeline.observability.logger import new_trace_id


def create_app(
    service: OrderSubmissionService,
    queue: IMessageQueue,
    store: IOrderStore,
    worker: Any = None,
) -> FastAPI:
    """Create the order intake FastAPI application.

    The queue and store handles are the ones built at process start; the
    app never creates its own.
    """
    app = FastAPI(
        title="Order Pipeline",
        description="Queue-backed order intake",
    )

    app.state.service = service
    app.state.queue = queue
    app.state.store = store
    app.state.worker = worker

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "validation_error", "detail": exc.errors},
        )

    @app.exception_handler(EnqueueFailure)
    async def _enqueue_failure(request: Request, exc: EnqueueFailure) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={"error": "enqueue_failed", "detail": str(exc)},
        )

    @app.exception_handler(QueueError)
    async def _queue_error(request: Request, exc: QueueError) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"error": "queue_unavailable", "detail": str(exc)},
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    @app.post("/orders/submit")
    async def submit_order(request: Request) -> JSONResponse:
        new_trace_id(request.headers.get("x-trace-id"))
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError(
                [{"field": "body", "message": "Request body must be valid JSON"}]
            )
        receipt = await app.state.service.submit(body)
        return JSONResponse(content=receipt.to_wire())

    @app.get("/orders")
    async def list_orders() -> JSONResponse:
        orders = await app.state.store.list()
        return JSONResponse(
            content={
                "count": len(orders),
                "orders": [o.to_wire() for o in orders],
            }
        )

    @app.get("/orders/{order_id}")
    async def get_order(order_id: str) -> JSONResponse:
        order = await app.state.store.get(order_id)
        if order is None:
            return JSONResponse(
                status_code=404,
                content={"error": "not_found", "detail": f"Order {order_id} not found"},
            )
        return JSONResponse(content=order.to_wire())

    # ------------------------------------------------------------------
    # Queue inspection
    # ------------------------------------------------------------------

    @app.get("/queue/messages")
    async def peek_messages(
        max_messages: int = Query(default=10, ge=1, le=100, alias="maxMessages"),
    ) -> JSONResponse:
        messages = await app.state.queue.peek(max_messages)
        return JSONResponse(
            content={
                "count": len(messages),
                "messages": [m.to_dict() for m in messages],
            }
        )

    @app.get("/queue/dead-letters")
    async def dead_letters(
        limit: int = Query(default=50, ge=1, le=1000),
    ) -> JSONResponse:
        letters = await app.state.queue.dead_letters(limit)
        return JSONResponse(
            content={
                "count": len(letters),
                "deadLetters": [d.to_dict() for d in letters],
            }
        )

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    @app.get("/health")
    async def health() -> JSONResponse:
        content: dict[str, Any] = {"status": "ok"}
        if app.state.worker is not None:
            content["worker"] = app.state.worker.get_stats()
        return JSONResponse(content=content)

    return app
