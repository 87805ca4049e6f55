"""
Order Lookup HTTP API

Routes:
- GET /order/{order_uid}  200 order JSON | 404 not found
- GET /order, /order/     400 (no order_uid given)
- GET /health             200 healthy | 503 database unreachable
- GET /                   browser lookup page (static files, when a web directory is given)

Handlers are plain (sync) functions: FastAPI runs each request on a worker
thread, and all of them share one OrderCache and one connection pool.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from src.order_service import __version__
from src.order_service.database import DatabaseManager
from src.order_service.query import OrderQueryService
from src.order_service.schemas import Order

logger = logging.getLogger(__name__)

# Lookup page shipped with the package
DEFAULT_WEB_DIR = Path(__file__).parent / "web"


def create_app(
    query_service: OrderQueryService,
    db_manager: Optional[DatabaseManager] = None,
    web_dir: Optional[Union[str, Path]] = None,
) -> FastAPI:
    """
    Build the lookup API around an already warmed query service.

    When web_dir is given its files are served at / (index.html for the
    root). API routes are registered first and take precedence.
    """
    app = FastAPI(
        title="Order Service",
        description="Order lookup backed by an in-memory LRU cache and PostgreSQL",
        version=__version__,
    )
    app.state.query_service = query_service

    @app.get("/order/{order_uid}", response_model=Order)
    def get_order(order_uid: str) -> Order:
        if not order_uid:
            raise HTTPException(status_code=400, detail="Parameter 'order_uid' is required")

        order = query_service.lookup(order_uid)
        if order is None:
            logger.info("Order not found", extra={"correlation_id": order_uid})
            raise HTTPException(status_code=404, detail="Order not found")

        return order

    @app.get("/order", include_in_schema=False)
    @app.get("/order/", include_in_schema=False)
    def missing_order_uid() -> None:
        raise HTTPException(status_code=400, detail="Parameter 'order_uid' is required")

    @app.get("/health")
    def health() -> JSONResponse:
        database_ok = db_manager.check_health() if db_manager is not None else True
        return JSONResponse(
            status_code=200 if database_ok else 503,
            content={
                "status": "healthy" if database_ok else "unhealthy",
                "database": database_ok,
                "cached_orders": len(query_service.cache),
            },
        )

    if web_dir is not None:
        app.mount("/", StaticFiles(directory=str(web_dir), html=True), name="web")

    return app
