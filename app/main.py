import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import Settings, settings as default_settings
from app.exceptions import StoreError
from app.jobs.backup_worker import BackupWorker
from app.middleware.request_log import RequestLogMiddleware
from app.routes import (
    admin,
    admin_analytics,
    admin_transactions,
    admin_wallet,
    auth,
    books_admin,
    books_public,
    health,
    orders,
    payments,
)
from app.services.backup_queue import BackupQueue
from app.services.payment_service import PaymentGateway, build_gateway
from app.storage.base import LedgerStore
from app.storage.factory import build_storage
from app.utils.token import get_current_admin

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[LedgerStore] = None,
    gateway: Optional[PaymentGateway] = None,
    queue: Optional[BackupQueue] = None,
    run_worker: bool = True,
) -> FastAPI:
    """
    Anything passed in is used as-is and left open on shutdown; anything
    missing is built from the settings when the app starts.
    """
    settings = settings or default_settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        backup_queue = queue
        if backup_queue is None and settings.backup_database_urls:
            backup_queue = BackupQueue.from_path(settings.backup_queue_path)

        store = storage or build_storage(settings, backup_queue)

        app.state.settings = settings
        app.state.storage = store
        app.state.gateway = gateway or build_gateway(settings)
        app.state.backup_queue = backup_queue

        worker = None
        if backup_queue is not None and run_worker:
            worker = BackupWorker(
                backup_queue,
                interval=settings.backup_poll_interval_seconds,
                batch_size=settings.backup_batch_size,
                stale_after_seconds=settings.backup_stale_after_seconds,
            )
            worker.start()

        yield

        if worker is not None:
            worker.stop()
        if storage is None:
            store.close()
        if queue is None and backup_queue is not None:
            backup_queue.close()

    app = FastAPI(title="Digital Storefront API", lifespan=lifespan)

    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "Invalid request"
        return JSONResponse(
            status_code=400,
            content={"detail": message, "errors": jsonable_encoder(errors)},
        )

    @app.exception_handler(StoreError)
    async def store_error(request: Request, exc: StoreError):
        logger.error(f"Store error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    admin_only = [Depends(get_current_admin)]

    app.include_router(books_public.router, prefix="/books", tags=["Public Books"])
    app.include_router(payments.router, prefix="/payment", tags=["Payments"])
    app.include_router(orders.router, prefix="/orders", tags=["Orders"])
    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(auth.router, prefix="/admin", tags=["Admin Auth"])
    app.include_router(
        books_admin.router, prefix="/admin/books", tags=["Admin Books"], dependencies=admin_only
    )
    app.include_router(
        admin_transactions.router,
        prefix="/admin/transactions",
        tags=["Admin Transactions"],
        dependencies=admin_only,
    )
    app.include_router(
        admin_wallet.router, prefix="/admin/wallet", tags=["Admin Wallet"], dependencies=admin_only
    )
    app.include_router(
        admin_analytics.router, prefix="/admin", tags=["Admin Analytics"], dependencies=admin_only
    )
    app.include_router(admin.router, prefix="/admin", tags=["Admin Endpoints"], dependencies=admin_only)

    @app.get("/")
    def root():
        return {
            "public_endpoints": [
                "/books", "/orders", "/payment/create-session", "/payment/visa/charge",
                "/payment/mastercard/create-session", "/payment/mastercard/complete",
            ],
            "admin_endpoints": [
                "/admin/login", "/admin/setup", "/admin/books", "/admin/transactions",
                "/admin/wallet", "/admin/dashboard-stats", "/admin/db-status",
                "/admin/backup-status",
            ],
        }

    return app


app = create_app()
