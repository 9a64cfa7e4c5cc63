# main.py
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dealsync.api.router import api_router
from dealsync.core.config import get_settings
from dealsync.core.db import SessionLocal, init_db
from dealsync.core.logging import get_logger, setup_logging
from dealsync.services.runtime import Runtime, build_runtime

logger = get_logger("dealsync.main")


def create_app(runtime: Optional[Runtime] = None, start_scheduler: Optional[bool] = None) -> FastAPI:
    settings = get_settings()
    if start_scheduler is None:
        start_scheduler = settings.scheduler_enabled

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        if runtime is None:
            init_db()
            app.state.runtime = build_runtime(SessionLocal, settings)
        if start_scheduler:
            app.state.runtime.scheduler.start()
        try:
            yield
        finally:
            app.state.runtime.scheduler.shutdown()
            logger.info("Scheduler stopped")

    app = FastAPI(title="Deal Sync Service", version="1.0.0", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True, allow_methods=["*"], allow_headers=["*"])
    if runtime is not None:
        app.state.runtime = runtime

    @app.get("/")
    def root():
        return {"service": "dealsync", "status": "ok"}

    @app.get("/healthz")
    def healthz():
        return {"ok": True, "scheduler_running": app.state.runtime.scheduler.running}

    app.include_router(api_router)
    return app


app = create_app()
