"""
api/app.py — FastAPI app instance + session middleware + static file serving
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from config import (
    CLEANUP_INTERVAL_SECONDS, REPORTS_DIR, SESSION_COOKIE, SESSION_TTL,
    STATIC_DIR, TESTS_DIR, TICK_INTERVAL_SECONDS,
)
from api.routes import router
import api.session as session
from exam_prep_cbt.services.report_store import JsonReportSink
from exam_prep_cbt.services.test_repository import TestRepository

logger = logging.getLogger(__name__)


async def _cleanup_loop() -> None:
    # runs on the server loop so closing an attempt can cancel its countdown task
    while True:
        await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)
        removed = session.cleanup_expired()
        if removed:
            logger.info(f"expired sessions removed: {removed}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    cleanup = asyncio.create_task(_cleanup_loop())
    try:
        yield
    finally:
        cleanup.cancel()
        session.close_all()


def create_app(
    tests_dir: Optional[str] = None,
    reports_dir: Optional[str] = None,
    tick_interval: float = TICK_INTERVAL_SECONDS,
) -> FastAPI:
    app = FastAPI(title="CBT Test Session", docs_url=None, redoc_url=None, lifespan=lifespan)

    app.state.repository = TestRepository(tests_dir or TESTS_DIR)
    app.state.report_sink = JsonReportSink(reports_dir or REPORTS_DIR)
    app.state.tick_interval = tick_interval

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # session middleware: read the session id from the cookie, issue a new one if missing
    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        sid = request.cookies.get(SESSION_COOKIE)
        if not sid or session.get_session(sid) is None:
            sid = session.create_session()

        request.state.session_id = sid
        response: Response = await call_next(request)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=sid,
            httponly=True,
            samesite="lax",
            max_age=SESSION_TTL,
        )
        return response

    app.include_router(router)

    if os.path.isdir(STATIC_DIR):
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    @app.get("/")
    async def serve_index():
        index_path = os.path.join(STATIC_DIR, "index.html")
        if os.path.exists(index_path):
            return FileResponse(index_path)
        return {"error": "index.html not found"}

    return app
