"""ASGI application for the MeetCute billing backend."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from meetcute.cabinet.routes import router as cabinet_router
from meetcute.config import settings
from meetcute.database.database import close_db, init_db


logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_logging_configured = False


def setup_logging() -> None:
    global _logging_configured
    if _logging_configured:
        return

    root = logging.getLogger()

    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if settings.LOG_FILE:
        file_handler = logging.FileHandler(settings.LOG_FILE, encoding='utf-8')
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.setLevel(level)
    # SQL echo is controlled by DATABASE_ECHO
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    _logging_configured = True


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info('🚀 Starting MeetCute billing backend (%s)', 'PostgreSQL' if settings.is_postgresql() else 'SQLite')
    await init_db()
    try:
        yield
    finally:
        await close_db()
        logger.info('👋 MeetCute billing backend stopped')


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception('Unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={'detail': 'Internal server error'})


def create_app() -> FastAPI:
    app = FastAPI(title='MeetCute Billing', lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cabinet_allowed_origins(),
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.include_router(cabinet_router)

    @app.get('/health')
    async def health():
        return {'ok': True}

    return app


app = create_app()
