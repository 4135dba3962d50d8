import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from langtrans.dependencies import (
    get_key_store,
    get_settings,
    get_translator,
    shutdown_translator,
    translator_loaded,
)
from langtrans.routers import admin, translate

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    get_key_store()
    if settings.preload_model:
        # Load in a worker thread; loading can take minutes for large models
        await asyncio.to_thread(get_translator)
    logger.info("LangTrans ready on %s:%d", settings.host, settings.port)
    yield
    shutdown_translator()


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Malformed input is a plain 400 for API callers
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="LangTrans", version="0.1.0", lifespan=lifespan)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.include_router(translate.router)
    app.include_router(admin.router)

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "model_loaded": translator_loaded()}

    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run("langtrans.main:app", host=settings.host, port=settings.port)
