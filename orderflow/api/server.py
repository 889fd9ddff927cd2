"""FastAPI application factory."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from orderflow import __version__
from orderflow.api.config import Settings
from orderflow.api.routes import router
from orderflow.config import close_handles, get_store, load_config_file
from orderflow.core.exceptions import OrderflowError
from orderflow.engine.intake import OrderIntake

# Error code -> HTTP status
STATUS_CODES = {
    "InvalidArgument": 400,
    "NotFound": 404,
    "AlreadyExists": 409,
    "Conflict": 409,
    "Unavailable": 503,
}


async def orderflow_error_handler(request: Request, exc: OrderflowError) -> JSONResponse:
    status_code = STATUS_CODES.get(exc.code, 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed", error=str(exc))

    headers = {}
    retry_after = getattr(exc, "retry_after", None)
    if retry_after is not None:
        headers["Retry-After"] = str(int(retry_after) or 1)

    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "message": str(exc)},
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
    return JSONResponse(
        status_code=400,
        content={"error": "InvalidArgument", "message": f"Invalid request: {fields}"},
    )


def create_app(
    intake: OrderIntake | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        intake: Intake to serve. When omitted the app builds one on the
            process-wide handles and connects/closes them with its lifespan.
        settings: API settings (defaults to environment)
    """
    settings = settings or Settings()
    owns_handles = intake is None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if owns_handles:
            if settings.config_path:
                load_config_file(settings.config_path)
            await get_store().connect()
            app.state.intake = OrderIntake.from_config()
            logger.info("orderflow API started")
        yield
        if owns_handles:
            await close_handles()

    app = FastAPI(
        title="orderflow API",
        description="Order intake and confirmation",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.intake = intake
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(OrderflowError, orderflow_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(router)

    return app
