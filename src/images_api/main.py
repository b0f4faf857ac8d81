from contextlib import asynccontextmanager
from textwrap import dedent
import logging

import pydantic
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from database.base import ImageStore
from database.errors import PersistenceError
from database.local import get_image_store
from images_api.config.settings import Settings, get_settings
from images_api.errors import (
    ImagesApiError,
    StorageIOError,
    handle_broad_exceptions,
    handle_http_exception,
    handle_images_api_error,
    handle_persistence_error,
    handle_pydantic_validation_errors,
    handle_request_validation_errors,
)
from images_api.intake import UploadIntake
from images_api.routers.health import router as health_router
from images_api.routers.images import router as images_router
from images_api.utils.logging_utils import configure_logging

logger = logging.getLogger(__name__)


def build_image_store(settings: Settings) -> ImageStore:
    """Create and prepare the configured store; an unreachable store is logged, not fatal."""
    image_store = get_image_store(
        backend=settings.store_backend,
        mongo_uri=settings.mongo_uri,
        mongo_collection=settings.mongo_collection,
        mongo_timeout_ms=settings.mongo_timeout_ms,
        sqlite_path=settings.sqlite_path,
    )
    try:
        image_store.init_collections()
    except PersistenceError as e:
        logger.error(f"Image store not ready, requests will fail until it is reachable: {e}")
    return image_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    logger.info("Closing image store")
    app.state.image_store.close()


def create_app(settings: Settings | None = None, image_store: ImageStore | None = None) -> FastAPI:
    """Create a FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted
        image_store: Store to use instead of the one `settings` describes
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Images API",
        summary="Upload images and list them newest first",
        version="v1",
        description=dedent(
            """\
        | Endpoint | Notes |
        | --- | --- |
        | `POST /upload` | multipart field `images`, up to 10 JPG/PNG/GIF files of at most 2 MiB each |
        | `GET /images` | public paths of all stored images, newest first |
        | `GET /uploads/<filename>` | the stored image itself |
        """
        ),
        docs_url="/docs",
        generate_unique_id_function=custom_generate_unique_id,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    upload_intake = UploadIntake(settings)
    try:
        upload_intake.ensure_upload_dir()
    except StorageIOError as e:
        logger.error(f"{e.message}: {settings.upload_dir}")

    app.state.settings = settings
    app.state.upload_intake = upload_intake
    app.state.image_store = image_store or build_image_store(settings)

    app.include_router(images_router, tags=["images"])
    app.include_router(health_router, tags=["health"])

    app.mount(
        settings.public_prefix,
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )
    if settings.static_dir:
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="frontend")

    app.add_exception_handler(ImagesApiError, handle_images_api_error)
    app.add_exception_handler(PersistenceError, handle_persistence_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_errors)
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.middleware("http")(handle_broad_exceptions)

    logger.info(f"Images API ready (store: {settings.store_backend}, uploads: {settings.upload_dir})")
    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
