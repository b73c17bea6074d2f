from textwrap import dedent
import logging
import pydantic
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute

from database import get_nosql_adapter, init_db
from files_manager.adapters.queue import QueueFactory
from files_manager.adapters.sessions import SessionStore
from files_manager.adapters.storage import get_blob_store
from files_manager.errors import (
    FilesManagerError,
    handle_broad_exceptions,
    handle_files_manager_errors,
    handle_pydantic_validation_errors,
    handle_request_validation_errors,
)
from files_manager.routers.auth import router as auth_router
from files_manager.routers.files import router as files_router
from files_manager.routers.health import router as health_router
from files_manager.routers.users import router as users_router
from files_manager.services.auth_service import AuthService
from files_manager.services.file_service import FileService
from files_manager.services.thumbnail_jobs import JobTracker
from files_manager.settings import Settings

# Set up logging
logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a FastAPI application."""
    settings = settings or Settings()

    app = FastAPI(
        title="Files Manager",
        summary="Store files, folders and images per user",
        version="v1",
        description=dedent(
            """\
        Authenticate with `GET /connect` (HTTP Basic) and send the returned
        token in the `X-Token` header of every other request.

        Images get 100, 250 and 500 px wide thumbnails in the background,
        served by `GET /files/{id}/data?size=<width>`.
        """
        ),
        generate_unique_id_function=custom_generate_unique_id,
    )

    adapter = get_nosql_adapter(settings.database_backend, settings.db_path, settings.mongodb_uri)
    logger.info("creating db")
    init_db(adapter)

    session_store = SessionStore(adapter, settings.session_ttl_seconds)
    blob_store = get_blob_store(settings)
    queue = QueueFactory.get_queue_handler(settings)
    job_tracker = JobTracker(adapter)

    app.state.settings = settings
    app.state.adapter = adapter
    app.state.session_store = session_store
    app.state.blob_store = blob_store
    app.state.queue = queue
    app.state.job_tracker = job_tracker
    app.state.auth_service = AuthService(adapter, session_store)
    app.state.file_service = FileService(adapter, blob_store, queue, job_tracker, settings)

    app.include_router(health_router, tags=["health"])
    app.include_router(users_router, tags=["users"])
    app.include_router(auth_router, tags=["auth"])
    app.include_router(files_router, tags=["files"])

    app.add_exception_handler(
        exc_class_or_status_code=FilesManagerError,
        handler=handle_files_manager_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=RequestValidationError,
        handler=handle_request_validation_errors,
    )
    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
