import logging

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import DocumentStoreError, ObjectNotFoundError, ObjectStoreError
from .logging_config import setup_logging
from .repositories import Repository, get_repository
from .routers import maintenance as maintenance_router
from .routers import storage as storage_router
from .routers import tasks as tasks_router
from .settings import get_settings
from .storage import ObjectStore, get_object_store

setup_logging()
logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "tasks",
        "description": "Create, list, edit and delete tasks with optional images.",
    },
    {
        "name": "maintenance",
        "description": "Out-of-band repair of orphaned images and dangling image references.",
    },
    {"name": "storage", "description": "Public access to objects in the task image bucket."},
]

app = FastAPI(
    title="Task Manager Backend",
    description="Backend API for managing tasks backed by a document store and an object storage bucket.",
    version="0.1.0",
    openapi_tags=openapi_tags,
)

_settings = get_settings()

# Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handlers for consistent JSON on validation and backend errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(ObjectNotFoundError)
async def object_not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "ObjectNotFoundError", "message": str(exc)})


@app.exception_handler(ObjectStoreError)
async def object_store_exception_handler(request: Request, exc: ObjectStoreError) -> JSONResponse:
    """
    Object store failures (upload, read, removal) surface as 502 Bad Gateway.
    """
    logger.error("%s %s failed in object store: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(
        status_code=502,
        content={"error": "ObjectStoreError", "message": f"Image storage failed: {exc}"},
    )


@app.exception_handler(DocumentStoreError)
async def document_store_exception_handler(request: Request, exc: DocumentStoreError) -> JSONResponse:
    """
    Document store failures surface as 502 Bad Gateway.
    """
    logger.error("%s %s failed in document store: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(
        status_code=502,
        content={"error": "DocumentStoreError", "message": f"Saving task data failed: {exc}"},
    )


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check(
    repo: Repository = Depends(get_repository),
    store: ObjectStore = Depends(get_object_store),
):
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health and the active backends.
    """
    return {"message": "Healthy", "backend": repo.name, "storage": store.name}


# Include routers
app.include_router(tasks_router.router)
app.include_router(maintenance_router.router)
app.include_router(storage_router.router)
