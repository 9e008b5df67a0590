# In main.py

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import logging
from contextlib import asynccontextmanager

from google.cloud import firestore

import config
from services.broadcast import BroadcastBus
from services.post_service import PostService
from store.base import PostStore
from store.firestore_store import FirestorePostStore
from store.memory_store import InMemoryPostStore

# Import routers
from routers import posts, events

logger = logging.getLogger('uvicorn.error')
logger.setLevel(config.LOG_LEVEL)


def build_store() -> PostStore:
    if config.STORE_BACKEND == "memory":
        logger.info("Using in-memory post store.")
        return InMemoryPostStore()
    try:
        db = firestore.AsyncClient()
        logger.info(f"Firestore Async client initialized (collection '{config.POSTS_COLLECTION}').")
        return FirestorePostStore(db, config.POSTS_COLLECTION)
    except Exception as e:
        logger.error(f"Failed to initialize Firestore Async client: {e}")
        logger.warning("Falling back to in-memory post store; data will not survive a restart.")
        return InMemoryPostStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup: Initializing resources...")
    # One bus per process, shared by the service (publisher) and the event stream (subscribers).
    app.state.bus = BroadcastBus(queue_size=config.SUBSCRIBER_QUEUE_SIZE)
    app.state.store = build_store()
    app.state.service = PostService(app.state.store, app.state.bus)

    yield
    logger.info("Application shutdown: Cleaning up resources...")
    try:
        await app.state.store.close()
        logger.info("Post store closed.")
    except Exception as e:
        logger.error(f"Error closing post store: {e}")


app = FastAPI(title="Discussion Forum API", lifespan=lifespan)
app.include_router(posts.router)
app.include_router(events.router)

app.add_middleware(
    TrustedHostMiddleware, allowed_hosts=config.ALLOWED_HOSTS
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail},
                        headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}" for err in exc.errors()
    )
    logger.info(f"Rejected {request.method} {request.url.path}: {problems}")
    return JSONResponse(status_code=400, content={"message": f"Invalid request: {problems}"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
