import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from app.database import create_db_and_tables
from app.config import settings
from app.services.errors import AfriWriteError, PurchaseFailed, StorageFailure
from app.routes import (
    auth,
    author_books,
    books,
    ebooks,
    health,
    user_library,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run DB creation ONLY in local
    if settings.ENV == "local":
        create_db_and_tables()
    yield

app = FastAPI(title="AfriWrite Mini API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AfriWriteError)
async def handle_domain_error(request: Request, exc: AfriWriteError):
    content = {"detail": exc.message}

    if isinstance(exc, PurchaseFailed):
        # the order exists; only storage errors can clear up on a retry
        logger.error(f"Purchase failed for order {exc.order_id}: {exc.cause}")
        content["order_id"] = exc.order_id
        content["retryable"] = isinstance(exc.cause, StorageFailure)
    elif exc.status_code >= 500:
        # storage keys and parser output stay in the log
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        content["detail"] = exc.default_message

    return JSONResponse(status_code=exc.status_code, content=content)


app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(books.router, prefix="/books", tags=["Books"])
app.include_router(ebooks.router, prefix="/books", tags=["Purchases"])
app.include_router(author_books.router, prefix="/author/books", tags=["Author Books"])
app.include_router(user_library.router, prefix="/library", tags=["Library"])
app.include_router(health.router, prefix="/health", tags=["Health"])


@app.get("/")
def root():
    return {
        "auth_endpoints": [
            "/auth/register", "/auth/login"
        ],
        "book_endpoints": [
            "/books", "/books/search", "/books/{book_id}",
            "/books/{book_id}/cover", "/books/{book_id}/purchase"
        ],
        "author_endpoints": [
            "/author/books"
        ],
        "library_endpoints": [
            "/library", "/library/{book_id}/download"
        ],
    }
