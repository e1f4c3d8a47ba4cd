from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from api.v1 import auth, news, bookmarks, likes, comments
from core.config import settings
from core.errors import ServiceError
from core.rate_limit import limiter, rate_limit_exceeded_handler
from db.base import initialize_database
from db.session import engine
from services.news_service import NewsClient
from utils.clock import utcnow
from utils.logging_config import configure_logging, RequestContextMiddleware
from utils.responses import error_json
from fastapi import Request

# Configure logging with date-based files and TTL retention
logger = configure_logging("yb_news")

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG
)
app.state.limiter = limiter

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} at {request.method} {request.url.path}: {exc.message}", exc_info=exc.__cause__)
    payload = exc.to_payload() if exc.expose else {"error": "Internal server error."}
    return error_json(payload, exc.status_code)

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Route {request.method} {request.url.path} not found."
    else:
        message = str(exc.detail)
    return error_json({"error": message}, exc.status_code, headers=getattr(exc, "headers", None))

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"Invalid request: {location} {first.get('msg', '')}".strip() if location else "Invalid request body."
    return error_json({"error": message}, 400)

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Global exception handler to ensure 500s for unexpected errors
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error at {request.url.path}: {exc}", exc_info=exc)
    return error_json({"error": "Internal server error."}, 500)

# Add GZip compression for larger JSON payloads
app.add_middleware(GZipMiddleware, minimum_size=500)

# Add logging context middleware to capture user_id and API path
app.add_middleware(RequestContextMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# Include routers
app.include_router(auth.router, tags=["Authentication"])
app.include_router(news.router, tags=["News"])
app.include_router(bookmarks.router, tags=["Bookmarks"])
app.include_router(likes.router, tags=["Likes"])
app.include_router(comments.router, tags=["Comments"])

@app.on_event("startup")
async def startup():
    """Create tables and the news proxy"""
    try:
        await initialize_database()
        logger.info("SQL database initialized")
    except Exception as e:
        logger.warning(f"SQL init skipped or failed: {e}")
    app.state.news_client = NewsClient()
    logger.info("Application startup complete")

@app.on_event("shutdown")
async def shutdown():
    """Application shutdown"""
    news_client = getattr(app.state, "news_client", None)
    if news_client is not None:
        await news_client.aclose()
    try:
        await engine.dispose()
        logger.info("Disposed SQL engine")
    except Exception as e:
        logger.warning(f"Engine dispose failed: {e}")
    logger.info("Application shutdown complete")

@app.get("/")
async def root():
    return {
        "status": "ok",
        "app": settings.APP_NAME,
        "version": settings.VERSION,
        "timestamp": utcnow().isoformat() + "Z",
    }

@app.get("/api/health")
async def health_check():
    return {"status": "ok", "timestamp": utcnow().isoformat() + "Z"}
