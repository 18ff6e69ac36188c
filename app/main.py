from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from app.core import config
from app.core.database.engine import close_db, init_db
from app.features.permissions.constants import PERMISSION_MODULES
from app.features.permissions.exceptions import AuthorizationError, GrantStoreError
from app.features.permissions.routes import router as permission_router
from app.features.portfolios.routes import router as portfolio_router
from app.features.properties.routes import router as property_router
from app.features.users.dependencies import get_authorization_header
from app.features.users.routes import router as user_router
from app.utils import get_logger


API_VERSION = "0.1.0"

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    await init_db()
    yield
    await close_db()
    log.info("Database connections closed")


log.info("Initializing server")
app = FastAPI(
    title="Portfolio Access Backend",
    description="Module-scoped role permissions narrowed by per-user resource grants",
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
# Keyed on the bearer token so each caller gets its own bucket
app.state.limiter = Limiter(key_func=get_authorization_header)


class LogTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.app.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=LogTimings(), metric_namer=StarletteScopeToName("main", app))

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.ALLOW_ORIGIN],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    """Flatten pydantic errors into {field: message}."""
    errors = {}
    for error in exc.errors():
        if not error.get("loc") or "msg" not in error:
            continue
        field = error["loc"][-1]
        errors["root" if field == "__root__" else field] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(_request: Request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": exc.reason})


@app.exception_handler(GrantStoreError)
async def grant_store_error_handler(_request: Request, exc: GrantStoreError):
    # Never fall back to a permissive answer when grants cannot be read
    log.error("Resource grant lookup failed: %s", exc)
    return JSONResponse(status_code=503, content={"detail": "Permission data is temporarily unavailable"})


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.get("/")
async def root():
    """Service summary."""
    return {
        "message": "Portfolio Access Backend API",
        "version": API_VERSION,
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": "Bearer JWT in the Authorization header; the subject claim is the user id",
        "permission_modules": [module.value for module in PERMISSION_MODULES],
        "routes": ["/users", "/permissions", "/portfolios", "/properties"],
    }


@app.get("/health")
async def health():
    return {"status": "healthy"}


app.include_router(user_router, prefix="/users", tags=["users"])
app.include_router(permission_router, prefix="/permissions", tags=["permissions"])
app.include_router(portfolio_router, prefix="/portfolios", tags=["portfolios"])
app.include_router(property_router, prefix="/properties", tags=["properties"])
