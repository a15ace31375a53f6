from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from ..core.logging import setup_logging
from ..core.config import settings
from ..core.errors import InvoiceMaxError
from .deps import get_sync
from .routers import documents, drafts, health, history

logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Pending autosaves must not be lost on shutdown
    sync = app.dependency_overrides.get(get_sync, get_sync)()
    await sync.close()


app = FastAPI(title="InvoiceMax", lifespan=lifespan)


# Add custom exception handler for validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error("Validation error", path=request.url.path, errors=exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_errors(exc.errors())},
    )


@app.exception_handler(InvoiceMaxError)
async def invoicemax_exception_handler(request: Request, exc: InvoiceMaxError):
    logger.warning(
        "Request failed",
        path=request.url.path,
        error_type=exc.__class__.__name__,
        status_code=exc.status_code,
        message=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def jsonable_errors(errors) -> list[dict]:
    # ctx may hold exception instances, which JSONResponse cannot encode
    return [{key: value for key, value in err.items() if key != "ctx"} for err in errors]


# Configure CORS to allow frontend access
# CORS_ORIGINS can be set in .env as comma-separated list
# Example: CORS_ORIGINS=http://localhost:3000,https://your-frontend.com
allowed_origins = [origin.strip() for origin in settings.cors_origins.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(documents.router)
app.include_router(drafts.router)
app.include_router(history.router)
