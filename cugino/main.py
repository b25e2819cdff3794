"""FastAPI application entrypoint. No business logic; only wiring and middleware."""

from typing import Annotated

from dotenv import load_dotenv

load_dotenv()

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cugino.api.errors import register_exception_handlers
from cugino.api.middleware import RequestLoggingMiddleware
from cugino.api.v1 import router as v1_router
from cugino.api.v1.dependencies import get_optional_identity
from cugino.core.config import settings
from cugino.core.logging_config import configure_logging
from cugino.schemas.health import ApiInfoResponse
from cugino.services.authorization import Identity

API_VERSION = "1.0.0"

configure_logging(settings)

app = FastAPI(
    title="Cugino API",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else settings.cors_origins,
    allow_credentials=not settings.is_development,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/", response_model=ApiInfoResponse)
def root(
    identity: Annotated[Identity | None, Depends(get_optional_identity)],
) -> ApiInfoResponse:
    """Root route; name, version and entry points for discovery."""
    prefix = settings.API_V1_PREFIX
    return ApiInfoResponse(
        name="Cugino API",
        version=API_VERSION,
        description="Authentication and role-based access for the Cugino restaurant chain",
        endpoints={
            "health": f"{prefix}/health",
            "auth": f"{prefix}/auth",
            "users": f"{prefix}/users",
        },
        authenticated_as=identity.name if identity else None,
    )
