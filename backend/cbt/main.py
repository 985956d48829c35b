"""
CBT portal API application: middleware stack, routers and error rendering.
"""
import logging
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from cbt.api.v1.api import api_router
from cbt.core.config import settings
from cbt.core.error_responses import ErrorMessages, envelope
from cbt.core.exceptions import CBTError
from cbt.core.logging_config import setup_logging
from cbt.middleware import RequestLoggingMiddleware

# Configure logging before anything below can emit
setup_logging()

logger = logging.getLogger(__name__)


tags_metadata = [
    {
        "name": "health",
        "description": "Service and database health check",
    },
    {
        "name": "Admin - Test Codes",
        "description": "Generate test codes and control which codes students can use",
    },
    {
        "name": "test",
        "description": "Redeem a test code, save answers and submit a test",
    },
]


def _validation_messages(exc: RequestValidationError) -> list:
    messages = []
    for error in exc.errors():
        location = ".".join(
            str(part) for part in error.get("loc", []) if part != "body"
        )
        message = str(error.get("msg", ""))
        messages.append(f"{location}: {message}" if location else message)
    return messages


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=(
            "**CBT Portal API** - test codes, test delivery and scoring for "
            "computer-based school assessments.\n\n"
            "## Authentication\n\n"
            "All endpoints except the health check require a JWT Bearer token "
            "issued by the school portal.\n\n"
            "## Test sessions\n\n"
            "`/v1/test/start` sets a signed session cookie. Send it back on "
            "`/v1/test/answers` and `/v1/test/submit`."
        ),
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        openapi_tags=tags_metadata,
    )

    # Student test sessions are kept in this signed cookie
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SECRET_KEY,
        session_cookie=settings.TEST_SESSION_COOKIE,
        max_age=settings.TEST_SESSION_COOKIE_MAX_AGE,
        same_site="lax",
        https_only=settings.ENV == "production",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )

    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.exception_handler(CBTError)
    async def cbt_error_handler(request: Request, exc: CBTError):
        """
        Render domain errors into the standard envelope.
        """
        if exc.status_code >= 500:
            logger.error(
                f"{exc.__class__.__name__} on {request.method} {request.url.path}: "
                f"{exc.message}"
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=envelope(False, exc.message, data=exc.data or None),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=envelope(False, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """
        Pydantic validation failures, flattened to "field: message" strings.
        """
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=envelope(
                False,
                ErrorMessages.REQUEST_VALIDATION_FAILED,
                errors=_validation_messages(exc),
            ),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Handle unexpected exceptions.

        Generates a unique error_id (UUID) for each exception so a report from
        a user can be traced to the logged traceback.
        """
        error_id = str(uuid.uuid4())

        logger.exception(
            f"Unhandled exception [error_id={error_id}]: {exc}",
            extra={"error_id": error_id},
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=envelope(
                False, ErrorMessages.INTERNAL_ERROR, data={"error_id": error_id}
            ),
        )

    return app


app = create_application()
