"""
FastAPI server for the RoomieMatch service.

Exposes:
  - GET /health - Health check
  - /api/auth/* - Signup, login, onboarding status
  - /api/onboarding/* - Three-step onboarding
  - /api/users/* - Profiles, listing, statistics, compatible roommates
  - /api/registration/draft - Registration drafts
  - GET /docs - Interactive API documentation (Swagger UI)
"""

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Dict
import time

# Import configuration (loads .env automatically)
from roomiematch.config import config, validate_config

# Import logging setup
from roomiematch.utils.logging_config import logger, setup_logging

from roomiematch.routes import auth, drafts, onboarding, preview, users
from roomiematch.utils.errors import (
    AuthenticationError,
    DuplicateUserError,
    FirestoreUnavailableError,
    GraphExecutionError,
    InvalidInputError,
    NoLocationPreferencesError,
    ProfileIncompleteError,
    UserNotFoundError,
)

# Setup logging
setup_logging(debug=config.DEBUG)

# ============================================================
# VALIDATE CONFIGURATION AT STARTUP
# ============================================================
try:
    config_status = validate_config()
    logger.info("✅ Configuration validated successfully")
    for key, value in config_status.items():
        logger.info(f"  {key}: {value}")
except ValueError as e:
    logger.error(f"❌ Configuration error: {e}")
    raise SystemExit(1)

# ============================================================
# FASTAPI APPLICATION
# ============================================================
app = FastAPI(
    title="RoomieMatch Service",
    description="Roommate onboarding, profiles and compatibility matching",
    version="1.0.0",
)

# ============================================================
# CORS CONFIGURATION
# ============================================================
origins = [origin.strip() for origin in config.CORS_ORIGINS.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================
# MIDDLEWARE
# ============================================================
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """
    Middleware to track request processing time.

    Adds X-Process-Time header to all responses showing how long request took.
    """
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# ============================================================
# ROUTES
# ============================================================
app.include_router(auth.router)
app.include_router(onboarding.router)
app.include_router(users.router)
app.include_router(drafts.router)
app.include_router(preview.router)


@app.get("/health", tags=["System"])
async def health_check() -> Dict[str, str]:
    """
    Health check endpoint.

    Returns:
        dict: {"status": "healthy"}

    Called by load balancers and monitoring systems.
    """
    return {"status": "healthy"}


@app.get("/", tags=["System"])
async def root() -> Dict[str, str]:
    """
    Root endpoint.

    Returns information about the API and how to access documentation.
    """
    return {
        "service": "RoomieMatch Service",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


# ============================================================
# ERROR HANDLERS
# ============================================================

def _error_response(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "status_code": status_code,
            **extra,
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Handle HTTP exceptions with consistent error response format.
    """
    logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")
    return _error_response(exc.status_code, exc.detail)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report malformed bodies and query parameters as field errors."""
    errors = [
        {"field": str(error["loc"][-1]), "message": error["msg"]}
        for error in exc.errors()
    ]
    logger.info(f"Request validation failed: {errors}")
    return _error_response(
        status.HTTP_400_BAD_REQUEST, "Validation failed", errors=errors
    )


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    return _error_response(status.HTTP_400_BAD_REQUEST, exc.message, errors=exc.errors)


@app.exception_handler(NoLocationPreferencesError)
async def no_locations_handler(request: Request, exc: NoLocationPreferencesError):
    return _error_response(status.HTTP_400_BAD_REQUEST, exc.message)


@app.exception_handler(DuplicateUserError)
async def duplicate_user_handler(request: Request, exc: DuplicateUserError):
    return _error_response(status.HTTP_400_BAD_REQUEST, str(exc), field=exc.field)


@app.exception_handler(AuthenticationError)
async def authentication_handler(request: Request, exc: AuthenticationError):
    logger.warning(f"Authentication failed: {exc}")
    return _error_response(status.HTTP_401_UNAUTHORIZED, str(exc))


@app.exception_handler(ProfileIncompleteError)
async def profile_incomplete_handler(request: Request, exc: ProfileIncompleteError):
    return _error_response(
        status.HTTP_403_FORBIDDEN,
        str(exc),
        profileCompleteness=exc.profile_completeness,
        required=exc.required,
    )


@app.exception_handler(UserNotFoundError)
async def user_not_found_handler(request: Request, exc: UserNotFoundError):
    return _error_response(status.HTTP_404_NOT_FOUND, str(exc) or "User not found")


@app.exception_handler(FirestoreUnavailableError)
async def firestore_unavailable_handler(request: Request, exc: FirestoreUnavailableError):
    logger.error(f"Firestore unavailable: {exc}")
    return _error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE, "User store unavailable"
    )


@app.exception_handler(GraphExecutionError)
async def graph_execution_handler(request: Request, exc: GraphExecutionError):
    logger.error(f"Graph execution failed: {exc}")
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle unexpected exceptions.

    Never returns the exception message to the client; use logging instead.
    """
    logger.error(f"Unhandled exception: {str(exc)}")
    logger.exception("Full traceback:")
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
    )


# ============================================================
# STARTUP EVENTS
# ============================================================

@app.on_event("startup")
async def startup_event():
    """
    Run when the application starts.

    Configuration is already validated above (in module-level code),
    but we log it again here for visibility.
    """
    logger.info("=" * 60)
    logger.info("🚀 RoomieMatch Service Starting Up")
    logger.info("=" * 60)

    logger.info(f"Firebase Project: {config.FIREBASE_PROJECT_ID}")
    logger.info(f"Scoring Policy: {config.SCORING_POLICY}")
    logger.info(f"Draft Store: {config.DRAFT_STORE}")
    logger.info(f"Debug Mode: {config.DEBUG}")
    logger.info(f"Max Candidates: {config.MAX_CANDIDATES}")

    logger.info("=" * 60)
    logger.info("✅ Service ready to handle requests")
    logger.info("=" * 60)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("🛑 RoomieMatch Service Shutting Down")


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    """
    Run with: python -m uvicorn roomiematch.server:app --reload
    """
    import uvicorn
    uvicorn.run(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level="info" if not config.DEBUG else "debug"
    )
