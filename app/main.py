# app/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.errors import WorkflowError
from app.api.routes.auth import router as auth_router
from app.api.routes.admin import router as admin_router

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str, reason: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, "reason": reason})


# Every failure leaves the API as {"success": false, "error": ..., "reason": ...}
@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    return _error(exc.status_code, exc.message, exc.reason)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:])
    message = f"{field}: {first.get('msg')}" if field else "Invalid request body"
    return _error(422, message, "validation_error")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail), "http_error")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "Internal server error", "internal_error")


# Routers
app.include_router(auth_router)
app.include_router(admin_router)


@app.on_event("startup")
def startup_event():
    """Seed the privileged admin registry from FIXED_ADMIN_EMAILS."""
    from app.db.session import SessionLocal
    from app.services.admin_registry import seed_privileged_admins

    db = SessionLocal()
    try:
        seed_privileged_admins(db, settings.fixed_admin_email_list)
    except Exception as e:
        logger.warning("Failed to seed privileged admins: %s", e)
    finally:
        db.close()


@app.get("/health")
def health():
    return {"ok": True}
