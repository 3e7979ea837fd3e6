import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from zaprelay.api import webhook, whatsapp
from zaprelay.core.config import settings
from zaprelay.core.errors import InternalError, RelayError, RouteNotFound, ValidationError
from zaprelay.core.logbuffer import get_log_buffer
from zaprelay.services.events import event_hub

logger = logging.getLogger("zaprelay")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Configure logging based on debug setting
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s" if settings.debug
        else "%(levelname)-8s %(name)s: %(message)s",
    )
    logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)
    get_log_buffer()

    missing = settings.missing_gateway_settings()
    if missing:
        raise RuntimeError(
            f"Missing environment variables: {', '.join(missing)}. Configure them before starting the server."
        )

    logger.info(f"{settings.app_name} ready ({settings.gateway_provider} gateway)")
    yield
    event_hub.close()
    logger.info(f"{settings.app_name} stopped")


class RelayCORSMiddleware(CORSMiddleware):
    """CORSMiddleware whose preflights always get an empty 204.

    A rejected preflight keeps the computed CORS headers but carries no
    allow-origin for a foreign origin, so the browser enforces the policy.
    """

    def preflight_response(self, request_headers):
        response = super().preflight_response(request_headers)
        if response.status_code != 200:
            logger.debug(f"CORS preflight rejected: {response.body.decode(errors='replace')}")
        headers = {
            k: v for k, v in response.headers.items() if k not in ("content-length", "content-type")
        }
        return Response(status_code=204, headers=headers)


app = FastAPI(title=settings.app_name, lifespan=lifespan)


@app.middleware("http")
async def guard_requests(request: Request, call_next):
    if request.method == "OPTIONS":
        return Response(status_code=204)
    try:
        return await call_next(request)
    except Exception:
        # One failing request must never take the process down
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error.to_response())


app.add_middleware(
    RelayCORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials="*" not in settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError):
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(level, f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if any(e.get("type") == "json_invalid" for e in errors):
        error = ValidationError("Request body is not valid JSON")
    else:
        fields = []
        for e in errors:
            name = ".".join(str(part) for part in e.get("loc", ())[1:]) or "body"
            if name not in fields:
                fields.append(name)
        error = ValidationError(f"Missing or invalid fields: {', '.join(fields)}", details=fields)
    logger.warning(f"{request.method} {request.url.path} -> 400: {error.message}")
    return JSONResponse(status_code=error.status_code, content=error.to_response())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code in (404, 405):
        logger.debug(f"No route for {request.method} {request.url.path}")
        error = RouteNotFound()
        return JSONResponse(status_code=error.status_code, content=error.to_response())
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
    )


app.include_router(webhook.router, prefix="/webhook", tags=["webhook"])
app.include_router(whatsapp.router, prefix="/api/{gateway}", tags=["whatsapp"])


@app.get("/health")
async def health():
    return {"status": "ok"}


def run() -> None:
    import uvicorn

    uvicorn.run("zaprelay.main:app", host=settings.host, port=settings.port)
