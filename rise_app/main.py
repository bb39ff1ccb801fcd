"""
Rise.ai integration example app.
OAuth installation flow, signed webhooks, workflow actions and example API calls.
Port 3000 by default (PORT).
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from rise_app import config
from rise_app.api_examples import router as api_router
from rise_app.dependencies import get_installation_store, get_verification_key
from rise_app.errors import RiseAppError
from rise_app.oauth import router as oauth_router
from rise_app.webhooks import router as webhooks_router
from rise_app.workflows import router as workflows_router

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Console handler on the root logger (no-op if one exists) and RISE_LOG_LEVEL on ours."""
    level = getattr(logging, config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("rise_app").setLevel(level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Refuse to start without credentials; load the verification key and store up front."""
    configure_logging()
    missing = config.missing_settings()
    if missing:
        for name in missing:
            logger.error("Missing required environment variable: %s", name)
        raise RuntimeError(f"Missing required configuration: {', '.join(missing)}")
    get_verification_key()
    get_installation_store()
    logger.info("Rise.ai OAuth Example running at %s", config.SERVER_BASE_URL)
    logger.info("Configured for Client ID: %s", config.CLIENT_ID)
    logger.info("Webhook endpoint: %s/rise/webhooks", config.SERVER_BASE_URL)
    logger.info("Workflow endpoint: %s/rise/workflows/actions/v1/invoke", config.SERVER_BASE_URL)
    logger.info(
        "To start OAuth flow, visit: %s/protected/app-installer/install?appId=%s",
        config.RISE_PLATFORM_URL,
        config.CLIENT_ID,
    )
    yield


app = FastAPI(title=config.APP_NAME, version=config.APP_VERSION, lifespan=lifespan)
app.include_router(oauth_router, tags=["oauth"])
app.include_router(webhooks_router, tags=["webhooks"])
app.include_router(workflows_router, tags=["workflows"])
app.include_router(api_router, tags=["api"])


@app.middleware("http")
async def opener_policy(request: Request, call_next):
    # Installer popups need window.opener
    response = await call_next(request)
    response.headers["Cross-Origin-Opener-Policy"] = "unsafe-none"
    return response


@app.exception_handler(RiseAppError)
async def rise_app_error_handler(request: Request, exc: RiseAppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def not_found_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(status_code=404, content={"error": "not_found", "message": "Endpoint not found"})
    return await http_exception_handler(request, exc)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_server_error", "message": "An unexpected error occurred"},
    )


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "rise_app"}


@app.get("/")
def home():
    """Discovery document listing the example endpoints."""
    return {
        "name": "Rise.ai OAuth Integration Example",
        "version": config.APP_VERSION,
        "description": "Example application demonstrating Rise.ai OAuth integration",
        "endpoints": {
            "oauth": {
                "authorize": "/oauth/rise/authorize?token=INSTALL_TOKEN",
                "callback": "/oauth/rise/callback",
            },
            "webhooks": "/rise/webhooks",
            "invoke": "/rise/workflows/actions/v1/invoke",
            "api": {
                "installations": "/api/installations",
                "examples": {
                    "account": "/api/example/account/:instanceId",
                    "sales_channels": "/api/example/sales-channels/:instanceId",
                    "create_gift_card": "POST /api/example/gift-cards/:instanceId",
                    "search_gift_cards": "POST /api/example/gift-cards/search/:instanceId",
                    "create_wallet": "POST /api/example/wallets/:instanceId",
                    "query_wallets": "POST /api/example/wallets/query/:instanceId",
                    "report_event": "POST /api/example/workflows/events/:instanceId",
                },
            },
        },
    }


if __name__ == "__main__":
    import uvicorn
    configure_logging()
    uvicorn.run(
        "rise_app.main:app",
        host="127.0.0.1",
        port=config.PORT,
        reload=True,
    )
