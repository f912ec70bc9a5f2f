from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from contextlib import asynccontextmanager
import logging
from app.utils.supabase_client_handlers import create_supabase_admin_client, close_supabase_admin_client
from app.utils.cors import preflight_response
from app.configs.app_settings import settings
from app.custom_error import ConfigurationError, WebhookError
from app.routes.flutterwave_webhook_route import flutterwave_webhook_router
from app.routes.payments_routes import payments_router
from app.routes.team_routes import team_router
from app.routes.oauth_routes import oauth_router

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # before yield = code to run during startup
    try:
        await create_supabase_admin_client()
        logger.info("✅ Supabase admin client initialized")
    except ConfigurationError as e:
        # requests that need the admin client will answer with this same descriptive 500
        logger.error(f"❌ Supabase admin client not initialized: {e.detail}")

    yield
    # after yield = code to run during shutdown
    await close_supabase_admin_client()
    logger.info("✅ Supabase admin client closed")


app = FastAPI(title="Orinx Billing API", version="1.0.0", lifespan=lifespan)


# Flutterwave only reads the status code; webhook failures go back as short plain text diagnostics
@app.exception_handler(WebhookError)
async def webhook_exception_handler(request: Request, exc: WebhookError):
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def custom_request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors"""
    return JSONResponse(status_code=400, content={"detail": "Validation error", "errors": jsonable_encoder(exc.errors())})


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
# the webhook URL is registered with Flutterwave as-is, so it stays outside the versioned prefix
app.include_router(flutterwave_webhook_router)
app.include_router(payments_router, prefix=settings.API_V1_STR)
app.include_router(team_router, prefix=settings.API_V1_STR)
app.include_router(oauth_router, prefix=settings.API_V1_STR)


# real preflights are answered by CORSMiddleware; this covers bare OPTIONS requests without reading their body
@app.options("/{path:path}", include_in_schema=False)
async def options_handler(path: str):
    return preflight_response()


@app.get("/")
async def root():
    return {"message": "Welcome to Orinx Billing API"}
