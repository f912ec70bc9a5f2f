from fastapi import APIRouter, Request, Depends, Header
from fastapi.responses import PlainTextResponse
from supabase import AsyncClient
from typing import Optional
import logging
from app.configs.app_settings import Settings, get_settings
from app.configs.flutterwave_config import FlutterwaveClient
from app.services.flutterwave_webhook_services import FlutterwaveWebhookService, authenticate_webhook_source
from app.services.subscription_billing_services import SubscriptionBillingService
from app.utils.supabase_client_handlers import get_supabase_admin_client

flutterwave_webhook_router = APIRouter(tags=["Webhooks"])
logger = logging.getLogger(__name__)


async def get_flutterwave_client(settings: Settings = Depends(get_settings)) -> FlutterwaveClient:
    """Dependency to get the Flutterwave client used as transaction verifier"""
    return FlutterwaveClient(settings)


async def require_webhook_signature(
    verif_hash: Optional[str] = Header(None, alias="verif-hash"),
    settings: Settings = Depends(get_settings),
) -> Optional[str]:
    """Signature gate; runs before any dependency that touches Supabase or Flutterwave"""
    authenticate_webhook_source(settings, verif_hash)
    return verif_hash


async def get_subscription_billing_service(supabase_client: AsyncClient = Depends(get_supabase_admin_client)) -> SubscriptionBillingService:
    """Dependency to get SubscriptionBillingService instance"""
    return SubscriptionBillingService(supabase_client)


async def get_flutterwave_webhook_service(
    settings: Settings = Depends(get_settings),
    verifier: FlutterwaveClient = Depends(get_flutterwave_client),
    billing_service: SubscriptionBillingService = Depends(get_subscription_billing_service),
) -> FlutterwaveWebhookService:
    """Dependency to get FlutterwaveWebhookService instance"""
    return FlutterwaveWebhookService(settings, verifier, billing_service)


# ################################################################################################################################


@flutterwave_webhook_router.post("/webhook", response_class=PlainTextResponse)
async def flutterwave_webhook_handler(
    request: Request,
    # dependencies resolve in declaration order, so a bad signature is a 401 even when storage is misconfigured
    verif_hash: Optional[str] = Depends(require_webhook_signature),
    webhook_service: FlutterwaveWebhookService = Depends(get_flutterwave_webhook_service),
):
    """Handle Flutterwave webhook events"""
    # errors raised below are WebhookError subclasses, rendered as plain text by the handler in main.py
    payload = await request.body()
    outcome = await webhook_service.process(verif_hash, payload)
    logger.info(f"🔔 Flutterwave webhook handled: {outcome.value}")
    return PlainTextResponse(outcome.value, status_code=200)
