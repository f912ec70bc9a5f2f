import time
import logging
from urllib.parse import quote
from app.configs.app_settings import Settings
from app.configs.flutterwave_config import FlutterwaveClient, PaymentConstants
from app.custom_error import ValidationError
from app.models.payment_models import CheckoutRequest, CheckoutSessionResponse, CheckoutSessionData
from app.models.user_models import AuthenticatedUser

logger = logging.getLogger(__name__)


def build_tx_ref(user_id: str, now_ms: int) -> str:
    """Merchant reference, unique per checkout attempt; it is the webhook idempotency key later on"""
    return f"{PaymentConstants.TX_REF_PREFIX}_{user_id}_{now_ms}"


class CheckoutService:
    def __init__(self, settings: Settings, flutterwave_client: FlutterwaveClient, clock=time.time):
        self.settings = settings
        self.flutterwave_client = flutterwave_client
        self.clock = clock

    async def create_checkout_session(self, user: AuthenticatedUser, request: CheckoutRequest) -> CheckoutSessionResponse:
        """Start a hosted Flutterwave checkout for the caller's plan purchase"""
        email = request.email or user.email
        if not email:
            raise ValidationError("Missing required field: email")

        access_token = await self.flutterwave_client.get_access_token()

        tx_ref = build_tx_ref(user.id, int(self.clock() * 1000))
        redirect_url = f"{self.settings.APP_BASE_URL}/app/settings/pricing?status=verifying&tx_ref={quote(tx_ref, safe='')}"

        # meta travels with the transaction and is read back from the verify endpoint when the webhook arrives
        payload = {
            "tx_ref": tx_ref,
            "amount": request.amount,
            "currency": PaymentConstants.CHECKOUT_CURRENCY,
            "redirect_url": redirect_url,
            "customer": {"email": email, "name": email.split("@")[0]},
            "meta": {"user_id": user.id, "plan_id": request.plan_id, "interval": request.interval},
        }

        link = await self.flutterwave_client.create_direct_order(access_token, payload)

        logger.info(f"✅ Checkout created for user {user.id}: {tx_ref}")
        return CheckoutSessionResponse(data=CheckoutSessionData(link=link, tx_ref=tx_ref))
