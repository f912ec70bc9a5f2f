import httpx
import logging
from pydantic import ValidationError as PydanticValidationError
from typing import Optional, Dict, Any
from app.configs.app_settings import Settings
from app.custom_error import (
    ConfigurationError,
    PaymentProviderError,
    TransactionVerificationError,
    VerificationUnavailableError,
)
from app.models.flutterwave_webhook_models import VerifiedTransaction

logger = logging.getLogger(__name__)


# Payment constants for the checkout flow
class PaymentConstants:
    CHECKOUT_CURRENCY = "USD"
    TX_REF_PREFIX = "orinx"
    SUCCESS_RESPONSE_STATUS = "success"


class FlutterwaveClient:
    """Async wrapper for the Flutterwave calls this API makes"""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        # injected in tests (httpx.MockTransport); otherwise one short-lived client per call
        self._http_client = http_client

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        timeout = self.settings.FLUTTERWAVE_TIMEOUT_SECONDS
        if self._http_client is not None:
            return await self._http_client.request(method, url, timeout=timeout, **kwargs)
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.request(method, url, **kwargs)

    # ---------------------------------------------------------------------------------------------------------------------

    async def verify_transaction(self, transaction_id: str) -> VerifiedTransaction:
        """
        Ask Flutterwave for the authoritative state of a transaction.
        Only the id goes out; status, amount, currency, tx_ref and meta all come back from Flutterwave.
        """
        secret_key = self.settings.require("FLUTTERWAVE_SECRET_KEY")
        url = f"{self.settings.FLUTTERWAVE_API_URL.rstrip('/')}/transactions/{transaction_id}/verify"

        try:
            response = await self._send("GET", url, headers={"Authorization": f"Bearer {secret_key}"})
        except httpx.TimeoutException:
            logger.error(f"⏱️ Flutterwave verify timed out for transaction {transaction_id}")
            raise VerificationUnavailableError("Transaction verification timed out")
        except httpx.HTTPError as e:
            logger.error(f"❌ Flutterwave verify transport error for transaction {transaction_id}: {type(e).__name__}")
            raise VerificationUnavailableError()

        if response.status_code >= 500:
            logger.error(f"❌ Flutterwave verify returned {response.status_code} for transaction {transaction_id}")
            raise VerificationUnavailableError()

        if response.status_code >= 400:
            logger.warning(f"⚠️ Flutterwave verify rejected transaction {transaction_id}: HTTP {response.status_code}")
            raise TransactionVerificationError("Transaction verification failed")

        try:
            body = response.json()
        except ValueError:
            logger.error(f"❌ Flutterwave verify returned a non-JSON body for transaction {transaction_id}")
            raise TransactionVerificationError("Transaction verification failed")

        if not isinstance(body, dict) or body.get("status") != PaymentConstants.SUCCESS_RESPONSE_STATUS:
            message = body.get("message") if isinstance(body, dict) else None
            logger.warning(f"⚠️ Flutterwave verify reported failure for transaction {transaction_id}: {message}")
            raise TransactionVerificationError("Transaction verification failed")

        data = body.get("data")
        if not isinstance(data, dict) or not data.get("status"):
            logger.error(f"❌ Flutterwave verify response for transaction {transaction_id} has no transaction data")
            raise TransactionVerificationError("Transaction verification failed")

        try:
            return VerifiedTransaction(**data)
        except PydanticValidationError:
            logger.error(f"❌ Flutterwave verify response for transaction {transaction_id} has an unexpected shape")
            raise TransactionVerificationError("Transaction verification failed")

    # ---------------------------------------------------------------------------------------------------------------------

    async def get_access_token(self) -> str:
        """Fetch a v4 access token with the client_credentials grant"""
        client_id = self.settings.FLUTTERWAVE_CLIENT_ID
        client_secret = self.settings.FLUTTERWAVE_CLIENT_SECRET
        if not client_id or not client_secret:
            raise ConfigurationError("Missing FLUTTERWAVE_CLIENT_ID/FLUTTERWAVE_CLIENT_SECRET configuration")

        form = {"grant_type": "client_credentials", "client_id": client_id, "client_secret": client_secret}

        try:
            response = await self._send("POST", self.settings.FLUTTERWAVE_TOKEN_URL, data=form)
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ Flutterwave token request failed: {type(e).__name__}")
            raise PaymentProviderError("Token fetch failed")

        if not isinstance(body, dict):
            body = {}

        if not response.is_success:
            logger.error(f"❌ Flutterwave token request returned {response.status_code}")
            raise PaymentProviderError(body.get("error_description") or body.get("error") or "Token fetch failed")

        access_token = body.get("access_token")
        if not access_token:
            raise PaymentProviderError("No access_token returned from Flutterwave")
        return access_token

    # ---------------------------------------------------------------------------------------------------------------------

    async def create_direct_order(self, access_token: str, payload: Dict[str, Any]) -> str:
        """Create an orchestration direct order and return its hosted checkout link"""
        url = f"{self.settings.FLUTTERWAVE_ORCHESTRATION_URL.rstrip('/')}/orchestration/direct-orders"

        try:
            response = await self._send(
                "POST",
                url,
                headers={"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"},
                json=payload,
            )
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ Flutterwave init failed for {payload.get('tx_ref')}: {type(e).__name__}")
            raise PaymentProviderError("Flutterwave init failed")

        if not isinstance(body, dict):
            body = {}

        if not response.is_success:
            logger.error(f"❌ Flutterwave init returned {response.status_code} for {payload.get('tx_ref')}")
            raise PaymentProviderError(body.get("message") or "Flutterwave init failed")

        data = body.get("data") or {}
        link = data.get("link") or data.get("checkout_url") or data.get("payment_url")
        if not link:
            logger.error(f"❌ No checkout link returned for {payload.get('tx_ref')}")
            raise PaymentProviderError("No checkout link returned by Flutterwave")
        return link
