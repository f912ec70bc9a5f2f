import hmac
import json
import logging
from typing import Optional, Tuple
from pydantic import ValidationError as PydanticValidationError
from app.configs.app_settings import Settings
from app.configs.flutterwave_config import FlutterwaveClient
from app.services.subscription_billing_services import SubscriptionBillingService
from app.custom_error import (
    ConfigurationError,
    MalformedWebhookError,
    TransactionVerificationError,
    UnauthorizedSignatureError,
    WebhookConfigurationError,
)
from app.models.flutterwave_webhook_models import (
    CHARGE_COMPLETED_EVENT,
    CommitResult,
    FlutterwaveWebhookEvent,
    SubscriptionCommit,
    VerifiedTransaction,
    WebhookOutcome,
)

logger = logging.getLogger(__name__)

REQUIRED_META_FIELDS = ("user_id", "plan_id", "interval")


def authenticate_webhook_source(settings: Settings, signature: Optional[str]) -> None:
    """Exact match of the verif-hash header against the configured shared secret, before any parsing"""
    expected = settings.FLUTTERWAVE_HASH

    if not expected:
        logger.error("❌ FLUTTERWAVE_HASH is not configured, rejecting webhook")
        raise UnauthorizedSignatureError()

    if not signature or not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
        logger.warning(f"🚫 Webhook rejected: {'missing' if not signature else 'invalid'} verif-hash header")
        raise UnauthorizedSignatureError()


class FlutterwaveWebhookService:
    """
    Payment confirmation pipeline for Flutterwave "charge.completed" webhooks.

    Each gate either passes or ends the request. Raised WebhookError subclasses become 4xx/5xx, returned
    WebhookOutcome values become 200. Flutterwave redelivers on anything but 2xx, so only genuine faults are errors;
    "nothing to do" (other event types, unsuccessful payments, duplicates) is answered with 200.
    The webhook body is only trusted for the event type, the transaction id and tx_ref; everything that decides
    who gets what comes from Flutterwave's verify endpoint.
    """

    def __init__(self, settings: Settings, verifier: FlutterwaveClient, billing_service: SubscriptionBillingService):
        self.settings = settings
        self.verifier = verifier
        self.billing_service = billing_service

    async def process(self, signature: Optional[str], raw_body: bytes) -> WebhookOutcome:
        self.authenticate_source(signature)

        event = self.parse_payload(raw_body)
        if event.event_type != CHARGE_COMPLETED_EVENT:
            logger.info(f"⚠️ Ignoring Flutterwave webhook event type: {event.event_type}")
            return WebhookOutcome.IGNORED

        transaction_id, tx_ref = self.extract_keys(event)

        verified = await self.re_verify(transaction_id, tx_ref)

        if not self.check_business_status(verified, transaction_id, tx_ref):
            return WebhookOutcome.NOT_SUCCESSFUL

        facts = self.extract_and_validate_meta(verified, transaction_id, tx_ref)

        if await self.idempotency_check(tx_ref):
            return WebhookOutcome.ALREADY_PROCESSED

        return await self.commit(facts)

    # ---------------------------------------------------------------------------------------------------------------------
    # gates, in pipeline order

    def authenticate_source(self, signature: Optional[str]) -> None:
        authenticate_webhook_source(self.settings, signature)

    def parse_payload(self, raw_body: bytes) -> FlutterwaveWebhookEvent:
        try:
            payload = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError):
            logger.warning("⚠️ Webhook body is not valid JSON")
            raise MalformedWebhookError("Invalid payload")

        if not isinstance(payload, dict):
            logger.warning("⚠️ Webhook body is not a JSON object")
            raise MalformedWebhookError("Invalid payload")

        try:
            return FlutterwaveWebhookEvent(**payload)
        except PydanticValidationError as e:
            logger.warning(f"⚠️ Webhook body does not match the event shape: {e.error_count()} error(s)")
            raise MalformedWebhookError("Invalid payload")

    def extract_keys(self, event: FlutterwaveWebhookEvent) -> Tuple[str, str]:
        data = event.data
        raw_id = data.id if data else None
        raw_tx_ref = data.tx_ref if data else None

        # only integer or string ids and string references are usable as keys
        transaction_id = str(raw_id).strip() if isinstance(raw_id, (int, str)) and not isinstance(raw_id, bool) else ""
        tx_ref = raw_tx_ref.strip() if isinstance(raw_tx_ref, str) else ""

        if not transaction_id or not tx_ref:
            # passed the signature check yet lacks its keys: worth a look, not worth a retry
            logger.error(f"🚨 Anomalous {event.event_type} webhook without transaction id or tx_ref (id={transaction_id!r}, tx_ref={tx_ref!r})")
            raise MalformedWebhookError("Missing transaction id or tx_ref")

        return transaction_id, tx_ref

    async def re_verify(self, transaction_id: str, tx_ref: str) -> VerifiedTransaction:
        try:
            verified = await self.verifier.verify_transaction(transaction_id)
        except ConfigurationError as e:
            raise WebhookConfigurationError(e.detail)

        # the idempotency key must belong to the transaction that was verified
        if verified.tx_ref and verified.tx_ref != tx_ref:
            logger.error(f"🚨 tx_ref mismatch for transaction {transaction_id}: webhook={tx_ref} verified={verified.tx_ref}")
            raise TransactionVerificationError("Transaction reference mismatch")

        return verified

    def check_business_status(self, verified: VerifiedTransaction, transaction_id: str, tx_ref: str) -> bool:
        if not verified.is_successful:
            logger.info(f"ℹ️ Transaction {transaction_id} ({tx_ref}) verified as '{verified.status}', nothing to apply")
            return False
        return True

    def extract_and_validate_meta(self, verified: VerifiedTransaction, transaction_id: str, tx_ref: str) -> SubscriptionCommit:
        """Build the commit from the verified transaction only; the webhook body's meta is never consulted"""
        meta = verified.meta
        values = {field: str(meta[field]).strip() if meta.get(field) is not None else "" for field in REQUIRED_META_FIELDS}
        missing = [field for field, value in values.items() if not value]

        if missing:
            logger.error(f"❌ Verified transaction {transaction_id} ({tx_ref}) is missing meta: {', '.join(missing)}")
            raise MalformedWebhookError(f"Missing meta: {', '.join(missing)}")

        if not verified.has_valid_amount:
            logger.error(f"❌ Verified transaction {transaction_id} ({tx_ref}) has an invalid amount: {verified.amount!r}")
            raise MalformedWebhookError("Invalid amount")

        return SubscriptionCommit(
            user_id=values["user_id"],
            plan_id=values["plan_id"],
            amount=verified.decimal_amount,
            reference=tx_ref,
            provider_tx_id=transaction_id,
            interval=values["interval"],
        )

    async def idempotency_check(self, tx_ref: str) -> bool:
        ledger = await self.billing_service.check_and_reserve(tx_ref)
        if ledger.already_processed:
            logger.info(f"🔁 Duplicate delivery for {tx_ref}, already processed")
        return ledger.already_processed

    async def commit(self, facts: SubscriptionCommit) -> WebhookOutcome:
        result = await self.billing_service.commit(facts)
        if result is CommitResult.ALREADY_PROCESSED:
            return WebhookOutcome.ALREADY_PROCESSED
        return WebhookOutcome.PROCESSED
