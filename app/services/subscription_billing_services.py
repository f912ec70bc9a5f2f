from supabase import AsyncClient, PostgrestAPIError
from app.models.flutterwave_webhook_models import SubscriptionCommit, LedgerCheck, CommitResult
from app.custom_error import WebhookStorageError
from app.utils.error_classifier import is_unique_violation
import logging

logger = logging.getLogger(__name__)

PAYMENT_LEDGER_TABLE = "payment_transactions"
COMMIT_PAYMENT_RPC = "handle_successful_payment"


class SubscriptionBillingService:
    """
    Idempotency ledger + subscription committer, both on the privileged Supabase client.

    handle_successful_payment inserts the payment_transactions row and advances the subscription in one database
    transaction, and payment_transactions.reference carries a unique constraint. So "a ledger row exists for tx_ref"
    and "the subscription was advanced for tx_ref" are the same fact, and two racing deliveries can never both commit.
    """

    def __init__(self, supabase_admin_client: AsyncClient):
        self.supabase_client = supabase_admin_client

    async def check_and_reserve(self, tx_ref: str) -> LedgerCheck:
        """Look up tx_ref in the ledger"""
        try:
            result = await self.supabase_client.table(PAYMENT_LEDGER_TABLE).select("id").eq("reference", tx_ref).limit(1).execute()
        except Exception as e:
            logger.error(f"❌ Ledger lookup failed for {tx_ref}: {type(e).__name__}: {str(e)}")
            raise WebhookStorageError("Ledger lookup failed")

        return LedgerCheck(already_processed=bool(result.data))

    # ---------------------------------------------------------------------------------------------------------------------

    async def commit(self, facts: SubscriptionCommit) -> CommitResult:
        """Record the payment and advance the subscription as a single unit of work"""
        try:
            await self.supabase_client.rpc(COMMIT_PAYMENT_RPC, facts.to_rpc_params()).execute()
        except PostgrestAPIError as e:
            if is_unique_violation(e):
                # a concurrent delivery of the same tx_ref committed first
                logger.info(f"🔁 Commit for {facts.reference} lost the race to a concurrent delivery")
                return CommitResult.ALREADY_PROCESSED
            logger.error(f"❌ Commit failed for {facts.reference}: code={e.code} message={e.message}")
            raise WebhookStorageError("DB Error")
        except Exception as e:
            logger.error(f"❌ Commit failed for {facts.reference}: {type(e).__name__}: {str(e)}")
            raise WebhookStorageError("DB Error")

        logger.info(f"✅ Payment {facts.reference} committed for user {facts.user_id} on plan {facts.plan_id} ({facts.interval})")
        return CommitResult.COMMITTED
