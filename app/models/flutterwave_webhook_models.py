from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Dict, Any, Union
from decimal import Decimal, InvalidOperation
from enum import Enum


CHARGE_COMPLETED_EVENT = "charge.completed"
SUCCESSFUL_STATUS = "successful"


class WebhookOutcome(str, Enum):
    """Non-error terminal states of the webhook pipeline, all answered with 200"""

    PROCESSED = "OK"
    IGNORED = "Ignored"
    NOT_SUCCESSFUL = "Not successful"
    ALREADY_PROCESSED = "Already processed"


class FlutterwaveWebhookData(BaseModel):
    """The "data" object of a webhook body. Untrusted: only id and tx_ref are ever read from it"""

    # the rest (status, amount, meta, ...) is kept as sent and never validated
    model_config = ConfigDict(extra="allow")

    id: Any = None
    tx_ref: Any = None


class FlutterwaveWebhookEvent(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    event_type: str = Field(alias="event")
    data: Optional[FlutterwaveWebhookData] = None


def _to_decimal(value: Any) -> Optional[Decimal]:
    # bool is an int subclass, never an amount
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


class VerifiedTransaction(BaseModel):
    """Transaction as reported by the provider's verify endpoint, the only trusted source"""

    model_config = ConfigDict(extra="ignore")

    id: Optional[Union[int, str]] = None
    tx_ref: Optional[str] = None
    status: str
    amount: Optional[Any] = None
    currency: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("meta", mode="before")
    @classmethod
    def normalize_meta(cls, value):
        # v3 may send meta as [{"metaname": ..., "metavalue": ...}]
        if value is None:
            return {}
        if isinstance(value, list):
            return {
                item["metaname"]: item.get("metavalue")
                for item in value
                if isinstance(item, dict) and isinstance(item.get("metaname"), str) and item["metaname"]
            }
        return value

    @property
    def decimal_amount(self) -> Optional[Decimal]:
        return _to_decimal(self.amount)

    @property
    def is_successful(self) -> bool:
        return self.status == SUCCESSFUL_STATUS

    @property
    def has_valid_amount(self) -> bool:
        amount = self.decimal_amount
        return amount is not None and amount > 0


class SubscriptionCommit(BaseModel):
    """Verified facts applied by handle_successful_payment as one unit of work"""

    model_config = ConfigDict(frozen=True)

    user_id: str
    plan_id: str
    amount: Decimal
    reference: str
    provider_tx_id: str
    interval: str

    def to_rpc_params(self) -> Dict[str, Any]:
        return {
            "p_user_id": self.user_id,
            "p_plan_id": self.plan_id,
            "p_amount": float(self.amount),
            "p_reference": self.reference,
            "p_tx_id": self.provider_tx_id,
            "p_interval": self.interval,
        }


class LedgerCheck(BaseModel):
    already_processed: bool


class CommitResult(str, Enum):
    COMMITTED = "committed"
    ALREADY_PROCESSED = "already_processed"
