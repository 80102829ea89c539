"""Domain models for the subscription webhook flow."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WebhookEventType(str, Enum):
    """Webhook event types that provision or extend an account."""

    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_RENEWED = "subscription_renewed"


RECONCILED_EVENT_TYPES = frozenset(event_type.value for event_type in WebhookEventType)


class CustomerInfo(BaseModel):
    """Customer block of a provider webhook.

    Required fields are checked by the reconciler so that an event that is
    not applicable can still be acknowledged without them.
    """

    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    tax_id: Optional[str] = Field(default=None, alias="docNumber")

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @field_validator("email", "name", "phone", "tax_id", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value  # type: ignore[return-value]

    @property
    def has_required_fields(self) -> bool:
        return bool(self.email and self.email.strip() and self.name and self.name.strip())


class ProductRef(BaseModel):
    """Product label matched verbatim against the plan catalog."""

    name: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class WebhookData(BaseModel):
    customer: Optional[CustomerInfo] = None
    paid_at: Optional[datetime] = Field(default=None, alias="paidAt")
    product: Optional[ProductRef] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @field_validator("paid_at", mode="before")
    @classmethod
    def _blank_is_absent(cls, value: object) -> object:
        if value == "":
            return None
        return value


class WebhookEvent(BaseModel):
    """Inbound subscription lifecycle event, built once per request."""

    event: Optional[str] = None
    data: WebhookData

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class CredentialDeliveryPayload(BaseModel):
    """Initial login credentials handed to the notification channel."""

    email: str
    display_name: str
    password: str = Field(repr=False)
    must_change_password: bool = True
    login_url: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class OutcomeKind(str, Enum):
    """Terminal states of a single reconciliation."""

    CREATED = "created"
    UPDATED = "updated"
    NO_OP = "no_op"
    MALFORMED_PAYLOAD = "malformed_payload"
    MISSING_CUSTOMER_FIELDS = "missing_customer_fields"
    UNRECOGNIZED_PLAN = "unrecognized_plan"
    DIRECTORY_WRITE_FAILURE = "directory_write_failure"
    UNHANDLED_ERROR = "unhandled_error"


_STATUS_BY_KIND = {
    OutcomeKind.CREATED: 200,
    OutcomeKind.UPDATED: 200,
    OutcomeKind.NO_OP: 200,
    OutcomeKind.MALFORMED_PAYLOAD: 400,
    OutcomeKind.MISSING_CUSTOMER_FIELDS: 400,
    OutcomeKind.UNRECOGNIZED_PLAN: 400,
    OutcomeKind.DIRECTORY_WRITE_FAILURE: 500,
    OutcomeKind.UNHANDLED_ERROR: 500,
}


class ReconciliationOutcome(BaseModel):
    """Result of reconciling one webhook event."""

    accepted: bool
    kind: OutcomeKind
    message: str
    account_id: Optional[str] = None
    error: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND[self.kind]
