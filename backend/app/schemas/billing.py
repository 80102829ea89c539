"""API schemas for the subscription webhook endpoint."""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..billing import ReconciliationOutcome


class WebhookResponse(BaseModel):
    success: bool
    message: str
    user_id: Optional[str] = Field(alias="userId", default=None)
    error: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_outcome(cls, outcome: ReconciliationOutcome) -> "WebhookResponse":
        return cls(
            success=outcome.accepted,
            message=outcome.message,
            user_id=outcome.account_id,
            error=outcome.error,
        )

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
