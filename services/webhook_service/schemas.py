from typing import Optional

from pydantic import BaseModel, Field

class DispatchOutcome(BaseModel):
    attempted: bool = False
    sent: bool = False
    partner_delivery_id: Optional[str] = None
    tracking_url: Optional[str] = None
    skipped_reason: Optional[str] = None # not_delivery | already_sent | not_configured
    error: Optional[str] = None

class WebhookResult(BaseModel):
    success: bool
    order_id: Optional[str] = None
    message: str
    is_new: bool = False
    storage_failed: bool = False
    dispatch: DispatchOutcome = Field(default_factory=DispatchOutcome)

    def to_ack(self) -> dict:
        """Body returned to the ordering platform."""
        return self.model_dump(mode="json", exclude={"storage_failed"})
