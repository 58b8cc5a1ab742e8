from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

class DrivePayload(BaseModel):
    """Body of POST /deliveries. Money is in integer cents."""

    external_delivery_id: str
    pickup_address: str = ""
    pickup_phone_number: Optional[str] = None
    pickup_business_name: Optional[str] = None
    pickup_instructions: Optional[str] = None
    pickup_reference_tag: Optional[str] = None
    dropoff_address: str = ""
    dropoff_phone_number: str = ""
    dropoff_contact_given_name: Optional[str] = None
    dropoff_contact_family_name: Optional[str] = None
    dropoff_instructions: Optional[str] = None
    order_value: Optional[int] = None
    tip: Optional[int] = None
    pickup_time: Optional[str] = None # ISO8601
    dropoff_time: Optional[str] = None # ISO8601

    def to_request_body(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)

class DeliveryResult(BaseModel):
    """A delivery as the partner reports it. status is opaque partner text."""

    partner_delivery_id: Optional[str] = None
    external_delivery_id: Optional[str] = None
    status: Optional[str] = None
    tracking_url: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)

class DeliveryStatusResponse(BaseModel):
    success: bool = True
    external_order_id: str
    partner_delivery_id: Optional[str] = None
    external_delivery_id: Optional[str] = None
    status: Optional[str] = None
    tracking_url: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)

class CancelRequest(BaseModel):
    reason: Optional[str] = None
