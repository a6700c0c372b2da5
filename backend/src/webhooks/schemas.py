"""Pydantic schemas for the inbound webhook endpoint"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class WebhookPayload(BaseModel):
    """Envelope posted by the marketplace integration.

    webhookData is Base64 ciphertext; its HMAC signature travels in the
    X-Signature header.
    """

    model_config = ConfigDict(populate_by_name=True)

    guid: str = Field(default="", max_length=64, description="Correlation identifier")
    webhook_type: str = Field(default="", alias="webhookType", description="Declared webhook type")
    webhook_data: str = Field(default="", alias="webhookData", description="Encrypted payload")


class WebhookAcceptedResponse(BaseModel):
    """Work items created for one webhook."""

    correlation_id: str
    document_kind: str
    strategy: str
    work_item_ids: List[int]
    change_type: Optional[str] = None
