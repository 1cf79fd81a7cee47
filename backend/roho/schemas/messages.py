"""
Conversation account and WhatsApp message schemas
"""
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from roho.schemas.delivery import FirestoreRecord

Role = Literal["buyer", "seller", "rider"]


class UserProfile(BaseModel):
    name: Optional[str] = None
    business_name: Optional[str] = None


class UserAccount(FirestoreRecord):
    """Per-user conversation state, keyed by the sender's WhatsApp address"""
    user_id: str
    role: Optional[Role] = None
    step: str
    data: Dict[str, Any] = Field(default_factory=dict)
    profile: UserProfile = Field(default_factory=UserProfile)
    created_at: datetime
    last_interaction: datetime


class InboundMessage(BaseModel):
    """Normalized inbound WhatsApp message"""
    sender: str
    text: str = ""
    message_id: Optional[str] = None


class OutboundMessage(BaseModel):
    """Reply payload handed to the outbound sender"""
    type: Literal["text", "template"] = "text"
    text: Optional[str] = None
    template_id: Optional[str] = None
    variables: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_payload(self):
        if self.type == "text" and self.text is None:
            raise ValueError("text messages need a text body")
        if self.type == "template" and not self.template_id:
            raise ValueError("template messages need a template_id")
        return self
