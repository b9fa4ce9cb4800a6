# /cod_relay/models/webhooks.py

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, Union

# Pydantic models for the MSG91 webhook bodies. Every field is optional:
# MSG91 must always get a 200 back, so missing fields are reported as
# "ignored" by the service instead of being rejected with a 422.


class _MSG91Event(BaseModel):
    request_id: Optional[str] = Field(None, alias="requestId")
    template_name: Optional[str] = Field(None, alias="templateName")

    class Config:
        populate_by_name = True
        extra = "ignore"
        coerce_numbers_to_str = True
        str_strip_whitespace = True


class DeliveryEvent(_MSG91Event):
    """Outbound report sent by MSG91 once a template message is delivered."""
    event_name: Optional[str] = Field(None, alias="eventName")
    # JSON-encoded string with the rendered template components
    content: Optional[Union[str, Dict[str, Any]]] = None


class ReplyEvent(_MSG91Event):
    """Inbound report sent by MSG91 when the customer taps a quick-reply button."""
    content_type: Optional[str] = Field(None, alias="contentType")
    # JSON-encoded string carrying the button `payload`
    button: Optional[Union[str, Dict[str, Any]]] = None
