# /cod_relay/models/api.py

from dataclasses import dataclass, field
from typing import Any, Dict

# Result of handling one MSG91 webhook, turned into a JSONResponse by the routes.

SERVER_ERROR_BODY = {"error": "Server error"}


@dataclass(frozen=True)
class WebhookOutcome:
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, **fields: Any) -> "WebhookOutcome":
        return cls(200, {"success": True, **fields})

    @classmethod
    def ignored(cls, reason: str, **details: Any) -> "WebhookOutcome":
        return cls(200, {"ignored": reason, **details})

    @classmethod
    def server_error(cls) -> "WebhookOutcome":
        return cls(500, dict(SERVER_ERROR_BODY))

    @property
    def outcome(self) -> str:
        if self.status_code >= 500:
            return "error"
        return "ignored" if "ignored" in self.body else "success"
