"""
Domain models for OAuth credential persistence.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


class CredentialRecord(BaseModel):
    """Represents the Zoho credentials stored for one conversation."""

    conversation_id: str = Field(..., description="Chat conversation the tokens belong to.")
    external_user_id: str = Field(..., description="Zoho user that granted access.")
    access_token: str
    refresh_token: str
    expires_at: int = Field(..., ge=0, description="Expiry instant in epoch milliseconds.")
    created_at: datetime
    updated_at: datetime

    def is_expired(self, now_ms: Optional[int] = None) -> bool:
        """Return True once ``expires_at`` is not strictly in the future."""
        now_ms = _now_ms() if now_ms is None else now_ms
        return self.expires_at <= now_ms

    def seconds_remaining(self, now_ms: Optional[int] = None) -> float:
        now_ms = _now_ms() if now_ms is None else now_ms
        return (self.expires_at - now_ms) / 1000


__all__ = ["CredentialRecord"]
