"""Usage gate data models."""
from typing import Optional

from pydantic import BaseModel, Field


class UsageRecord(BaseModel):
    """Persisted usage state for one client.

    Stored under the keys `lastUsageDate` (ISO date) and `usageCount`
    (integer as string).
    """

    last_usage_date: Optional[str] = None
    usage_count: int = Field(default=0, ge=0)

    def to_storage(self) -> dict[str, str]:
        stored = {"usageCount": str(self.usage_count)}
        if self.last_usage_date is not None:
            stored["lastUsageDate"] = self.last_usage_date
        return stored

    @classmethod
    def from_storage(cls, stored: Optional[dict]) -> "UsageRecord":
        """Parse stored key/value entries; unreadable counts reset to zero."""
        if not stored:
            return cls()
        try:
            count = max(int(stored.get("usageCount", 0)), 0)
        except (TypeError, ValueError):
            count = 0
        return cls(last_usage_date=stored.get("lastUsageDate"), usage_count=count)


class UsageStatus(BaseModel):
    """Current daily usage reported to the caller."""

    date: str
    count: int
    limit: int
    remaining: int
    allowed: bool
