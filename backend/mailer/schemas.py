from datetime import datetime
from typing import Literal

from django.utils import timezone
from pydantic import BaseModel, ConfigDict, Field


class InteractionMetadata(BaseModel):
    """Structured payload stored on every ``EmailInteraction`` row."""

    model_config = ConfigDict(extra="ignore")

    version: Literal[1] = 1
    user_agent: str | None = None
    ip: str | None = None
    provider: str | None = None
    message_id: str | None = None
    churn_email_id: int | None = None
    timestamp: datetime = Field(default_factory=timezone.now)

    def merged_with(self, other: "InteractionMetadata") -> "InteractionMetadata":
        """Fields set on ``other`` win; everything else is kept."""
        return self.model_copy(update=other.model_dump(exclude_unset=True, exclude={"version"}))

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


def metadata_from_request(request) -> InteractionMetadata:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    ip = forwarded.split(",")[0].strip() if forwarded else request.META.get("REMOTE_ADDR")
    fields = {"timestamp": timezone.now()}
    # Absent values stay unset so a merge keeps what the send recorded.
    user_agent = request.META.get("HTTP_USER_AGENT")
    if user_agent:
        fields["user_agent"] = user_agent
    if ip:
        fields["ip"] = ip
    return InteractionMetadata(**fields)
