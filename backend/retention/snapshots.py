from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict


class MemberProfileSnapshot(BaseModel):
    """Member data frozen at the moment a churn email was generated."""

    model_config = ConfigDict(frozen=True)

    version: Literal[1] = 1
    first_name: str
    last_name: str
    email: str
    membership_type: str | None = None
    join_date: datetime | None = None
    last_visit: datetime | None = None
    loyalty_points: int = 0

    @classmethod
    def from_member(cls, member) -> "MemberProfileSnapshot":
        return cls(
            first_name=member.first_name,
            last_name=member.last_name,
            email=member.email,
            membership_type=member.membership_type,
            join_date=member.join_date,
            last_visit=member.last_visit,
            loyalty_points=member.loyalty_points,
        )

    def to_payload(self) -> dict:
        return self.model_dump(mode="json")
