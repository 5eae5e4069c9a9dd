"""Churn risk classification from visit recency."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from django.contrib.auth import get_user_model
from django.db.models import F, Q
from django.utils import timezone

from users.models import UserRole

from .models import RiskLevel

AT_RISK_AFTER_DAYS = 5
HIGH_RISK_AFTER_DAYS = 10


class RiskBand:
    ACTIVE = "active"
    LOW_RISK = "low-risk"
    MEDIUM_RISK = "medium-risk"
    HIGH_RISK = "high-risk"
    NEVER_VISITED = "never-visited"


@dataclass(frozen=True)
class RiskAssessment:
    level: str
    band: str
    percentage: int
    days_since_visit: int | None = None

    @property
    def needs_outreach(self) -> bool:
        return self.band != RiskBand.ACTIVE


def classify(last_visit: datetime | None, now: datetime | None = None) -> RiskAssessment:
    """Map the last visit timestamp to a risk level, band and percentage.

    Days are whole days elapsed, and every threshold is a strict ``>``: ten
    days away is still medium risk, eleven is high.
    """
    if last_visit is None:
        return RiskAssessment(RiskLevel.HIGH, RiskBand.NEVER_VISITED, 95)

    now = now or timezone.now()
    days = (now - last_visit).days

    if days > HIGH_RISK_AFTER_DAYS:
        return RiskAssessment(RiskLevel.HIGH, RiskBand.HIGH_RISK, 89, days)
    if days > 7:
        return RiskAssessment(RiskLevel.MEDIUM, RiskBand.MEDIUM_RISK, 76, days)
    if days > 5:
        return RiskAssessment(RiskLevel.LOW, RiskBand.LOW_RISK, 65, days)
    return RiskAssessment(RiskLevel.LOW, RiskBand.ACTIVE, 65, days)


def at_risk_members(now: datetime | None = None):
    now = now or timezone.now()
    cutoff = now - timedelta(days=AT_RISK_AFTER_DAYS)
    return (
        get_user_model()
        .objects.filter(role=UserRole.MEMBER)
        .filter(Q(last_visit__lt=cutoff) | Q(last_visit__isnull=True))
        .order_by(F("last_visit").desc(nulls_last=True), "id")
    )


def high_risk_members(now: datetime | None = None):
    """Members ``classify`` puts at high risk, selected in the database."""
    now = now or timezone.now()
    # More than ten whole days away means at least eleven full days.
    cutoff = now - timedelta(days=HIGH_RISK_AFTER_DAYS + 1)
    return (
        get_user_model()
        .objects.filter(role=UserRole.MEMBER)
        .filter(Q(last_visit__lte=cutoff) | Q(last_visit__isnull=True))
    )
