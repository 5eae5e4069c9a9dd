from django.conf import settings
from django.db import models
from django.utils import timezone

from common.exceptions import Conflict
from common.models import TimeStampedModel


class RiskLevel(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"


class ChurnEmailStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    SENT = "sent", "Sent"


TRANSITIONS = {
    ChurnEmailStatus.PENDING: {ChurnEmailStatus.APPROVED, ChurnEmailStatus.REJECTED},
    ChurnEmailStatus.APPROVED: {ChurnEmailStatus.SENT},
    ChurnEmailStatus.REJECTED: set(),
    ChurnEmailStatus.SENT: set(),
}


class InvalidTransition(Conflict):
    default_detail = "Churn email cannot move to that status."
    default_code = "invalid_transition"


class ChurnEmail(TimeStampedModel):
    member = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="churn_emails",
    )
    staff = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_churn_emails",
    )
    subject = models.CharField(max_length=255)
    content = models.TextField()
    risk_level = models.CharField(max_length=10, choices=RiskLevel.choices)
    current_risk_band = models.CharField(max_length=20)
    previous_risk_band = models.CharField(max_length=20, blank=True, null=True)
    member_profile = models.JSONField(default=dict)
    status = models.CharField(
        max_length=10,
        choices=ChurnEmailStatus.choices,
        default=ChurnEmailStatus.PENDING,
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviewed_churn_emails",
    )
    approved_at = models.DateTimeField(blank=True, null=True)
    sent_at = models.DateTimeField(blank=True, null=True)
    tracking_id = models.CharField(max_length=64, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["status", "-created_at"], name="churn_email_status_idx")]

    def __str__(self) -> str:
        return f"{self.subject} ({self.status})"

    def can_transition_to(self, target: str) -> bool:
        return target in TRANSITIONS.get(ChurnEmailStatus(self.status), set())

    def transition_to(self, target: str) -> None:
        if not self.can_transition_to(target):
            raise InvalidTransition(f"Cannot move churn email from {self.status} to {target}")
        self.status = target

    def approve(self, staff) -> None:
        self.transition_to(ChurnEmailStatus.APPROVED)
        self.approved_by = staff
        self.approved_at = timezone.now()

    def reject(self, staff) -> None:
        self.transition_to(ChurnEmailStatus.REJECTED)
        self.approved_by = staff
        self.approved_at = timezone.now()

    def mark_sent(self, tracking_id: str = "") -> None:
        self.transition_to(ChurnEmailStatus.SENT)
        self.sent_at = timezone.now()
        self.tracking_id = tracking_id


class OutreachActionType(models.TextChoices):
    CALL = "call", "Call"
    EMAIL = "email", "Email"
    IN_PERSON = "in-person", "In person"
    OFFER = "offer", "Offer"


class OutreachAction(models.Model):
    member = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="outreach_actions",
    )
    staff = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="performed_outreach",
    )
    action_type = models.CharField(max_length=20, choices=OutreachActionType.choices)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.action_type} for {self.member_id}"
