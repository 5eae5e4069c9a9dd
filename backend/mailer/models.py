from django.db import models


class InteractionType(models.TextChoices):
    EMAIL_SENT = "email_sent", "Email sent"
    LINK_CLICKED = "link_clicked", "Link clicked"
    TOUR_VIEWED = "tour_viewed", "Tour viewed"


class EmailInteraction(models.Model):
    """Append-only log of one outreach event, correlated by ``tracking_id``."""

    prospect_email = models.EmailField()
    prospect_name = models.CharField(max_length=255, blank=True)
    interaction_type = models.CharField(max_length=20, choices=InteractionType.choices)
    email_subject = models.CharField(max_length=255, blank=True)
    tracking_id = models.CharField(max_length=64, db_index=True)
    metadata = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["prospect_email", "-created_at"], name="interaction_prospect_idx")]

    def __str__(self) -> str:
        return f"{self.interaction_type} {self.tracking_id}"
