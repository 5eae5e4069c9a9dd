"""Engagement log for outreach emails.

Rows are only ever inserted. A click or tour view is recorded only when an
``email_sent`` row with the same tracking id exists, and inherits the
prospect identity and send metadata from it.
"""

from django.db import DatabaseError, transaction
from django.db.models import Count, Max
from loguru import logger

from .models import EmailInteraction, InteractionType
from .schemas import InteractionMetadata


def log_email_sent(
    *,
    to_email: str,
    to_name: str,
    subject: str,
    tracking_id: str,
    metadata: InteractionMetadata,
) -> EmailInteraction | None:
    """Record a delivery. Storage failures are logged and never fail the send."""
    try:
        with transaction.atomic():
            return EmailInteraction.objects.create(
                prospect_email=to_email,
                prospect_name=to_name,
                interaction_type=InteractionType.EMAIL_SENT,
                email_subject=subject,
                tracking_id=tracking_id,
                metadata=metadata.to_payload(),
            )
    except DatabaseError:
        logger.opt(exception=True).warning("Could not record email_sent for {}", tracking_id)
        return None


def interaction_by_tracking_id(tracking_id: str) -> EmailInteraction | None:
    return (
        EmailInteraction.objects.filter(
            tracking_id=tracking_id,
            interaction_type=InteractionType.EMAIL_SENT,
        )
        .order_by("created_at")
        .first()
    )


def _log_follow_up(
    tracking_id: str,
    interaction_type: str,
    request_metadata: InteractionMetadata,
) -> EmailInteraction | None:
    sent = interaction_by_tracking_id(tracking_id)
    if sent is None:
        logger.info("No email_sent row for tracking id {}; {} not recorded", tracking_id, interaction_type)
        return None

    metadata = InteractionMetadata.model_validate(sent.metadata).merged_with(request_metadata)
    with transaction.atomic():
        return EmailInteraction.objects.create(
            prospect_email=sent.prospect_email,
            prospect_name=sent.prospect_name,
            interaction_type=interaction_type,
            email_subject=sent.email_subject,
            tracking_id=tracking_id,
            metadata=metadata.to_payload(),
        )


def log_link_clicked(tracking_id: str, request_metadata: InteractionMetadata) -> EmailInteraction | None:
    return _log_follow_up(tracking_id, InteractionType.LINK_CLICKED, request_metadata)


def log_tour_viewed(tracking_id: str, request_metadata: InteractionMetadata) -> EmailInteraction | None:
    return _log_follow_up(tracking_id, InteractionType.TOUR_VIEWED, request_metadata)


def interactions_for_prospect(email: str):
    return EmailInteraction.objects.filter(prospect_email__iexact=email)


def engagement_summary(email: str) -> dict:
    interactions = interactions_for_prospect(email)
    counts = dict(
        interactions.values_list("interaction_type").annotate(total=Count("id")).order_by()
    )
    last_at = interactions.aggregate(last=Max("created_at"))["last"]
    return {
        "email": email,
        "emails_sent": counts.get(InteractionType.EMAIL_SENT, 0),
        "links_clicked": counts.get(InteractionType.LINK_CLICKED, 0),
        "tours_viewed": counts.get(InteractionType.TOUR_VIEWED, 0),
        "total_interactions": sum(counts.values()),
        "last_interaction_at": last_at,
    }
