from datetime import timedelta

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone
from loguru import logger

from assistant.generation import get_generator
from mailer.services import DeliveryResult, send_tracked_email
from users.models import UserRole
from users.services import make_notification

from .models import ChurnEmail, ChurnEmailStatus, InvalidTransition, OutreachAction
from .risk import at_risk_members, classify, high_risk_members
from .snapshots import MemberProfileSnapshot

DUPLICATE_WINDOW_DAYS = 7
MAX_RISK_ALERTS = 3


def previous_risk_band(member) -> str | None:
    latest = ChurnEmail.objects.filter(member=member).order_by("-created_at").first()
    return latest.current_risk_band if latest else None


def generate_for_member(member, now=None) -> ChurnEmail | None:
    """Create a pending churn email for ``member`` when one is warranted.

    Returns ``None`` for active members and when an email for the same band
    was already created within the duplicate window.
    """
    now = now or timezone.now()
    assessment = classify(member.last_visit, now)
    if not assessment.needs_outreach:
        return None

    recent_duplicate = ChurnEmail.objects.filter(
        member=member,
        current_risk_band=assessment.band,
        created_at__gte=now - timedelta(days=DUPLICATE_WINDOW_DAYS),
    ).exists()
    if recent_duplicate:
        logger.info("Churn email for member {} in band {} already exists", member.pk, assessment.band)
        return None

    previous_band = previous_risk_band(member)
    snapshot = MemberProfileSnapshot.from_member(member)
    generated = get_generator().churn_email(snapshot, assessment.level, assessment.band, previous_band)

    email = ChurnEmail.objects.create(
        member=member,
        subject=generated.subject,
        content=generated.content,
        risk_level=assessment.level,
        current_risk_band=assessment.band,
        previous_risk_band=previous_band,
        member_profile=snapshot.to_payload(),
    )
    logger.info(
        "Generated churn email {} for member {} ({} -> {})",
        email.pk,
        member.pk,
        previous_band,
        assessment.band,
    )
    return email


def _locked(email: ChurnEmail) -> ChurnEmail:
    return ChurnEmail.objects.select_for_update().get(pk=email.pk)


@transaction.atomic
def approve_email(email: ChurnEmail, staff) -> ChurnEmail:
    email = _locked(email)
    email.approve(staff)
    email.save(update_fields=["status", "approved_by", "approved_at", "updated_at"])
    logger.info("Churn email {} approved by staff {}", email.pk, staff.pk)
    return email


@transaction.atomic
def reject_email(email: ChurnEmail, staff) -> ChurnEmail:
    email = _locked(email)
    email.reject(staff)
    email.save(update_fields=["status", "approved_by", "approved_at", "updated_at"])
    logger.info("Churn email {} rejected by staff {}", email.pk, staff.pk)
    return email


def send_email(email: ChurnEmail) -> tuple[ChurnEmail, DeliveryResult]:
    """Deliver an approved email, then mark it sent.

    The row lock is held only around the status checks, never across the
    provider call. A failed delivery leaves the email approved so it can be
    retried.
    """
    with transaction.atomic():
        email = _locked(email)
        if not email.can_transition_to(ChurnEmailStatus.SENT):
            raise InvalidTransition(f"Cannot send a churn email that is {email.status}")

    member = email.member
    result = send_tracked_email(
        to_email=member.email,
        subject=email.subject,
        content=email.content,
        to_name=member.full_name,
        churn_email_id=email.pk,
    )
    if not result.success:
        return email, result

    with transaction.atomic():
        email = _locked(email)
        if not email.can_transition_to(ChurnEmailStatus.SENT):
            logger.warning(
                "Churn email {} became {} while delivery {} was in flight",
                email.pk,
                email.status,
                result.tracking_id,
            )
            raise InvalidTransition(f"Cannot send a churn email that is {email.status}")
        email.mark_sent(result.tracking_id)
        email.save(update_fields=["status", "sent_at", "tracking_id", "updated_at"])
    logger.info("Churn email {} sent to member {}", email.pk, member.pk)
    return email, result


def record_outreach(member, staff, action_type: str, notes: str = "") -> OutreachAction:
    action = OutreachAction.objects.create(
        member=member,
        staff=staff,
        action_type=action_type,
        notes=notes,
    )
    logger.info("Staff {} logged {} outreach for member {}", staff.pk, action_type, member.pk)
    return action


def staff_metrics(now=None) -> dict:
    now = now or timezone.now()
    members = get_user_model().objects.filter(role=UserRole.MEMBER)
    total = members.count()
    at_risk = at_risk_members(now).count()
    high_risk = high_risk_members(now).count()
    today = timezone.localdate(now)
    return {
        "total_members": total,
        "at_risk_members": at_risk,
        "churn_rate": f"{(high_risk / total * 100) if total else 0:.1f}%",
        "outreach_today": OutreachAction.objects.filter(created_at__date=today).count(),
        "pending_approvals": ChurnEmail.objects.filter(status=ChurnEmailStatus.PENDING).count(),
    }


def build_staff_notifications(now=None) -> list[dict]:
    """At-risk alerts for the most critical members plus the approval queue, newest first."""
    now = now or timezone.now()
    notifications = []

    for index, member in enumerate(at_risk_members(now)[:MAX_RISK_ALERTS]):
        notifications.append(
            make_notification(
                f"risk-{member.id}",
                "alert",
                "Member At Risk",
                f"{member.full_name} hasn't visited recently. Consider outreach.",
                now - timedelta(hours=index + 1),
                urgent=index == 0,
                member_id=member.id,
            )
        )

    pending = ChurnEmail.objects.filter(status=ChurnEmailStatus.PENDING)
    pending_count = pending.count()
    if pending_count:
        newest = pending.order_by("-created_at").values_list("created_at", flat=True).first()
        notifications.append(
            make_notification(
                "churn-approvals",
                "approval",
                "Churn Emails Awaiting Approval",
                f"{pending_count} churn email{'s' if pending_count != 1 else ''} waiting for review.",
                newest,
                urgent=pending_count >= 5,
            )
        )

    notifications.sort(key=lambda item: item["timestamp"], reverse=True)
    return notifications
