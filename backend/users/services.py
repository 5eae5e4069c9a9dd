from datetime import timedelta

from django.utils import timezone

from .models import MembershipType, User

MAX_MEMBER_NOTIFICATIONS = 5


def make_notification(id, type, title, message, timestamp, read=False, **extra):
    return {
        "id": id,
        "type": type,
        "title": title,
        "message": message,
        "timestamp": timestamp,
        "read": read,
        **extra,
    }


def build_member_notifications(user: User, now=None) -> list[dict]:
    """Personalised feed for the member portal, newest first."""
    now = now or timezone.now()
    notifications = []

    points = user.loyalty_points or 0
    if points >= 500:
        notifications.append(
            make_notification(
                f"loyalty-milestone-{user.id}",
                "milestone",
                "VIP Status Achieved!",
                f"Congratulations! You've earned {points} loyalty points and achieved VIP status.",
                now - timedelta(hours=2),
            )
        )
    elif points >= 250:
        notifications.append(
            make_notification(
                f"loyalty-progress-{user.id}",
                "achievement",
                "Points Milestone!",
                f"Amazing progress! You've earned {points} loyalty points.",
                now - timedelta(hours=6),
            )
        )
    elif points >= 100:
        notifications.append(
            make_notification(
                f"loyalty-reward-{user.id}",
                "reward",
                "Points Earned!",
                f"You've earned {points} loyalty points! Redeem them in the members area.",
                now - timedelta(days=1),
                read=True,
            )
        )

    if user.membership_type == MembershipType.PREMIUM:
        notifications.append(
            make_notification(
                f"premium-perk-{user.id}",
                "reward",
                "Premium Member Perks!",
                "As a Premium member you have access to exclusive classes and 24/7 gym access.",
                now - timedelta(days=3),
                read=True,
            )
        )
    elif user.membership_type == MembershipType.STUDENT:
        notifications.append(
            make_notification(
                f"student-discount-{user.id}",
                "reward",
                "Student Discount Applied!",
                "Your student membership is active with special pricing.",
                now - timedelta(days=5),
                read=True,
            )
        )

    if user.last_visit is None:
        notifications.append(
            make_notification(
                f"welcome-{user.id}",
                "milestone",
                "Welcome to ClubPulse!",
                "Book your first session and get started with a personalised workout plan.",
                now - timedelta(minutes=30),
            )
        )
    else:
        days_since_visit = (now - user.last_visit).days
        if days_since_visit >= 7:
            notifications.append(
                make_notification(
                    f"comeback-{user.id}",
                    "alert",
                    "We miss you!",
                    f"It's been {days_since_visit} days since your last visit. Come back and keep going!",
                    now - timedelta(hours=12),
                )
            )
        elif days_since_visit <= 1:
            notifications.append(
                make_notification(
                    f"streak-{user.id}",
                    "achievement",
                    "Great Consistency!",
                    "You're maintaining an excellent workout routine. Keep it up!",
                    now - timedelta(hours=4),
                )
            )

    notifications.append(
        make_notification(
            f"weekly-challenge-{user.id}",
            "milestone",
            "Weekly Challenge Available!",
            "Complete this week's fitness challenge to earn bonus loyalty points.",
            now - timedelta(hours=18),
        )
    )

    notifications.sort(key=lambda item: item["timestamp"], reverse=True)
    return notifications[:MAX_MEMBER_NOTIFICATIONS]
