from django.conf import settings
from django.template.loader import render_to_string
from django.utils.http import urlencode

VIRTUAL_TOUR_LINK = "[VIRTUAL_TOUR_LINK]"
PROSPECT_NAME = "[PROSPECT_NAME]"
UNSUBSCRIBE_LINK = "[UNSUBSCRIBE_LINK]"
HOME_PAGE_LINK = "[HOME_PAGE_LINK]"


def tracking_url(tracking_id: str) -> str:
    return f"{settings.PUBLIC_BASE_URL}/api/track/{tracking_id}"


def home_page_url(tracking_id: str) -> str:
    return f"{settings.PUBLIC_BASE_URL}/?track={tracking_id}"


def unsubscribe_url(email: str) -> str:
    return f"{settings.PUBLIC_BASE_URL}/unsubscribe?{urlencode({'email': email})}"


def apply_placeholders(content: str, *, tracking_id: str, to_email: str, to_name: str) -> str:
    """Swap placeholder tokens for concrete links and names.

    The tracked home page link is appended when the content does not already
    contain it.
    """
    home = home_page_url(tracking_id)
    replacements = {
        VIRTUAL_TOUR_LINK: tracking_url(tracking_id),
        PROSPECT_NAME: to_name or "there",
        UNSUBSCRIBE_LINK: unsubscribe_url(to_email),
        HOME_PAGE_LINK: home,
    }
    for token, value in replacements.items():
        content = content.replace(token, value)

    if home not in content:
        content = f"{content.rstrip()}\n\nVisit us: {home}"
    return content


def render_html(subject: str, body: str, to_email: str) -> str:
    return render_to_string(
        "mailer/email.html",
        {
            "subject": subject,
            "body": body,
            "brand": settings.EMAIL_FROM_NAME,
            "unsubscribe_url": unsubscribe_url(to_email),
        },
    )
