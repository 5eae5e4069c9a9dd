import uuid
from dataclasses import asdict, dataclass

from loguru import logger

from .providers import OutgoingEmail, get_email_provider
from .rendering import apply_placeholders, render_html
from .schemas import InteractionMetadata
from .tracking import log_email_sent


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    provider: str
    message_id: str | None = None
    tracking_id: str | None = None
    error: str | None = None

    def as_dict(self) -> dict:
        return asdict(self)


def send_tracked_email(
    to_email: str,
    subject: str,
    content: str,
    to_name: str = "",
    churn_email_id: int | None = None,
) -> DeliveryResult:
    """Deliver ``content`` with tracked links and log the send on success."""
    provider = get_email_provider()
    tracking_id = uuid.uuid4().hex

    text = apply_placeholders(content, tracking_id=tracking_id, to_email=to_email, to_name=to_name)
    html = render_html(subject, text, to_email)
    response = provider.send(
        OutgoingEmail(to_email=to_email, to_name=to_name, subject=subject, html=html, text=text)
    )

    if not response.success:
        logger.warning("Delivery to {} via {} failed: {}", to_email, provider.name, response.error)
        return DeliveryResult(success=False, provider=provider.name, error=response.error)

    log_email_sent(
        to_email=to_email,
        to_name=to_name,
        subject=subject,
        tracking_id=tracking_id,
        metadata=InteractionMetadata(
            provider=provider.name,
            message_id=response.message_id,
            churn_email_id=churn_email_id,
        ),
    )
    logger.info("Email to {} sent via {} with tracking id {}", to_email, provider.name, tracking_id)
    return DeliveryResult(
        success=True,
        provider=provider.name,
        message_id=response.message_id,
        tracking_id=tracking_id,
    )
