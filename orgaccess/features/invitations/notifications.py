"""
Invitation delivery.

The engine hands an InvitationEmail to a NotificationSender; delivery itself
(email, SMS, ...) belongs to the embedding application. Whatever a sender
raises reaches the caller of create_invitation as NotificationError.
"""
import inspect
from typing import Any, Callable, Protocol
from pydantic import BaseModel

from orgaccess.utils import get_logger


log = get_logger(__name__)


class InvitationEmail(BaseModel):
    """Everything a sender needs to deliver one invitation."""
    invitation_id: str
    email: str
    role: str
    organization_id: str
    organization_name: str
    organization_slug: str
    inviter_id: str
    inviter_name: str
    inviter_email: str
    accept_link: str
    resend: bool = False


class NotificationSender(Protocol):
    async def send_invitation_email(self, data: InvitationEmail) -> None:
        ...


class LoggingNotificationSender:
    """Default sender: records the delivery in the log only."""

    async def send_invitation_email(self, data: InvitationEmail) -> None:
        log.info(
            "Invitation %s for %s to %s (%s): %s",
            data.invitation_id,
            data.email,
            data.organization_name,
            "resend" if data.resend else "new",
            data.accept_link,
        )


class CallbackNotificationSender:
    """
    Adapts a plain (sync or async) callable taking an InvitationEmail.

    Usage:
        sender = CallbackNotificationSender(lambda data: mailer.send(data.email, data.accept_link))
    """

    def __init__(self, callback: Callable[[InvitationEmail], Any]):
        self.callback = callback

    async def send_invitation_email(self, data: InvitationEmail) -> None:
        result = self.callback(data)
        if inspect.isawaitable(result):
            await result
