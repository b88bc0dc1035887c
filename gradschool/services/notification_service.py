from __future__ import annotations

from dataclasses import dataclass
import logging

import httpx
from sqlalchemy.orm import Session

from gradschool.config import settings
from gradschool.domain.defense_workflow import NotifyEffect, Recipient
from gradschool.models import AaPaymentVerification, DefenseRequest, Panelist, User, UserRole


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationRecipient:
    role: str
    name: str
    email: str = ''
    user_id: int | None = None


class NotificationDispatcher:
    def dispatch(self, event_type: str, defense_request: DefenseRequest, recipient: NotificationRecipient) -> None:
        raise NotImplementedError


class LogNotificationDispatcher(NotificationDispatcher):
    def dispatch(self, event_type: str, defense_request: DefenseRequest, recipient: NotificationRecipient) -> None:
        logger.info(
            'defense_notification event=%s defense_request_id=%s recipient_role=%s recipient=%s',
            event_type,
            defense_request.id,
            recipient.role,
            recipient.email or recipient.name,
        )


class WebhookNotificationDispatcher(NotificationDispatcher):
    """Hands events to the outbound mail service over HTTP."""

    def __init__(self, url: str, *, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout

    def dispatch(self, event_type: str, defense_request: DefenseRequest, recipient: NotificationRecipient) -> None:
        payload = {
            'event_type': event_type,
            'defense_request': {
                'id': defense_request.id,
                'student_name': defense_request.student_name,
                'school_id': defense_request.school_id,
                'program': defense_request.program,
                'defense_type': defense_request.defense_type,
                'workflow_state': defense_request.workflow_state,
                'scheduled_date': str(defense_request.scheduled_date or ''),
                'scheduled_time': defense_request.scheduled_time,
            },
            'recipient': {
                'role': recipient.role,
                'name': recipient.name,
                'email': recipient.email,
                'user_id': recipient.user_id,
            },
        }
        response = httpx.post(self.url, json=payload, timeout=self.timeout)
        response.raise_for_status()


def _default_dispatcher() -> NotificationDispatcher:
    mode = (settings.notification_mode or 'log').strip().lower()
    if mode == 'webhook' and settings.notification_webhook_url:
        return WebhookNotificationDispatcher(
            settings.notification_webhook_url,
            timeout=float(settings.notification_timeout_seconds),
        )
    return LogNotificationDispatcher()


_dispatcher: NotificationDispatcher = _default_dispatcher()


def set_notification_dispatcher(dispatcher: NotificationDispatcher) -> NotificationDispatcher:
    """Swap the active dispatcher; returns the previous one."""
    global _dispatcher
    previous = _dispatcher
    _dispatcher = dispatcher
    return previous


def get_notification_dispatcher() -> NotificationDispatcher:
    return _dispatcher


def _user_recipient(db: Session, user_id: int | None, role: Recipient) -> list[NotificationRecipient]:
    if not user_id:
        return []
    user = db.query(User).filter(User.id == int(user_id)).first()
    if not user:
        return []
    return [NotificationRecipient(role=role.value, name=user.name, email=user.email or '', user_id=user.id)]


def resolve_recipients(db: Session, request: DefenseRequest, recipient: Recipient) -> list[NotificationRecipient]:
    if recipient is Recipient.STUDENT:
        rows = _user_recipient(db, request.submitted_by, recipient)
        return rows or [NotificationRecipient(role=recipient.value, name=request.student_name)]
    if recipient is Recipient.ADVISER:
        rows = _user_recipient(db, request.adviser_user_id, recipient)
        if rows:
            return rows
        return [NotificationRecipient(role=recipient.value, name=request.defense_adviser)] if request.defense_adviser else []
    if recipient is Recipient.COORDINATOR:
        return _user_recipient(db, request.coordinator_user_id, recipient)
    if recipient is Recipient.PANEL:
        names = [request.defense_chairperson, request.defense_panelist1, request.defense_panelist2,
                 request.defense_panelist3, request.defense_panelist4]
        rows = []
        for name in (n.strip() for n in names if n and n.strip()):
            panelist = db.query(Panelist).filter(Panelist.name == name).first()
            rows.append(NotificationRecipient(
                role=recipient.value,
                name=name,
                email=panelist.email if panelist else '',
            ))
        return rows

    verification = (
        db.query(AaPaymentVerification)
        .filter(AaPaymentVerification.defense_request_id == request.id)
        .first()
    )
    if verification and verification.assigned_to:
        return _user_recipient(db, verification.assigned_to, recipient)
    assistants = db.query(User).filter(User.role == UserRole.AA.value).order_by(User.id.asc()).all()
    return [NotificationRecipient(role=recipient.value, name=u.name, email=u.email or '', user_id=u.id) for u in assistants]


def dispatch_notifications(db: Session, request: DefenseRequest, effects) -> int:
    """Deliver every NotifyEffect in ``effects``; failures are logged, never raised."""
    dispatcher = get_notification_dispatcher()
    delivered = 0
    for effect in effects:
        if not isinstance(effect, NotifyEffect):
            continue
        try:
            recipients = resolve_recipients(db, request, effect.recipient)
        except Exception:
            logger.exception(
                'notification_recipient_lookup_failed',
                extra={'defense_request_id': request.id, 'event_type': effect.event_type},
            )
            continue
        for recipient in recipients:
            try:
                dispatcher.dispatch(effect.event_type, request, recipient)
                delivered += 1
            except Exception:
                logger.exception(
                    'notification_dispatch_failed',
                    extra={
                        'defense_request_id': request.id,
                        'event_type': effect.event_type,
                        'recipient_role': recipient.role,
                    },
                )
    return delivered
