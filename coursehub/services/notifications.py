"""Notification service for enrollment e-mails.

Handles:
- Rendering the confirmation, final approval and status e-mails
- SMTP delivery
- Email history for every attempt, automatic or manual
- Marking automatic sends on the enrollment once delivered

Delivery failures are logged and recorded in the history. They never touch
approval state.
"""

import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from jinja2 import DictLoader, Environment, StrictUndefined
from sqlalchemy.orm import Session

from coursehub.core.attendance import badge_for
from coursehub.core.config import Settings, get_settings
from coursehub.core.enrollment.models import CourseInfo, Enrollment
from coursehub.core.notifications import NotificationKind, mark_sent, needs_send
from coursehub.core.ports import Directory, EnrollmentRepository
from coursehub.db.models import EnrollmentEmailHistory
from coursehub.db.repository import SqlAlchemyEnrollmentRepository

logger = logging.getLogger(__name__)


class DeliveryStatus(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"     # Already sent or no recipient
    FAILED = "failed"


# Email templates
EMAIL_TEMPLATES = {
    "confirmation.subject": "[{{ app_name }}] Enrollment received: {{ course_name }}",
    "confirmation.body": """
Dear {{ user_name }},

We received your enrollment in {{ course_name }}{% if start_at %}, starting {{ start_at }}{% endif %}.

Your enrollment is now going through approval. You will be notified once
a decision has been made.

View your enrollment at: {{ enrollment_url }}

---
{{ app_name }}
""",
    "final_approval.subject": "[{{ app_name }}] Enrollment approved: {{ course_name }}",
    "final_approval.body": """
Dear {{ user_name }},

Your enrollment in {{ course_name }} has been approved.
{% if start_at %}
The course starts {{ start_at }}.{% endif %}
Your badge code for check-in: {{ badge }}

View your enrollment at: {{ enrollment_url }}

---
{{ app_name }}
""",
    "status.subject": "[{{ app_name }}] Enrollment {{ status_label }}: {{ course_name }}",
    "status.body": """
Dear {{ user_name }},

Your enrollment in {{ course_name }} is now {{ status_label }}.
{% if comment %}
Comment: {{ comment }}
{% endif %}
View your enrollment at: {{ enrollment_url }}

---
{{ app_name }}
""",
}

_STATUS_LABELS = {
    "pending": "pending approval",
    "approve": "approved",
    "reject": "rejected",
    "excuse": "excused",
}

_templates = Environment(loader=DictLoader(EMAIL_TEMPLATES), undefined=StrictUndefined)


class NotificationService:
    """
    Service for sending enrollment e-mails.

    Automatic sends honour the enrollment's notification flags; manual
    resends always go out and never change them.
    """

    def __init__(
        self,
        db: Session,
        directory: Directory,
        *,
        repository: Optional[EnrollmentRepository] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize notification service.

        Args:
            db: Database session (email history is written here)
            directory: Resolves recipients' addresses and names
            repository: Enrollment repository (SQL repository on ``db`` by default)
            settings: Application settings
        """
        self.db = db
        self.directory = directory
        self.repository = repository or SqlAlchemyEnrollmentRepository(db)
        self.settings = settings or get_settings()

    def send_automatic(self, enrollment_id: UUID, kind: NotificationKind) -> DeliveryStatus:
        """
        Send an automatic lifecycle e-mail unless it already went out.

        The sent flag is set in a separate locked transaction, and only
        after a successful delivery.
        """
        kind = NotificationKind(kind)
        enrollment = self.repository.load_enrollment(enrollment_id)

        if not needs_send(enrollment, kind):
            logger.info("Enrollment %s: %s e-mail already sent, skipping", enrollment_id, kind.value)
            return DeliveryStatus.SKIPPED

        status = self._send(enrollment, kind, manual=False, sent_by="system")
        if status == DeliveryStatus.SENT:
            with self.repository.locked(enrollment_id):
                fresh = self.repository.load_enrollment(enrollment_id)
                if mark_sent(fresh, kind):
                    self.repository.save_enrollment(fresh, fresh.steps)
        return status

    def resend(self, enrollment_id: UUID, kind: NotificationKind, sent_by: str) -> DeliveryStatus:
        """Resend an e-mail on request, regardless of the sent flags."""
        enrollment = self.repository.load_enrollment(enrollment_id)
        logger.info("Enrollment %s: manual resend of %s e-mail by %s", enrollment_id, kind, sent_by)
        return self._send(enrollment, NotificationKind(kind), manual=True, sent_by=sent_by)

    def history(self, enrollment_id: UUID) -> list:
        return (
            self.db.query(EnrollmentEmailHistory)
            .filter(EnrollmentEmailHistory.enrollment_id == enrollment_id)
            .order_by(EnrollmentEmailHistory.sent_at.desc())
            .all()
        )

    def render(self, kind: NotificationKind, enrollment: Enrollment, course: CourseInfo) -> Tuple[str, str]:
        """Render subject and body of an e-mail."""
        context = self._build_context(enrollment, course)
        kind = NotificationKind(kind)
        subject = _templates.get_template(f"{kind.value}.subject").render(**context)
        body = _templates.get_template(f"{kind.value}.body").render(**context)
        return subject.strip(), body.strip() + "\n"

    def _send(self, enrollment: Enrollment, kind: NotificationKind, *, manual: bool, sent_by: str) -> DeliveryStatus:
        recipient = self.directory.email_of(enrollment.user_id)
        if not recipient:
            logger.warning("Enrollment %s: user %s has no e-mail address", enrollment.id, enrollment.user_id)
            return DeliveryStatus.SKIPPED

        course = self.repository.load_course(enrollment.course_id)
        subject, body = self.render(kind, enrollment, course)

        log = EnrollmentEmailHistory(
            enrollment_id=enrollment.id,
            kind=kind.value,
            recipient=recipient,
            subject=subject,
            body=body,
            is_manual=manual,
            sent_by=sent_by,
            sent_at=datetime.utcnow(),
        )
        self.db.add(log)

        try:
            self._deliver_email(recipient, subject, body)
            log.is_success = True
            status = DeliveryStatus.SENT
        except Exception as e:
            logger.exception("Failed to send %s e-mail to %s", kind.value, recipient)
            log.is_success = False
            log.error_message = str(e)
            status = DeliveryStatus.FAILED

        self.db.commit()
        return status

    def _deliver_email(self, to_email: str, subject: str, body: str) -> None:
        """Actually deliver the email via SMTP."""
        if not self.settings.smtp_host:
            raise RuntimeError("SMTP not configured")

        msg = MIMEMultipart()
        msg["From"] = f"{self.settings.smtp_from_name} <{self.settings.smtp_from_email}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain"))

        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=self.settings.smtp_timeout) as server:
            if self.settings.smtp_use_tls:
                server.starttls()
            if self.settings.smtp_user:
                server.login(self.settings.smtp_user, self.settings.smtp_password)
            server.send_message(msg)

    def _build_context(self, enrollment: Enrollment, course: CourseInfo) -> Dict[str, Any]:
        last_comment = None
        for step in enrollment.ordered_steps():
            if step.is_resolved and step.comment:
                last_comment = step.comment

        base_url = self.settings.public_base_url.rstrip("/")
        return {
            "app_name": self.settings.app_name,
            "user_name": self.directory.display_name_of(enrollment.user_id),
            "course_name": course.name or str(course.id),
            "start_at": course.start_at.strftime("%Y-%m-%d %H:%M") if course.start_at else None,
            "status_label": _STATUS_LABELS.get(enrollment.status.value, enrollment.status.value),
            "comment": last_comment,
            "badge": badge_for(enrollment),
            "enrollment_url": f"{base_url}/enrollments/{enrollment.id}",
        }
