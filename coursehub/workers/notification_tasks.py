"""Celery tasks for enrollment e-mails.

Provides async task processing for:
- Automatic lifecycle e-mails queued after an enrollment write commits
- Manual resends
"""

from typing import Optional
from uuid import UUID
import logging

from celery import Celery, shared_task
from celery.signals import after_setup_logger, worker_process_init
from celery.utils.imports import symbol_by_name

from coursehub.common.logger import configure_logging
from coursehub.core.config import get_settings
from coursehub.core.notifications import NotificationKind
from coursehub.core.ports import Directory
from coursehub.db.session import get_session
from coursehub.services.notifications import DeliveryStatus, NotificationService

logger = logging.getLogger(__name__)
settings = get_settings()

# Initialize Celery
celery_app = Celery(
    'coursehub',
    broker=settings.celery_broker,
    backend=settings.celery_backend,
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_always_eager=settings.celery_task_always_eager,
    task_routes={
        'coursehub.workers.notification_tasks.send_enrollment_email': {'queue': 'notifications'},
    },
    task_default_queue='default',
)


@after_setup_logger.connect
def setup_worker_logging(**kwargs):
    # Celery already logs to the console through the root logger
    configure_logging(settings, console=False)


_directory: Optional[Directory] = None


def configure_directory(directory: Directory) -> None:
    """Register the directory used by workers to resolve recipients."""
    global _directory
    _directory = directory


def get_directory() -> Directory:
    """Directory used to resolve recipients.

    Built on first use from ``settings.directory_factory``, a ``module:attr``
    path to a zero-argument callable, unless ``configure_directory`` already
    registered one.
    """
    if _directory is None:
        if not settings.directory_factory:
            raise RuntimeError(
                "No directory configured for notification workers; "
                "set COURSEHUB_DIRECTORY_FACTORY or call configure_directory()"
            )
        factory = symbol_by_name(settings.directory_factory)
        configure_directory(factory())
        logger.info("Directory loaded from %s", settings.directory_factory)
    return _directory


@worker_process_init.connect
def load_worker_directory(**kwargs):
    if settings.directory_factory:
        get_directory()


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def send_enrollment_email(
    self,
    enrollment_id: str,
    kind: str,
    manual: bool = False,
    sent_by: Optional[str] = None,
) -> str:
    """
    Async task to send one enrollment e-mail.

    Args:
        enrollment_id: Enrollment ID
        kind: E-mail kind (confirmation, final_approval, status)
        manual: Resend regardless of the enrollment's sent flags
        sent_by: Who requested a manual resend

    Returns:
        Delivery status value
    """
    db = get_session()
    try:
        service = NotificationService(db, get_directory())
        if manual:
            status = service.resend(UUID(enrollment_id), NotificationKind(kind), sent_by or "system")
        else:
            status = service.send_automatic(UUID(enrollment_id), NotificationKind(kind))

        logger.info(f"E-mail {kind} for enrollment {enrollment_id}: {status.value}")

        # Automatic sends are retried; the sent flag keeps retries from duplicating
        if status == DeliveryStatus.FAILED and not manual:
            raise self.retry()
        return status.value

    finally:
        db.close()


class CeleryEmailDispatcher:
    """Queues automatic enrollment e-mails on the ``notifications`` queue."""

    def dispatch(self, enrollment_id: UUID, kind: NotificationKind) -> None:
        send_enrollment_email.delay(str(enrollment_id), NotificationKind(kind).value)

    def resend(self, enrollment_id: UUID, kind: NotificationKind, sent_by: str) -> None:
        send_enrollment_email.delay(
            str(enrollment_id), NotificationKind(kind).value, manual=True, sent_by=sent_by
        )
