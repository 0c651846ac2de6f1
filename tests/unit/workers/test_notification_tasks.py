"""Tests for the notification Celery tasks."""

import uuid
from unittest.mock import patch

import pytest
from celery.exceptions import Retry

from coursehub.core.notifications import NotificationKind
from coursehub.services.notifications import DeliveryStatus
from coursehub.workers import notification_tasks
from coursehub.workers.notification_tasks import (
    CeleryEmailDispatcher,
    celery_app,
    configure_directory,
    get_directory,
    load_worker_directory,
    send_enrollment_email,
)

from tests.factories import FakeDirectory


@pytest.fixture(autouse=True)
def worker_directory():
    directory = FakeDirectory()
    configure_directory(directory)
    yield directory
    configure_directory(None)


@pytest.fixture
def session():
    with patch.object(notification_tasks, "get_session") as get_session:
        yield get_session.return_value


@pytest.fixture
def service_cls():
    with patch.object(notification_tasks, "NotificationService") as cls:
        yield cls


def test_routes_to_notifications_queue():
    routes = celery_app.conf.task_routes
    assert routes["coursehub.workers.notification_tasks.send_enrollment_email"] == {"queue": "notifications"}
    assert celery_app.conf.task_serializer == "json"


def test_missing_directory(monkeypatch):
    monkeypatch.setattr(notification_tasks.settings, "directory_factory", None)
    configure_directory(None)
    with pytest.raises(RuntimeError):
        get_directory()


def test_directory_built_from_factory(monkeypatch):
    monkeypatch.setattr(notification_tasks.settings, "directory_factory", "tests.factories:FakeDirectory")
    configure_directory(None)

    directory = get_directory()

    assert isinstance(directory, FakeDirectory)
    assert get_directory() is directory


def test_registered_directory_wins_over_factory(monkeypatch, worker_directory):
    monkeypatch.setattr(notification_tasks.settings, "directory_factory", "tests.factories:FakeIdentity")
    assert get_directory() is worker_directory


def test_worker_process_start_loads_directory(monkeypatch):
    monkeypatch.setattr(notification_tasks.settings, "directory_factory", "tests.factories:FakeDirectory")
    configure_directory(None)

    load_worker_directory()

    assert isinstance(notification_tasks._directory, FakeDirectory)


class TestDispatcher:

    def test_dispatch_queues_task(self):
        enrollment_id = uuid.uuid4()
        with patch.object(send_enrollment_email, "delay") as delay:
            CeleryEmailDispatcher().dispatch(enrollment_id, NotificationKind.FINAL_APPROVAL)

        delay.assert_called_once_with(str(enrollment_id), "final_approval")

    def test_resend_queues_manual_task(self):
        enrollment_id = uuid.uuid4()
        with patch.object(send_enrollment_email, "delay") as delay:
            CeleryEmailDispatcher().resend(enrollment_id, NotificationKind.STATUS, "admin@example.com")

        delay.assert_called_once_with(str(enrollment_id), "status", manual=True, sent_by="admin@example.com")


class TestSendEnrollmentEmail:

    def test_automatic_send(self, session, service_cls, worker_directory):
        enrollment_id = uuid.uuid4()
        service_cls.return_value.send_automatic.return_value = DeliveryStatus.SENT

        result = send_enrollment_email(str(enrollment_id), "confirmation")

        assert result == "sent"
        service_cls.assert_called_once_with(session, worker_directory)
        service_cls.return_value.send_automatic.assert_called_once_with(
            enrollment_id, NotificationKind.CONFIRMATION,
        )
        session.close.assert_called_once()

    def test_manual_resend(self, session, service_cls):
        enrollment_id = uuid.uuid4()
        service_cls.return_value.resend.return_value = DeliveryStatus.FAILED

        result = send_enrollment_email(str(enrollment_id), "status", manual=True, sent_by="admin@example.com")

        assert result == "failed"
        service_cls.return_value.resend.assert_called_once_with(
            enrollment_id, NotificationKind.STATUS, "admin@example.com",
        )
        service_cls.return_value.send_automatic.assert_not_called()

    def test_failed_automatic_send_retries(self, session, service_cls):
        service_cls.return_value.send_automatic.return_value = DeliveryStatus.FAILED

        with pytest.raises(Retry):
            send_enrollment_email(str(uuid.uuid4()), "confirmation")
        session.close.assert_called_once()

    def test_skipped_is_not_retried(self, session, service_cls):
        service_cls.return_value.send_automatic.return_value = DeliveryStatus.SKIPPED
        assert send_enrollment_email(str(uuid.uuid4()), "final_approval") == "skipped"

    def test_session_closed_on_error(self, session, service_cls):
        service_cls.return_value.send_automatic.side_effect = ValueError("boom")

        with pytest.raises(ValueError):
            send_enrollment_email(str(uuid.uuid4()), "confirmation")
        session.close.assert_called_once()
