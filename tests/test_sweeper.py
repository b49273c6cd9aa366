from datetime import datetime, timedelta
from unittest.mock import patch

from access.models import AccessRecord
from access.schemas import AccessType
from access.services import AccessService
from auth.models import User
from config import settings
from payment.services import PaymentService
from scheduler import tasks
from scheduler.services import ExpirationService
from subscription.models import PlanType, SubscriptionStatus


def _user(db, user_id):
    db.expire_all()
    return db.query(User).filter(User.id == user_id).one()


def test_sweep_after_monthly_period(db, student, admin, paid_course, make_payment, jan_1):
    payment = make_payment(student, paid_course)
    record = PaymentService.approve(payment.id, admin.id, db, now=jan_1)
    feb_1 = datetime(2024, 2, 1)

    assert AccessService.evaluate(student.id, paid_course, db, now=feb_1).can_access is False

    result = ExpirationService.sweep(db, now=feb_1)

    assert result.deactivated_count == 1
    assert result.users_updated == 1
    db.refresh(record)
    assert record.is_active is False
    assert _user(db, student.id).subscription_status == SubscriptionStatus.EXPIRED
    decision = AccessService.evaluate(student.id, paid_course, db, now=feb_1)
    assert decision.access_type == AccessType.EXPIRED


def test_second_sweep_does_nothing(db, student, paid_course, grant, jan_1):
    grant(student, paid_course, jan_1, jan_1 + timedelta(days=30))
    grant(student, paid_course, jan_1, jan_1 + timedelta(days=3))
    now = jan_1 + timedelta(days=40)

    assert ExpirationService.sweep(db, now=now).deactivated_count == 2
    assert ExpirationService.sweep(db, now=now).deactivated_count == 0


def test_sweep_leaves_valid_and_boundary_records(db, student, paid_course, pack, grant, jan_1):
    boundary = grant(student, paid_course, jan_1, jan_1 + timedelta(days=30))
    valid = grant(student, pack, jan_1, jan_1 + timedelta(days=60))

    result = ExpirationService.sweep(db, now=jan_1 + timedelta(days=30))

    assert result.deactivated_count == 0
    db.refresh(boundary)
    db.refresh(valid)
    assert boundary.is_active is True
    assert valid.is_active is True


def test_sweep_keeps_summary_of_users_with_other_grants(db, student, paid_course, pack, grant, jan_1):
    grant(student, paid_course, jan_1, jan_1 + timedelta(days=30))
    grant(student, pack, jan_1, jan_1 + timedelta(days=365), plan_type=PlanType.YEARLY)

    ExpirationService.sweep(db, now=jan_1 + timedelta(days=31))

    user = _user(db, student.id)
    assert user.subscription_status == SubscriptionStatus.YEARLY
    assert user.subscription_end_date == jan_1 + timedelta(days=365)


def test_list_expiring_soon(db, student, other_student, paid_course, pack, grant, jan_1):
    soon = grant(student, paid_course, jan_1, jan_1 + timedelta(days=3))
    sooner = grant(other_student, pack, jan_1, jan_1 + timedelta(days=1))
    grant(student, pack, jan_1, jan_1 + timedelta(days=30))
    grant(other_student, paid_course, jan_1, jan_1 + timedelta(days=2), is_active=False)

    expiring = ExpirationService.list_expiring_soon(db, now=jan_1)

    assert [r.id for r in expiring] == [sooner.id, soon.id]
    assert len(ExpirationService.list_expiring_soon(db, window_days=30, now=jan_1)) == 3


def test_list_expiring_soon_excludes_elapsed(db, student, paid_course, grant, jan_1):
    grant(student, paid_course, jan_1, jan_1 + timedelta(days=1))
    assert ExpirationService.list_expiring_soon(db, now=jan_1 + timedelta(days=1)) == []


def test_reminders_skipped_without_smtp(db, student, paid_course, grant, jan_1, monkeypatch):
    monkeypatch.setattr(settings, "SMTP_SERVER", "")
    grant(student, paid_course, jan_1, jan_1 + timedelta(days=3))
    with patch("scheduler.services.smtplib.SMTP") as smtp:
        assert ExpirationService.send_expiration_reminders(db, now=jan_1) == 0
    smtp.assert_not_called()


def test_reminders_sent_on_reminder_days(db, student, other_student, paid_course, pack, grant, jan_1, monkeypatch):
    monkeypatch.setattr(settings, "SMTP_SERVER", "smtp.example.com")
    grant(student, paid_course, jan_1, jan_1 + timedelta(days=3))
    grant(other_student, pack, jan_1, jan_1 + timedelta(days=5))

    with patch("scheduler.services.smtplib.SMTP") as smtp:
        sent = ExpirationService.send_expiration_reminders(db, now=jan_1)

    assert sent == 1
    server = smtp.return_value.__enter__.return_value
    server.sendmail.assert_called_once()
    assert server.sendmail.call_args[0][1] == student.email
    assert "Python for Data Science" in server.sendmail.call_args[0][2]


def test_send_email_reports_failure(monkeypatch):
    monkeypatch.setattr(settings, "SMTP_SERVER", "smtp.example.com")
    with patch("scheduler.services.smtplib.SMTP", side_effect=OSError("connection refused")):
        assert ExpirationService.send_email("a@example.com", "Subject", "Body") is False


def test_startup_tasks_respect_disabled_scheduler(monkeypatch):
    monkeypatch.setattr(settings, "SCHEDULER_ENABLED", False)
    with patch.object(tasks, "run_expiration_sweep") as sweep, patch.object(tasks, "start_scheduler") as start:
        tasks.run_startup_tasks()
    sweep.assert_not_called()
    start.assert_not_called()


def test_startup_tasks_sweep_then_schedule(monkeypatch):
    monkeypatch.setattr(settings, "SCHEDULER_ENABLED", True)
    monkeypatch.setattr(settings, "REMINDERS_ENABLED", False)
    with patch.object(tasks, "run_expiration_sweep") as sweep, patch.object(tasks, "start_scheduler") as start:
        tasks.run_startup_tasks()
    sweep.assert_called_once()
    start.assert_called_once()


def test_scheduled_sweep_uses_its_own_session(session_factory, student, paid_course, grant, jan_1, monkeypatch):
    grant(student, paid_course, jan_1, jan_1 + timedelta(days=1))
    monkeypatch.setattr(tasks, "SessionLocal", session_factory)

    tasks.run_expiration_sweep()

    check = session_factory()
    try:
        assert check.query(AccessRecord).filter(AccessRecord.is_active == True).count() == 0
    finally:
        check.close()
