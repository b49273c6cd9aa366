from datetime import timedelta

from fastapi import status

from auth.services import AuthService
from config import settings
from payment.models import PaymentStatus
from payment.services import PaymentService


def test_root(client):
    response = client.get("/")
    assert response.status_code == status.HTTP_200_OK


def test_requests_without_token_are_rejected(client):
    response = client.get("/access/course/1")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_bearer_token_identifies_user(client, student):
    token = AuthService.create_access_token({"sub": student.email})
    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["email"] == student.email
    assert response.json()["subscription_status"] == "free"


def test_invalid_token_is_rejected(client):
    response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_catalog_and_plans(client, paid_course, free_course, pack):
    courses = client.get("/catalog/courses").json()
    assert {c["id"] for c in courses} == {paid_course.id, free_course.id}
    assert all(c["item_type"] == "course" for c in courses)

    plans = client.get(f"/catalog/course/{paid_course.id}/plans").json()
    assert [(p["type"], p["price"], p["duration_days"]) for p in plans] == [("monthly", 20.0, 30), ("yearly", 200.0, 365)]
    assert client.get(f"/catalog/course/{free_course.id}/plans").json() == []

    missing = client.get("/catalog/pack/404/plans")
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.json() == {"message": "Pack not found", "code": 404}


def test_access_denied_is_a_normal_answer(login_as, student, paid_course):
    client = login_as(student)
    response = client.get(f"/access/course/{paid_course.id}")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["has_access"] is False
    assert body["can_access"] is False
    assert body["access_type"] == "none"
    assert body["is_expired"] is False


def test_bulk_access(login_as, student, paid_course, free_course):
    client = login_as(student)
    response = client.post("/access/bulk", json={"item_type": "course", "item_ids": [paid_course.id, free_course.id]})

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["configured"] is True
    assert body["decisions"][str(paid_course.id)]["can_access"] is False
    assert body["decisions"][str(free_course.id)]["access_type"] == "free"


def test_create_payment(login_as, student, paid_course):
    client = login_as(student)
    response = client.post("/payments/", json={"item_id": paid_course.id, "plan_type": "monthly", "amount": 20})

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["status"] == "pending"
    assert body["user_id"] == student.id
    assert body["currency"] == "TND"


def test_create_payment_validation_error(login_as, student, paid_course):
    client = login_as(student)
    response = client.post("/payments/", json={"item_id": paid_course.id, "plan_type": "monthly", "amount": -20})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"message": "Amount must be positive", "code": 400}


def test_upload_receipt(login_as, student, paid_course, make_payment, receipt_storage):
    payment = make_payment(student, paid_course)
    client = login_as(student)

    response = client.post(
        f"/payments/{payment.id}/receipt",
        files={"file": ("virement.png", b"\x89PNG\r\n\x1a\n", "image/png")},
    )

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["status"] == "pending"
    assert body["receipt_filename"] == "virement.png"
    assert body["receipt_reference"].startswith(f"receipts/{student.id}/{payment.id}_")
    assert body["receipt_reference"] in receipt_storage.uploads


def test_upload_receipt_rejects_bad_file(login_as, student, paid_course, make_payment, receipt_storage):
    payment = make_payment(student, paid_course)
    client = login_as(student)

    response = client.post(
        f"/payments/{payment.id}/receipt",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert receipt_storage.uploads == {}


def test_upload_receipt_for_someone_else(login_as, student, other_student, paid_course, make_payment):
    payment = make_payment(student, paid_course)
    client = login_as(other_student)

    response = client.post(
        f"/payments/{payment.id}/receipt",
        files={"file": ("virement.pdf", b"%PDF-1.4", "application/pdf")},
    )

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_payment_status_route(login_as, student, paid_course, make_payment):
    client = login_as(student)
    assert client.get(f"/payments/status/course/{paid_course.id}").json()["status"] == "none"
    make_payment(student, paid_course)
    assert client.get(f"/payments/status/course/{paid_course.id}").json()["status"] == "pending"


def test_admin_routes_require_admin(login_as, student, paid_course, make_payment):
    payment = make_payment(student, paid_course)
    client = login_as(student)

    assert client.post(f"/admin/payments/{payment.id}/approve").status_code == status.HTTP_403_FORBIDDEN
    assert client.get("/admin/payments/pending").status_code == status.HTTP_403_FORBIDDEN


def test_admin_approves_once(db, login_as, student, admin, paid_course, make_payment):
    payment = make_payment(student, paid_course)
    client = login_as(admin)

    assert [p["id"] for p in client.get("/admin/payments/pending").json()] == [payment.id]

    response = client.post(f"/admin/payments/{payment.id}/approve")
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert body["payment"]["status"] == "approved"
    assert body["payment"]["processed_by"] == admin.id

    again = client.post(f"/admin/payments/{payment.id}/approve")
    assert again.status_code == status.HTTP_409_CONFLICT
    assert again.json() == {"message": "Payment already approved", "code": 409}

    client = login_as(student)
    access = client.get(f"/access/course/{paid_course.id}").json()
    assert access["can_access"] is True
    assert access["access_type"] == "monthly"
    assert access["days_remaining"] == 30
    assert client.get("/subscriptions/me").json()["status"] == "monthly"
    assert client.get("/access/me/active").json() == {"has_active_access": True}


def test_admin_rejects_with_reason(login_as, student, admin, paid_course, make_payment):
    payment = make_payment(student, paid_course)
    client = login_as(admin)

    response = client.post(f"/admin/payments/{payment.id}/reject", json={"reason": "Receipt illegible"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["payment"]["status"] == "rejected"
    assert response.json()["payment"]["admin_notes"] == "Receipt illegible"
    assert client.post(f"/admin/payments/{payment.id}/reject").status_code == status.HTTP_409_CONFLICT


def test_admin_reject_without_body(login_as, student, admin, paid_course, make_payment):
    payment = make_payment(student, paid_course)
    client = login_as(admin)
    response = client.post(f"/admin/payments/{payment.id}/reject")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["payment"]["admin_notes"] is None


def test_admin_approve_missing_payment(login_as, admin):
    client = login_as(admin)
    response = client.post("/admin/payments/404/approve")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"message": "Payment not found", "code": 404}


def test_admin_receipt_lookup(db, login_as, student, admin, paid_course, make_payment):
    payment = make_payment(student, paid_course)
    client = login_as(admin)
    assert client.get(f"/admin/payments/{payment.id}/receipt").status_code == status.HTTP_404_NOT_FOUND

    PaymentService.attach_receipt(payment.id, "receipts/1/1_1.pdf", db, receipt_filename="virement.pdf")
    body = client.get(f"/admin/payments/{payment.id}/receipt").json()
    assert body["url"].endswith("/receipts/1/1_1.pdf")
    assert body["filename"] == "virement.pdf"


def test_admin_sweep_and_expiring(db, login_as, admin, student, paid_course, pack, grant, jan_1):
    grant(student, paid_course, jan_1, jan_1 + timedelta(days=30))
    client = login_as(admin)

    response = client.post("/admin/access/sweep")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"deactivated_count": 1, "users_updated": 1}
    assert client.post("/admin/access/sweep").json()["deactivated_count"] == 0

    assert client.get("/admin/access/expiring").json() == []
    users = client.get("/admin/users", params={"subscription_status": "expired"}).json()
    assert [u["id"] for u in users] == [student.id]


def test_admin_payments_filter_and_logs(login_as, student, admin, paid_course, make_payment):
    approved = make_payment(student, paid_course)
    make_payment(student, paid_course)
    client = login_as(admin)
    client.post(f"/admin/payments/{approved.id}/approve")

    payments = client.get("/admin/payments", params={"status": PaymentStatus.APPROVED.value}).json()
    assert [p["id"] for p in payments] == [approved.id]

    analytics = client.get("/admin/subscriptions/analytics").json()
    assert analytics["pending_payments"] == 1
    assert analytics["total_monthly_subs"] == 1

    logs = client.get("/admin/logs").json()
    assert len(logs) == 1
    assert logs[0]["admin_id"] == admin.id


def test_create_payment_rejects_malformed_currency_route(login_as, student, paid_course):
    client = login_as(student)
    response = client.post(
        "/payments/",
        json={"item_id": paid_course.id, "plan_type": "monthly", "amount": 20, "currency": "dollars"},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"message": "Currency must be a 3-letter code", "code": 400}


def test_upload_receipt_rejects_oversized_file(login_as, student, paid_course, make_payment, receipt_storage, monkeypatch):
    monkeypatch.setattr(settings, "RECEIPT_MAX_BYTES", 16)
    payment = make_payment(student, paid_course)
    client = login_as(student)

    response = client.post(
        f"/payments/{payment.id}/receipt",
        files={"file": ("virement.pdf", b"%PDF-1.4" + b"0" * 64, "application/pdf")},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert receipt_storage.uploads == {}


def test_upload_receipt_removes_file_when_payment_was_processed_meanwhile(
        login_as, db, student, admin, paid_course, make_payment, receipt_storage, monkeypatch):
    payment = make_payment(student, paid_course)
    upload = receipt_storage.upload

    def upload_while_admin_approves(data, key, content_type, filename):
        reference = upload(data, key, content_type, filename)
        PaymentService.approve(payment.id, admin.id, db)
        return reference

    monkeypatch.setattr(receipt_storage, "upload", upload_while_admin_approves)
    client = login_as(student)

    response = client.post(
        f"/payments/{payment.id}/receipt",
        files={"file": ("virement.png", b"\x89PNG\r\n\x1a\n", "image/png")},
    )

    assert response.status_code == status.HTTP_409_CONFLICT
    assert len(receipt_storage.deleted) == 1
    assert receipt_storage.uploads == {}
    db.expire_all()
    assert PaymentService.get_payment(payment.id, db).receipt_reference is None
