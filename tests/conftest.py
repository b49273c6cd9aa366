import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from main import app
from access.models import AccessRecord
from auth.models import User
from auth.routes import get_current_user
from catalog.models import Course, CoursePack
from database import Base, get_db
from payment.services import PaymentService
from storage.schemas import ReceiptReference
from storage.services import ReceiptStorage, get_receipt_storage
from subscription.models import PlanType


class FakeReceiptStorage(ReceiptStorage):
    """Keeps uploads in memory instead of talking to the bucket."""

    def __init__(self):
        super().__init__()
        self.uploads = {}
        self.deleted = []

    def upload(self, data, key, content_type, filename):
        self.uploads[key] = data
        return ReceiptReference(key=key, url=self.get_url(key), filename=filename)

    def delete(self, key):
        self.deleted.append(key)
        return self.uploads.pop(key, None) is not None


@pytest.fixture
def engine(tmp_path):
    # File backed so that separate sessions get separate connections
    engine = create_engine(
        f"sqlite:///{tmp_path / 'pathtech.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def _add(db, obj):
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


@pytest.fixture
def student(db):
    return _add(db, User(username="student", email="student@example.com", full_name="Sami Student"))


@pytest.fixture
def other_student(db):
    return _add(db, User(username="other", email="other@example.com"))


@pytest.fixture
def admin(db):
    return _add(db, User(username="admin", email="admin@example.com", role="admin"))


@pytest.fixture
def paid_course(db):
    return _add(db, Course(
        title="Python for Data Science",
        is_free=False,
        monthly_price=20,
        yearly_price=200,
        currency="TND",
    ))


@pytest.fixture
def free_course(db):
    return _add(db, Course(title="Intro to Git", is_free=True))


@pytest.fixture
def pack(db):
    return _add(db, CoursePack(
        title="Full Stack Pack",
        is_free=False,
        monthly_price=50,
        yearly_price=450,
        currency="TND",
    ))


@pytest.fixture
def make_payment(db):
    def _make(user, item, plan_type=PlanType.MONTHLY, amount=None):
        if amount is None:
            amount = float(item.monthly_price if plan_type == PlanType.MONTHLY else item.yearly_price)
        return PaymentService.create_payment(
            user_id=user.id,
            item_type=item.item_type,
            item_id=item.id,
            plan_type=plan_type,
            amount=amount,
            currency=None,
            db=db,
        )
    return _make


@pytest.fixture
def grant(db):
    """Insert an access record directly, bypassing the approval flow."""
    def _grant(user, item, start_date, end_date, plan_type=PlanType.MONTHLY, is_active=True):
        return _add(db, AccessRecord(
            user_id=user.id,
            item_type=item.item_type,
            item_id=item.id,
            plan_type=plan_type,
            start_date=start_date,
            end_date=end_date,
            is_active=is_active,
        ))
    return _grant


@pytest.fixture
def receipt_storage():
    return FakeReceiptStorage()


@pytest.fixture
def client(db, receipt_storage):
    def _override_get_db():
        yield db
    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_receipt_storage] = lambda: receipt_storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(client):
    """Switch the authenticated caller for subsequent requests."""
    def _login(user):
        app.dependency_overrides[get_current_user] = lambda: user
        return client
    return _login


@pytest.fixture
def jan_1():
    return datetime(2024, 1, 1, 0, 0)
