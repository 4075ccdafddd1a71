"""
Pytest fixtures for FinTrack tests.

The environment is configured before the application is imported: a throwaway
SQLite file database, a test signing key and cheap bcrypt hashing. The schema
is recreated for every test.
"""

import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="fintrack-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["APP_ENV"] = "test"
os.environ["BOOTSTRAP_SUPERADMIN_EMAIL"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from fintrack.data.base import Base, SessionLocal, engine  # noqa: E402
from fintrack.domain.models.user import Role  # noqa: E402
from fintrack.domain.services import reference_service  # noqa: E402
from fintrack.domain.services.auth_service import (  # noqa: E402
    create_session_token,
    create_user,
)
from fintrack.main import app  # noqa: E402

SUPERADMIN_PASSWORD = "Sup3rSecret!"
ADMIN_PASSWORD = "Adm1nSecret!"


@pytest.fixture(autouse=True)
def reset_database():
    """Fresh schema for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def superadmin(db_session):
    return create_user(
        db_session, "root@fintrack.test", SUPERADMIN_PASSWORD, "Root", Role.SUPERADMIN
    )


@pytest.fixture
def admin(db_session):
    return create_user(
        db_session, "admin@fintrack.test", ADMIN_PASSWORD, "Admin", Role.ADMINISTRATOR
    )


@pytest.fixture
def superadmin_headers(superadmin):
    return {"Authorization": f"Bearer {create_session_token(superadmin)}"}


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {create_session_token(admin)}"}


@pytest.fixture
def reference_data(db_session):
    """One division with a PIC and one category with a subcategory."""
    division = reference_service.create_entity(
        db_session, reference_service.DIVISION, {"name": "Operations"}
    )
    category = reference_service.create_entity(
        db_session, reference_service.CATEGORY, {"name": "Office Supplies"}
    )
    subcategory = reference_service.create_entity(
        db_session,
        reference_service.SUBCATEGORY,
        {"name": "Stationery", "category_id": category.id},
    )
    pic = reference_service.create_entity(
        db_session,
        reference_service.PIC,
        {"name": "Budi", "phone": "081234567890", "division_id": division.id},
    )
    return {
        "division_id": division.id,
        "category_id": category.id,
        "subcategory_id": subcategory.id,
        "pic_id": pic.id,
    }


@pytest.fixture
def pen_and_paper(reference_data):
    """Request body of the Pen/Paper invoice."""
    return {
        **reference_data,
        "date": "2024-03-05T10:30:00+07:00",
        "notes": "Monthly restock",
        "items": [
            {"item_name": "Pen", "quantity": 10, "unit": "pcs", "price_per_unit": 2000},
            {
                "item_name": "Paper",
                "quantity": 5,
                "unit": "ream",
                "price_per_unit": 45000,
            },
        ],
    }
