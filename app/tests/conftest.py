"""
Pytest configuration and fixtures
"""
from datetime import date, datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.base import Base
from app.db.session import configure_sqlite
from app.core.deps import get_db, get_clock
from app.core.security import create_access_token, hash_password
from app.utils.datetime_utils import UTC, Clock

# Import all models to ensure they're registered with Base.metadata
from app.models import (  # noqa
    Employee,
    Role,
    AuditLog,
    Notification,
    LeaveType,
    LeaveRequest,
    ApprovalStep,
    LeaveBalance,
    LeaveTransaction,
    LeaveCarryForward,
    LeaveStatus,
)


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
configure_sqlite(engine)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Monday; 2025-06-07/08 is the following weekend
TODAY = date(2025, 6, 2)


class FixedClock(Clock):
    """Clock pinned to a given instant"""

    def __init__(self, now: datetime):
        self._now = now

    def now(self) -> datetime:
        return self._now


@pytest.fixture(scope="function")
def clock():
    return FixedClock(datetime(TODAY.year, TODAY.month, TODAY.day, 9, 0, tzinfo=UTC))


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db, clock):
    """Test client fixture with database and clock overrides"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_employee(db):
    """Factory for employees; password defaults to 'secret123'"""
    counter = {"n": 0}

    def _make(first_name="Test", role=Role.EMPLOYEE, manager=None, active=True, password="secret123"):
        counter["n"] += 1
        n = counter["n"]
        employee = Employee(
            emp_code=f"EMP{n:03d}",
            first_name=first_name,
            last_name="User",
            email=f"{first_name.lower()}{n}@example.com",
            role=role,
            manager_id=manager.id if manager is not None else None,
            password_hash=hash_password(password) if password else None,
            hire_date=date(2020, 1, 1),
            active=active,
        )
        db.add(employee)
        db.commit()
        db.refresh(employee)
        return employee

    return _make


@pytest.fixture
def admin(make_employee):
    return make_employee("Admin", role=Role.ADMIN)


@pytest.fixture
def hr_user(make_employee):
    return make_employee("Helen", role=Role.HR)


@pytest.fixture
def grand_manager(make_employee):
    return make_employee("Grace", role=Role.MANAGER)


@pytest.fixture
def manager(make_employee, grand_manager):
    return make_employee("Mark", role=Role.MANAGER, manager=grand_manager)


@pytest.fixture
def employee(make_employee, manager):
    """Employee whose chain is manager -> grand_manager"""
    return make_employee("Erin", manager=manager)


@pytest.fixture
def annual_leave(db):
    leave_type = LeaveType(name="Annual", description="Paid annual leave", default_days=20, active=True)
    db.add(leave_type)
    db.commit()
    db.refresh(leave_type)
    return leave_type


@pytest.fixture
def make_balance(db):
    def _make(employee, leave_type, year=TODAY.year, total=20, used=0):
        balance = LeaveBalance(
            employee_id=employee.id,
            leave_type_id=leave_type.id,
            year=year,
            total=Decimal(str(total)),
            used=Decimal(str(used)),
        )
        db.add(balance)
        db.commit()
        db.refresh(balance)
        return balance

    return _make


@pytest.fixture
def make_request(db):
    """Insert a leave request row directly, without routing it"""
    def _make(employee, leave_type, start_date, end_date, status=LeaveStatus.PENDING, total_days=None):
        from app.services.leave_service import calculate_business_days

        if total_days is None:
            total_days = calculate_business_days(start_date, end_date)
        leave_request = LeaveRequest(
            employee_id=employee.id,
            leave_type_id=leave_type.id,
            start_date=start_date,
            end_date=end_date,
            total_days=Decimal(str(total_days)),
            status=status,
        )
        db.add(leave_request)
        db.commit()
        db.refresh(leave_request)
        return leave_request

    return _make


@pytest.fixture
def auth_headers():
    """Build a bearer header for an employee without going through /auth/login"""
    def _headers(employee):
        token = create_access_token(data={
            "sub": str(employee.id),
            "email": employee.email,
            "role": employee.role.value,
        })
        return {"Authorization": f"Bearer {token}"}

    return _headers
