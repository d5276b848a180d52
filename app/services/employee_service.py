"""
Employee service - business logic for employee management
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from app.core.security import hash_password
from app.db.session import unit_of_work
from app.models.employee import Employee
from app.schemas.employee import EmployeeCreate, EmployeeUpdate
from app.services import leave_balance_service as ledger
from app.services.audit_service import log_audit
from app.utils.datetime_utils import Clock, system_clock

logger = logging.getLogger(__name__)


def _check_manager_cycle(
    db: Session,
    employee_id: int,
    manager_id: int
) -> bool:
    """
    Check if setting manager_id would create a cycle

    Args:
        db: Database session
        employee_id: ID of employee being updated
        manager_id: Proposed manager ID

    Returns:
        True if cycle would be created, False otherwise
    """
    if employee_id == manager_id:
        return True

    # Walk up the chain from the proposed manager
    visited = set()
    current_id = manager_id

    while current_id is not None:
        if current_id == employee_id:
            return True

        if current_id in visited:
            break

        visited.add(current_id)
        manager = db.query(Employee).filter(Employee.id == current_id).first()
        if not manager or not manager.manager_id:
            break

        current_id = manager.manager_id

    return False


def _validate_manager(db: Session, manager_id: Optional[int]) -> None:
    if manager_id is None:
        return
    if not db.query(Employee).filter(Employee.id == manager_id).first():
        raise NotFoundError(f"Manager with id {manager_id} not found")


def get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise NotFoundError(f"Employee with id {employee_id} not found")
    return employee


def get_employee_by_email(db: Session, email: str) -> Optional[Employee]:
    return db.query(Employee).filter(Employee.email == email.strip().lower()).first()


def create_employee(
    db: Session,
    employee_data: EmployeeCreate,
    actor_id: Optional[int] = None,
    clock: Clock = system_clock,
) -> Employee:
    """
    Create a new employee and open their current-year leave balances

    Args:
        db: Database session
        employee_data: Employee creation data
        actor_id: ID of the user creating the employee

    Returns:
        Created Employee instance

    Raises:
        ConflictError: emp_code or email already taken
        NotFoundError: manager does not exist
    """
    if db.query(Employee).filter(Employee.emp_code == employee_data.emp_code).first():
        raise ConflictError(f"Employee with emp_code '{employee_data.emp_code}' already exists")
    email = employee_data.email.strip().lower()
    if db.query(Employee).filter(Employee.email == email).first():
        raise ConflictError(f"Employee with email '{email}' already exists")
    _validate_manager(db, employee_data.manager_id)

    with unit_of_work(db):
        employee = Employee(
            emp_code=employee_data.emp_code,
            first_name=employee_data.first_name,
            last_name=employee_data.last_name,
            email=email,
            department=employee_data.department,
            position=employee_data.position,
            role=employee_data.role,
            manager_id=employee_data.manager_id,
            hire_date=employee_data.hire_date,
            active=employee_data.active,
            password_hash=hash_password(employee_data.password) if employee_data.password else None,
        )
        db.add(employee)
        db.flush()

        ledger.initialize_for_employee(db, employee.id, action_by_id=actor_id, clock=clock, commit=False)

        log_audit(
            db=db,
            actor_id=actor_id,
            action="CREATE",
            entity_type="employee",
            entity_id=employee.id,
            meta={
                "emp_code": employee.emp_code,
                "email": employee.email,
                "role": employee.role,
                "manager_id": employee.manager_id,
            },
        )

    db.refresh(employee)
    logger.info("Employee %s (%s) created", employee.id, employee.emp_code)
    return employee


def list_employees(
    db: Session,
    active_only: Optional[bool] = None,
    manager_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Employee]:
    query = db.query(Employee)
    if active_only:
        query = query.filter(Employee.active.is_(True))
    if manager_id is not None:
        query = query.filter(Employee.manager_id == manager_id)
    return query.order_by(Employee.id).offset(skip).limit(limit).all()


def update_employee(
    db: Session,
    employee_id: int,
    employee_data: EmployeeUpdate,
    actor_id: Optional[int] = None,
) -> Employee:
    """
    Update an employee. Only the fields that were sent are changed.

    Raises:
        NotFoundError: employee or new manager does not exist
        ConflictError: email already taken
        InvalidStateError: the new manager would create a reporting cycle
    """
    employee = get_employee(db, employee_id)
    changes = employee_data.model_dump(exclude_unset=True)

    if "email" in changes and changes["email"] is not None:
        changes["email"] = changes["email"].strip().lower()
        taken = db.query(Employee).filter(
            Employee.email == changes["email"],
            Employee.id != employee_id,
        ).first()
        if taken:
            raise ConflictError(f"Employee with email '{changes['email']}' already exists")

    if changes.get("manager_id") is not None:
        _validate_manager(db, changes["manager_id"])
        if _check_manager_cycle(db, employee_id, changes["manager_id"]):
            raise InvalidStateError("Manager assignment would create a reporting cycle")

    password = changes.pop("password", None)

    with unit_of_work(db):
        for field, value in changes.items():
            setattr(employee, field, value)
        if password:
            employee.password_hash = hash_password(password)
        db.flush()
        log_audit(
            db=db,
            actor_id=actor_id,
            action="UPDATE",
            entity_type="employee",
            entity_id=employee.id,
            meta={"changed": sorted(changes) + (["password"] if password else [])},
        )

    db.refresh(employee)
    return employee
