"""
Dependencies and guards for FastAPI endpoints
"""
from typing import Generator, Iterable
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from app.db.session import SessionLocal
from app.core.security import decode_token
from app.models.employee import Employee, Role
from app.utils.datetime_utils import Clock, system_clock


security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_db() -> Generator:
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock() -> Clock:
    """Time source handed to the services"""
    return system_clock


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Employee:
    """
    Resolve the employee behind the bearer token

    401 for a bad token or unknown employee, 403 for a deactivated one.
    """
    try:
        payload = decode_token(credentials.credentials)
        # sub is carried as a string
        employee_id = int(payload["sub"])
    except (KeyError, ValueError, TypeError):
        raise _unauthorized("Invalid authentication credentials")

    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if employee is None:
        raise _unauthorized("User not found")
    if not employee.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return employee


def require_roles(*allowed_roles: Role):
    """
    Dependency factory for role-based access control. ADMIN always passes.

    Usage:
        @router.get("/hr-only")
        async def hr_endpoint(user: Employee = Depends(require_roles(Role.HR))):
            ...
    """
    allowed = frozenset(allowed_roles) | {Role.ADMIN}

    def role_checker(current_user: Employee = Depends(get_current_user)) -> Employee:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {[r.value for r in allowed_roles]}"
            )
        return current_user
    return role_checker


def ensure_self_or_roles(current_user: Employee, employee_id: int, roles: Iterable[Role]) -> None:
    """Raise 403 unless the caller is the employee in question or holds one of the roles"""
    if current_user.id != employee_id and current_user.role not in set(roles) | {Role.ADMIN}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
