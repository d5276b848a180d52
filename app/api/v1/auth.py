"""
Authentication endpoints
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user
from app.core.security import verify_password, create_access_token
from app.models.employee import Employee
from app.schemas.auth import LoginRequest, TokenResponse
from app.schemas.employee import EmployeeOut
from app.services.audit_service import log_audit
from app.services.employee_service import get_employee_by_email

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Authenticate user and return JWT token

    Validates email and password, rejects inactive employees.
    """
    employee = get_employee_by_email(db, login_data.email)

    if not employee:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if not employee.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive"
        )

    if employee.password_hash is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No password set for this account"
        )

    if not verify_password(login_data.password, employee.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    # JWT 'sub' claim must be a string
    token_data = {
        "sub": str(employee.id),
        "email": employee.email,
        "role": employee.role.value,
    }
    access_token = create_access_token(data=token_data)

    log_audit(
        db=db,
        actor_id=employee.id,
        action="AUTH_LOGIN_SUCCESS",
        entity_type="auth",
        meta={"email": employee.email, "role": employee.role},
    )
    db.commit()
    logger.info("Employee %s logged in", employee.id)

    return TokenResponse(access_token=access_token, token_type="bearer")


@router.get("/me", response_model=EmployeeOut)
async def me(current_user: Employee = Depends(get_current_user)):
    """Profile of the authenticated employee"""
    return current_user
