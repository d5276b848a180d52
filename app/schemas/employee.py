"""
Employee schemas
"""
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator, field_serializer, ConfigDict
from app.core.security import validate_password
from app.models.employee import Role
from app.utils.datetime_utils import iso_8601_utc


def _normalize_password(v):
    if v is None:
        return None
    v = v.strip()
    if not v:
        return None
    return validate_password(v)


class EmployeeCreate(BaseModel):
    """Schema for creating an employee"""
    emp_code: str = Field(..., min_length=1, max_length=50, description="Employee code (unique)")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr = Field(..., description="Login email (unique)")
    department: Optional[str] = Field(None, max_length=100)
    position: Optional[str] = Field(None, max_length=100)
    role: Role = Field(default=Role.EMPLOYEE, description="Employee role")
    manager_id: Optional[int] = Field(None, description="Direct manager ID")
    hire_date: date = Field(..., description="Hire date")
    password: Optional[str] = Field(None, description="Password (optional, 6-72 bytes)")
    active: bool = Field(default=True, description="Employee active status")

    @field_validator("password", mode="before")
    @classmethod
    def validate_password(cls, v):
        """Normalize and validate password"""
        return _normalize_password(v)


class EmployeeUpdate(BaseModel):
    """Schema for updating an employee"""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = Field(None, description="Login email (unique)")
    department: Optional[str] = Field(None, max_length=100)
    position: Optional[str] = Field(None, max_length=100)
    role: Optional[Role] = Field(None, description="Employee role")
    manager_id: Optional[int] = Field(None, description="Direct manager ID")
    active: Optional[bool] = Field(None, description="Employee active status")
    password: Optional[str] = Field(None, description="New password")

    @field_validator("password", mode="before")
    @classmethod
    def validate_password(cls, v):
        return _normalize_password(v)


class EmployeeOut(BaseModel):
    """Schema for employee output. Datetimes in UTC (Z)."""
    id: int
    emp_code: str
    first_name: str
    last_name: str
    full_name: str
    email: str
    department: Optional[str] = None
    position: Optional[str] = None
    role: Role
    manager_id: Optional[int] = None
    hire_date: date
    active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "updated_at", when_used="always")
    def _ser_datetime(self, dt):
        return iso_8601_utc(dt)
