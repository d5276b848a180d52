"""
Database initialization
Bootstraps the first ADMIN so the system can be administered after a fresh install.
"""
import logging
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.security import hash_password
from app.models.employee import Employee, Role
from app.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)

INITIAL_ADMIN_EMP_CODE = "ADM-001"


def bootstrap_initial_admin(db: Session) -> bool:
    """
    Create the initial admin user if no ADMIN exists.

    Returns:
        True when an admin was created, False when one already existed
    """
    if db.query(Employee).filter(Employee.role == Role.ADMIN).first():
        logger.info("Admin user already exists, skipping initial bootstrap")
        return False

    admin = Employee(
        emp_code=INITIAL_ADMIN_EMP_CODE,
        first_name="System",
        last_name="Administrator",
        email=settings.INITIAL_ADMIN_EMAIL.strip().lower(),
        role=Role.ADMIN,
        password_hash=hash_password(settings.INITIAL_ADMIN_PASSWORD),
        hire_date=now_utc().date(),
        active=True,
    )
    db.add(admin)
    db.commit()

    logger.info("Initial admin user created: %s", admin.email)
    logger.info("Password: [set via INITIAL_ADMIN_PASSWORD environment variable]")
    return True
