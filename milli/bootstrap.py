# This module initializes the admin user on startup.
import logging

from .config import get_settings
from .database import SessionLocal
from .schemas import UserCreate

logger = logging.getLogger(__name__)


def create_or_update_admin():
    """
    Checks for and creates/updates the admin user on startup.
    Imports are done locally inside the function to prevent circular dependencies.
    """
    from . import crud, models
    from .security import get_password_hash, verify_password

    settings = get_settings()
    if not settings.super_admin_email or not settings.super_admin_password:
        logger.info("SUPER_ADMIN_EMAIL/SUPER_ADMIN_PASSWORD not set, skipping admin bootstrap.")
        return

    db = SessionLocal()
    try:
        admin = crud.get_user_by_email(db, settings.super_admin_email)
        if admin:
            if admin.role != models.UserRole.ADMIN:
                admin.role = models.UserRole.ADMIN
                db.commit()
            stored_hash = admin.login.password_hash if admin.login else None
            if not verify_password(settings.super_admin_password, stored_hash):
                crud.set_password_hash(db, admin, get_password_hash(settings.super_admin_password))
            logger.info("Super admin verified/updated.")
        else:
            crud.create_user(
                db,
                UserCreate(email=settings.super_admin_email, name="Administrator", role=models.UserRole.ADMIN),
                password_hash=get_password_hash(settings.super_admin_password),
            )
            logger.info(f"Super admin '{settings.super_admin_email}' created.")
    except crud.CRUDError as e:
        logger.error(f"CRITICAL: Error during admin bootstrap: {e}")
    finally:
        db.close()
