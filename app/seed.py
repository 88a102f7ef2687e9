# app/seed.py
# Startup bootstrap: makes sure the default admin account exists.
import logging

from . import crud
from .security import get_password_hash, verify_password

logger = logging.getLogger(__name__)


def create_or_update_admin(database, settings):
    """Create the default admin, or re-hash its password when it no longer verifies.

    Runs at startup. Failures are logged and never stop the application.
    """
    admin_username = settings.admin_default_username
    admin_password = settings.admin_default_password

    if not admin_password:
        logger.warning("ADMIN_DEFAULT_PASSWORD not set. Skipping admin user setup.")
        return None

    db = database.session()
    try:
        admin = crud.get_admin_by_username(db, admin_username)
        if admin:
            # Only update the hash if the current password doesn't match
            if not verify_password(admin_password, admin.password_hash):
                admin.password_hash = get_password_hash(admin_password)
                db.commit()
                logger.info("Admin password has been updated on startup.")
            else:
                logger.info("Admin user verified on startup.")
        else:
            admin = crud.create_admin(db, admin_username, get_password_hash(admin_password))
            logger.info("Admin user has been created on startup.")
        return admin.id
    except Exception as e:
        db.rollback()
        logger.error(f"CRITICAL: Error during admin user initialization: {e}")
        return None
    finally:
        db.close()
