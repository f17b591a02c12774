"""Create the moderation tables and bootstrap the first admin.

Development shortcut around alembic: `python init_db.py` builds the schema
from the models and, when ADMIN_EMAIL is set, creates an admin account so
the staff endpoints have someone to authenticate as.
"""

from loguru import logger
from sqlalchemy.orm import Session

from models.config import settings
from repositories.database import Base, SessionLocal, engine
from repositories.db_models import User, UserRole
from repositories.user_repository import UserRepository


def bootstrap_admin(db: Session) -> User | None:
    """Create the admin named by settings unless it already exists.

    Returns:
        The created admin, or None when ADMIN_EMAIL is empty or the
        username is taken.
    """
    if not settings.ADMIN_EMAIL:
        logger.info("ADMIN_EMAIL not set, skipping admin bootstrap")
        return None

    repo = UserRepository(db)
    if repo.get_by_username(settings.ADMIN_USERNAME):
        logger.info(f"Admin '{settings.ADMIN_USERNAME}' already exists")
        return None

    admin = repo.create(
        User(
            email=settings.ADMIN_EMAIL,
            username=settings.ADMIN_USERNAME,
            display_name="Administrator",
            role=UserRole.ADMIN,
        )
    )
    logger.info(f"Admin '{admin.username}' created (id={admin.id})")
    return admin


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("Moderation tables created")

    db = SessionLocal()
    try:
        bootstrap_admin(db)
    except Exception:
        db.rollback()
        logger.exception("Admin bootstrap failed")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    init_db()
