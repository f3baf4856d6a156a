import logging

from sqlalchemy.orm import Session

from database import create_schema, session_scope
from services import CategoryService, UserService

logger = logging.getLogger(__name__)


def seed_defaults(session: Session) -> tuple[int, int]:
    """Seed system categories and the demo user into empty tables.

    Returns how many categories and users were inserted; both are zero when
    the tables already hold rows, so running this again is harmless.
    """
    categories = CategoryService(session).seed_system_categories()
    users = 1 if UserService(session).seed_demo_user() is not None else 0
    return categories, users


def run_bootstrap(*, create_tables: bool = True, seed: bool = True) -> None:
    if create_tables:
        create_schema()
        logger.info("bootstrap: schema ensured")
    if not seed:
        return
    with session_scope() as session:
        categories, users = seed_defaults(session)
    logger.info(f"bootstrap: categories_seeded={categories} users_seeded={users}")
