from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from database import Base
import models  # noqa: F401  (registers ClipRecord on Base.metadata)
import logging

logger = logging.getLogger(__name__)


def init_database(engine: Engine):
    """Create the registry tables if they don't exist yet"""
    existing = set(inspect(engine).get_table_names())
    Base.metadata.create_all(bind=engine)

    created = set(Base.metadata.tables) - existing
    if created:
        logger.info(f"✅ Created tables: {', '.join(sorted(created))}")
    else:
        logger.info("Database schema up to date")
