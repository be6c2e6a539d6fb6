"""Create all tables defined in the models"""
from database import Base, engine
import models  # noqa: F401  registers the tables on Base.metadata
from logging_config import get_logger, setup_logging

logger = get_logger("init_db")


def init_db(bind=engine):
    """Create any missing tables on the given engine"""
    logger.info("Creating tables on: %s", bind.url.render_as_string(hide_password=True))
    Base.metadata.create_all(bind=bind)
    logger.info("Tables created successfully!")


if __name__ == "__main__":
    setup_logging()
    init_db()
