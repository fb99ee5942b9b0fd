from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy.exc import OperationalError
from newport.core.config import settings
import logging
from sqlalchemy.pool import QueuePool, StaticPool

import newport.models

logger = logging.getLogger(__name__)


def build_engine(database_url: str):
    # Convert postgresql:// to postgresql+psycopg:// for psycopg v3
    database_url = database_url.replace("postgresql://", "postgresql+psycopg://")
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=settings.DATABASE_ECHO, **kwargs)
    return create_engine(
        database_url,
        echo=settings.DATABASE_ECHO,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


logger.info("Creating database engine...")
engine = build_engine(settings.DATABASE_URL)
logger.info("Database engine created successfully")

def get_session():
    logger.debug("Creating new database session...")
    session = Session(engine)
    try:
        yield session
    except Exception as e:
        logger.error(f"Database session error: {str(e)}")
        session.rollback()
        raise
    finally:
        logger.debug("Closing database session...")
        session.close()

def create_db_and_tables():
    try:
        logger.info("Creating database tables...")
        SQLModel.metadata.create_all(engine)
        logger.info("Database and tables created successfully")
    except OperationalError as e:
        logger.error(f"Error creating database and tables: {str(e)}")
        raise
