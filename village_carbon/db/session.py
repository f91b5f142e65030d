"""
Database connection and session management.
"""
from sqlmodel import create_engine, SQLModel, Session
from village_carbon.core.settings import settings


def build_engine(database_url: str, echo: bool = False):
    """Create an engine with the pool options used across the service."""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=300,  # Recycle connections every 5 minutes
    )


# Create database engine
engine = build_engine(settings.database_url, echo=settings.is_development)


def create_db_and_tables():
    """Create database tables."""
    # Register table models on the shared metadata
    import village_carbon.db.models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session():
    """Dependency to get database session."""
    with Session(engine) as session:
        yield session
