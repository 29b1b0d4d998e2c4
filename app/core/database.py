from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker
from app.core.config import settings

# Create SQLAlchemy engine
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,  # Verify connections before using them
    pool_size=10,  # Connection pool size
    max_overflow=20  # Allow up to 20 connections beyond pool_size
)

# Create SessionLocal class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create Base class for models
Base = declarative_base()


def get_db():
    """
    Dependency function to get database session.
    Used in FastAPI endpoints with Depends(get_db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Initialize database.

    We rely on Alembic for table creation, so this only imports the models
    to register them on Base.metadata.

    Use "alembic upgrade head" to create/update database schema.
    """
    from app.models import campaign, scraped_job, matched_pair, tailored_resume, resume  # noqa: F401


def check_database_connection() -> None:
    """
    Run a trivial query against the database.

    Worker processes call this at boot so an unreachable database fails fast
    instead of surfacing on the first message.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
