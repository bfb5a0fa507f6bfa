"""SQLModel database engine and session management."""

from sqlmodel import SQLModel, create_engine, Session

from papertrade.config import settings


def build_engine(database_url: str, **kwargs):
    """Create an engine; SQLite needs check_same_thread=False, PostgreSQL does not."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, echo=False, connect_args=connect_args, **kwargs)


engine = build_engine(settings.database_url)


def create_db_and_tables(target_engine=None):
    """Create all tables. Called on startup."""
    import papertrade.models  # noqa: F401  register tables on the metadata

    target_engine = target_engine or engine
    SQLModel.metadata.create_all(target_engine)


def get_session() -> Session:
    """Dependency that yields a database session."""
    with Session(engine) as session:
        yield session
