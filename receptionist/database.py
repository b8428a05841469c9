from sqlmodel import create_engine, Session, SQLModel

from receptionist.config import settings

def build_engine(database_url: str, echo: bool = False):
    connect_args = {}
    if database_url.startswith("sqlite"):
        # FastAPI serves sync endpoints from a threadpool
        connect_args["check_same_thread"] = False
    return create_engine(database_url, echo=echo, connect_args=connect_args)

engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

def create_db_and_tables(bind=None):
    SQLModel.metadata.create_all(bind or engine)

def get_session():
    """Yields one session per request."""
    with Session(engine) as session:
        yield session
