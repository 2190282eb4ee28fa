from sqlalchemy_utils import database_exists, create_database
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.engine.url import make_url
from app.core.config import settings

Base = declarative_base()

url = make_url(settings.DATABASE_URL)


def _engine_options(database_url) -> dict:
    """Engine kwargs for the configured backend"""
    if database_url.get_backend_name() == "sqlite":
        options = {"connect_args": {"check_same_thread": False}}
        # In-memory SQLite must share a single connection across threads
        if database_url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        return options
    return {"pool_pre_ping": True}


# Sync database setup
try:
    engine = create_engine(
        settings.DATABASE_URL,
        echo=False,  # Set to True for SQL debugging
        **_engine_options(url)
    )
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
except Exception as e:
    print(f"[DB ERROR] Could not create engine or session: {e}")
    engine = None
    SessionLocal = None


def ensure_database_exists():
    """
    Checks if the database exists, and creates it if it does not.
    """
    try:
        if not database_exists(settings.DATABASE_URL):
            create_database(settings.DATABASE_URL)
            print(f"Database created: {url.render_as_string(hide_password=True)}")
        else:
            print(f"Database already exists: {url.render_as_string(hide_password=True)}")
    except Exception as e:
        print(f"[DB ERROR] Could not check or create database: {e}")


def init_db():
    try:
        ensure_database_exists()
        # Register every mapped class before create_all
        import app.models  # noqa: F401
        if engine is not None:
            Base.metadata.create_all(bind=engine)
        else:
            print("[DB ERROR] Engine is None, cannot create tables.")
    except Exception as e:
        print(f"[DB ERROR] init_db failed: {e}")


# Dependency to get database session
def get_db():
    if SessionLocal is None:
        raise Exception("[DB ERROR] SessionLocal is None, cannot get DB session.")
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
