from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from caja.core.config import settings

# Base para modelos (la importa caja.main antes de create_all)
Base = declarative_base()

SQLALCHEMY_DATABASE_URL = settings.database_url
_IS_SQLITE = SQLALCHEMY_DATABASE_URL.startswith("sqlite")
_IS_MEMORY = SQLALCHEMY_DATABASE_URL in ("sqlite://", "sqlite:///:memory:")

_engine_kwargs = {"pool_pre_ping": True}
if _IS_SQLITE:
    # Engine con timeout alto (contención ligera)
    _engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 60}
if _IS_MEMORY:
    # Una sola conexión compartida: la base en memoria vive mientras viva el engine
    _engine_kwargs["poolclass"] = StaticPool
    _engine_kwargs.pop("pool_pre_ping")

engine = create_engine(SQLALCHEMY_DATABASE_URL, **_engine_kwargs)


if _IS_SQLITE:
    # PRAGMAs por conexión
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _):
        cur = dbapi_conn.cursor()
        try:
            if not _IS_MEMORY:
                cur.execute("PRAGMA journal_mode=WAL;")
                cur.execute("PRAGMA busy_timeout=60000;")
                cur.execute("PRAGMA synchronous=NORMAL;")
            cur.execute("PRAGMA foreign_keys=ON;")
        finally:
            cur.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Dependencia FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
